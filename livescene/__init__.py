"""LiveScene: live presenter scenes with real-time camera effects."""

__version__ = "0.1.0"
