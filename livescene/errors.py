"""Exception types shared across capture, rendering and playback."""


class LiveSceneError(Exception):
    """Base class for all LiveScene errors."""


class CaptureError(LiveSceneError, RuntimeError):
    """A capture device could not be opened, or the capture kind is unsupported."""


class PlaybackError(LiveSceneError, RuntimeError):
    """A video element could not start playback."""


class CaptureUnsupportedError(LiveSceneError):
    """A drawing surface cannot be captured as a live resource."""


class RenderingContextError(LiveSceneError):
    """A drawing surface could not provide a rendering context."""
