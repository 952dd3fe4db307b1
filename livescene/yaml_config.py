"""YAML session configuration for headless/CLI usage."""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from livescene.config import Settings
from livescene.model.effects import EffectsConfig

KNOWN_TOP_KEYS = {"input", "output", "camera", "fps", "effects", "segmentation"}
KNOWN_EFFECT_KEYS = set(EffectsConfig.field_names())
KNOWN_SEGMENTATION_KEYS = {"max_mask_age_sec"}


@dataclass
class SessionConfig:
    """All fields are None by default; unset means 'use the default'."""

    input_path: str | None = None
    output_path: str | None = None
    camera_index: int | None = None
    fps: float | None = None
    mask_max_age_sec: float | None = None
    # Only the effects keys present in the file
    effects: dict = field(default_factory=dict)

    def apply_to(self, settings: Settings) -> Settings:
        """Overlay the values that were set onto *settings* (in place)."""
        if self.camera_index is not None:
            settings.camera_index = self.camera_index
        if self.fps is not None:
            settings.capture_fps = self.fps
            settings.output_fps = self.fps
        if self.mask_max_age_sec is not None:
            settings.mask_max_age_sec = self.mask_max_age_sec
        if self.effects:
            settings.effects.update(**self.effects)
        return settings


def _warn_unknown_keys(keys: set[str], known: set[str], section: str) -> None:
    unknown = keys - known
    for key in sorted(unknown):
        warnings.warn(f"Unknown key '{key}' in {section} section of session config", stacklevel=3)


def load_session_config(path: str | Path) -> SessionConfig:
    """Load a YAML session config file and return a SessionConfig."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    raw = yaml.safe_load(path.read_text())
    if raw is None:
        # Empty YAML file
        return SessionConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"Session config must be a YAML mapping, got {type(raw).__name__}")

    _warn_unknown_keys(set(raw.keys()), KNOWN_TOP_KEYS, "top-level")

    base_dir = path.resolve().parent
    cfg = SessionConfig()

    # --- input / output (relative to the YAML file) ---
    for key, attr in (("input", "input_path"), ("output", "output_path")):
        if key in raw:
            value = raw[key]
            if not isinstance(value, str):
                raise ValueError(f"'{key}' must be a path string")
            if not Path(value).is_absolute():
                value = str(base_dir / value)
            setattr(cfg, attr, value)

    # --- capture ---
    if "camera" in raw:
        cfg.camera_index = int(raw["camera"])
    if "fps" in raw:
        cfg.fps = float(raw["fps"])
        if cfg.fps <= 0:
            raise ValueError("'fps' must be positive")

    # --- effects ---
    if "effects" in raw:
        effects = raw["effects"] or {}
        if not isinstance(effects, dict):
            raise ValueError("'effects' must be a mapping")
        _warn_unknown_keys(set(effects.keys()), KNOWN_EFFECT_KEYS, "effects")
        cfg.effects = {k: v for k, v in effects.items() if k in KNOWN_EFFECT_KEYS}
        try:
            # Validate now rather than when the session starts
            EffectsConfig().update(**cfg.effects)
        except (ValueError, TypeError) as e:
            raise ValueError(f"Invalid effects setting: {e}") from e

    # --- segmentation ---
    if "segmentation" in raw:
        seg = raw["segmentation"] or {}
        if not isinstance(seg, dict):
            raise ValueError("'segmentation' must be a mapping")
        _warn_unknown_keys(set(seg.keys()), KNOWN_SEGMENTATION_KEYS, "segmentation")
        if "max_mask_age_sec" in seg:
            cfg.mask_max_age_sec = float(seg["max_mask_age_sec"])

    return cfg
