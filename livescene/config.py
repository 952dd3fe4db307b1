"""Settings dataclass with JSON persistence."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from livescene.model.effects import EffectsConfig

DEFAULT_CONFIG_DIR = Path.home() / ".livescene"
DEFAULT_CONFIG_PATH = DEFAULT_CONFIG_DIR / "settings.json"


@dataclass
class Settings:
    effects: EffectsConfig = field(default_factory=EffectsConfig)

    # Capture
    camera_index: int = 0
    capture_fps: float = 30.0
    screen_monitor: int = 1  # mss monitor index, 0 = all monitors combined

    # Output
    output_fps: float = 30.0

    # Segmentation masks older than this are treated as missing (None = no bound)
    mask_max_age_sec: float | None = 1.0

    def to_dict(self) -> dict:
        return {
            "effects": self.effects.to_dict(),
            "camera_index": self.camera_index,
            "capture_fps": self.capture_fps,
            "screen_monitor": self.screen_monitor,
            "output_fps": self.output_fps,
            "mask_max_age_sec": self.mask_max_age_sec,
        }

    def save(self, path: Path | None = None) -> None:
        path = path or DEFAULT_CONFIG_PATH
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2))

    @classmethod
    def load(cls, path: Path | None = None) -> "Settings":
        path = path or DEFAULT_CONFIG_PATH
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text())
            kwargs = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
            if "effects" in kwargs:
                kwargs["effects"] = EffectsConfig.from_dict(kwargs["effects"])
            return cls(**kwargs)
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError, KeyError):
            return cls()
