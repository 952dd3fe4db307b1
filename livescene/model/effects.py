"""EffectsConfig and the per-mode effect parameter variants."""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from enum import Enum

MAX_BLUR_RADIUS_PX = 48
MAX_EDGE_SOFTNESS_PX = 20

DEFAULT_KEY_COLOR = (0, 255, 0)

_HEX_COLOR = re.compile(r"^#?([0-9a-f]{3}|[0-9a-f]{6})$", re.IGNORECASE)


class EffectMode(str, Enum):
    OFF = "off"
    BLUR = "blur"
    REMOVE_BACKGROUND = "removeBackground"
    CHROMA_KEY = "chromaKey"


class EffectEngine(str, Enum):
    MOCK = "mock"
    ML_SEGMENTATION = "mlSegmentation"


class EffectQuality(str, Enum):
    FAST = "fast"
    BALANCED = "balanced"
    HIGH = "high"


def parse_color(value: str, default: tuple[int, int, int] = (0, 0, 0)) -> tuple[int, int, int]:
    """Parse ``#rgb`` or ``#rrggbb`` into an (r, g, b) tuple.

    Anything else returns *default*.
    """
    match = _HEX_COLOR.match(value.strip()) if isinstance(value, str) else None
    if not match:
        return default
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return (int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


# --- Effect variants: one per mode, each carrying only what it needs ---


@dataclass(frozen=True)
class BlurEffect:
    radius_px: int


@dataclass(frozen=True)
class RemoveBackgroundEffect:
    background: tuple[int, int, int]
    edge_softness_px: float


@dataclass(frozen=True)
class ChromaKeyEffect:
    key_color: tuple[int, int, int]
    tolerance_percent: float
    edge_softness_px: float
    background: tuple[int, int, int]


EffectParams = BlurEffect | RemoveBackgroundEffect | ChromaKeyEffect


@dataclass
class EffectsConfig:
    """Presenter effect settings.

    The pipeline holds a reference to one instance and reads it every
    frame. Only ``enabled``, ``mode`` and ``engine`` (plus the raw
    resource) gate a rebuild; every other field is a live parameter.
    """

    enabled: bool = False
    mode: EffectMode = EffectMode.OFF
    engine: EffectEngine = EffectEngine.ML_SEGMENTATION
    quality: EffectQuality = EffectQuality.BALANCED
    blur_radius_px: int = 12
    background_color: str = "#000000"
    chroma_key_color: str = "#00ff00"
    chroma_key_tolerance_percent: float = 30.0
    edge_softness_px: float = 2.0

    def __post_init__(self) -> None:
        for name in self.field_names():
            setattr(self, name, self._coerce(name, getattr(self, name)))

    @classmethod
    def field_names(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    @staticmethod
    def _coerce(name: str, value):
        if name == "enabled":
            return bool(value)
        if name == "mode":
            return EffectMode(value)
        if name == "engine":
            return EffectEngine(value)
        if name == "quality":
            return EffectQuality(value)
        if name == "blur_radius_px":
            return int(round(_clamp(float(value or 0), 0, MAX_BLUR_RADIUS_PX)))
        if name == "chroma_key_tolerance_percent":
            return float(_clamp(float(value or 0), 0.0, 100.0))
        if name == "edge_softness_px":
            return float(_clamp(float(value or 0), 0.0, MAX_EDGE_SOFTNESS_PX))
        if name in ("background_color", "chroma_key_color"):
            return str(value)
        raise KeyError(f"Unknown effects field: {name!r}")

    def update(self, **changes) -> set[str]:
        """Apply *changes* in place, returning the names of fields that changed."""
        changed: set[str] = set()
        for name, value in changes.items():
            if name not in self.__dataclass_fields__:
                raise KeyError(f"Unknown effects field: {name!r}")
            value = self._coerce(name, value)
            if getattr(self, name) != value:
                setattr(self, name, value)
                changed.add(name)
        return changed

    @property
    def is_active(self) -> bool:
        return self.enabled and self.mode != EffectMode.OFF

    def params_for(self, mode: EffectMode) -> EffectParams | None:
        """Snapshot the live parameters the given mode needs for one frame."""
        background = parse_color(self.background_color)
        if mode == EffectMode.BLUR:
            return BlurEffect(radius_px=self.blur_radius_px)
        if mode == EffectMode.REMOVE_BACKGROUND:
            return RemoveBackgroundEffect(
                background=background,
                edge_softness_px=self.edge_softness_px,
            )
        if mode == EffectMode.CHROMA_KEY:
            return ChromaKeyEffect(
                key_color=parse_color(self.chroma_key_color, DEFAULT_KEY_COLOR),
                tolerance_percent=self.chroma_key_tolerance_percent,
                edge_softness_px=self.edge_softness_px,
                background=background,
            )
        return None

    def to_dict(self) -> dict:
        data = {}
        for name in self.field_names():
            value = getattr(self, name)
            data[name] = value.value if isinstance(value, Enum) else value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "EffectsConfig":
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


STRUCTURAL_FIELDS = frozenset({"enabled", "mode", "engine"})
