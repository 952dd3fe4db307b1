"""Abstract MaskSource base class."""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

import numpy as np

DEFAULT_MAX_MASK_AGE_SEC = 1.0


class MaskSource(ABC):
    """Supplies per-frame foreground masks for a video element.

    ``init()`` may block (model download and load) and is run off the GUI
    thread. After ``set_video()`` the source produces masks on its own
    schedule; the pipeline polls ``get_latest_mask()`` each frame and must
    cope with it returning None at any time.

    Masks are float32 arrays in [0, 1] (or uint8), 1 = foreground. A mask
    older than ``max_age_sec`` is reported as None.
    """

    name: str = "base"

    def __init__(
        self,
        max_age_sec: float | None = DEFAULT_MAX_MASK_AGE_SEC,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_age_sec = max_age_sec
        self._clock = clock
        self._lock = threading.Lock()
        self._mask: np.ndarray | None = None
        self._mask_time = 0.0

    @abstractmethod
    def init(self) -> None:
        """Prepare the model. Raises on failure."""
        ...

    @abstractmethod
    def set_video(self, frame_source) -> None:
        """Start producing masks for *frame_source* (a VideoElement)."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Stop producing masks and free the model. Must be idempotent."""
        ...

    def get_latest_mask(self) -> np.ndarray | None:
        with self._lock:
            if self._mask is None:
                return None
            if self.max_age_sec is not None and self._clock() - self._mask_time > self.max_age_sec:
                return None
            return self._mask

    def _publish_mask(self, mask: np.ndarray) -> None:
        """Store a new mask. Safe to call from inference threads."""
        with self._lock:
            self._mask = mask
            self._mask_time = self._clock()

    def _clear_mask(self) -> None:
        with self._lock:
            self._mask = None
