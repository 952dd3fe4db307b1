"""Live video resources: cameras, video files, screens and relayed frames.

Every resource hands out RGBA ``uint8`` frames of shape (H, W, 4). Reads
are cached for one frame interval so that the preview, the effects
pipeline and the segmenter all see the same device frame.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from enum import Enum

import cv2
import mss
import numpy as np
from mss.exception import ScreenShotError
from PySide6.QtCore import QObject, Signal

from livescene.errors import CaptureError

logger = logging.getLogger(__name__)


class ReadyState(str, Enum):
    LIVE = "live"
    ENDED = "ended"


class CaptureKind(str, Enum):
    CAMERA = "camera"
    SCREEN = "screen"
    PHONE = "phone"
    FILE = "file"


class VideoResource(QObject):
    """Opaque handle to a live frame source.

    Subclasses implement ``_grab()`` (return the next frame or None when the
    source is exhausted) and ``_release()`` (free the device).
    """

    ended = Signal()

    kind: str = "generic"

    def __init__(
        self,
        width: int = 0,
        height: int = 0,
        fps: float = 30.0,
        label: str = "",
        clock: Callable[[], float] = time.monotonic,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self.id = uuid.uuid4().hex[:12]
        self.label = label or self.kind
        self.width = width
        self.height = height
        self.fps = fps
        self._clock = clock
        self._ready_state = ReadyState.LIVE
        self._stopped = False
        self._frame: np.ndarray | None = None
        self._grabbed_at: float | None = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} {self.label!r} {self._ready_state.value}>"

    @property
    def ready_state(self) -> ReadyState:
        return self._ready_state

    @property
    def is_live(self) -> bool:
        return self._ready_state == ReadyState.LIVE

    @property
    def stopped(self) -> bool:
        return self._stopped

    def read(self) -> np.ndarray | None:
        """Return the latest frame, or None if nothing has been captured."""
        if not self.is_live:
            return self._frame
        now = self._clock()
        interval = 1.0 / self.fps if self.fps > 0 else 0.0
        if self._grabbed_at is not None and now - self._grabbed_at < interval:
            return self._frame
        frame = self._grab()
        self._grabbed_at = now
        if frame is None:
            self._end()
            return self._frame
        self._frame = frame
        self.height, self.width = frame.shape[:2]
        return frame

    def stop(self) -> None:
        """Physically stop the source. Safe to call more than once."""
        if self._stopped:
            return
        self._stopped = True
        self._release()
        self._end()

    def _end(self) -> None:
        if self._ready_state == ReadyState.ENDED:
            return
        self._ready_state = ReadyState.ENDED
        logger.info("Video resource %s ended", self.id)
        self.ended.emit()

    def _grab(self) -> np.ndarray | None:
        return self._frame

    def _release(self) -> None:
        pass


class CaptureResource(VideoResource):
    """OpenCV capture of a camera device index or a video file path."""

    def __init__(self, source: int | str, fps: float = 30.0, **kwargs):
        cap = cv2.VideoCapture(source)
        if not cap.isOpened():
            cap.release()
            raise CaptureError(f"Cannot open capture source: {source!r}")
        is_device = isinstance(source, int)
        native_fps = cap.get(cv2.CAP_PROP_FPS)
        if not is_device and native_fps and native_fps > 0:
            fps = native_fps
        super().__init__(
            width=int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            fps=fps,
            label=str(source),
            **kwargs,
        )
        self.kind = CaptureKind.CAMERA.value if is_device else CaptureKind.FILE.value
        self._cap = cap

    def _grab(self) -> np.ndarray | None:
        ret, frame = self._cap.read()
        if not ret or frame is None:
            return None
        return cv2.cvtColor(frame, cv2.COLOR_BGR2RGBA)

    def _release(self) -> None:
        self._cap.release()


class ScreenResource(VideoResource):
    """Screen capture of one monitor via mss."""

    kind = CaptureKind.SCREEN.value

    def __init__(self, monitor: int = 1, fps: float = 30.0, **kwargs):
        sct = mss.mss()
        try:
            geometry = sct.monitors[monitor]
        except IndexError:
            sct.close()
            raise CaptureError(f"No such monitor: {monitor}")
        super().__init__(
            width=geometry["width"],
            height=geometry["height"],
            fps=fps,
            label=f"monitor {monitor}",
            **kwargs,
        )
        self._sct = sct
        self._monitor = geometry

    def _grab(self) -> np.ndarray | None:
        try:
            shot = self._sct.grab(self._monitor)
        except ScreenShotError as exc:
            logger.warning("Screen grab failed: %s", exc)
            return None
        return cv2.cvtColor(np.asarray(shot), cv2.COLOR_BGRA2RGBA)

    def _release(self) -> None:
        self._sct.close()


class RelayResource(VideoResource):
    """Resource fed by pushed frames, e.g. a phone camera relay.

    Frames may be RGB or RGBA; RGB frames get an opaque alpha channel.
    """

    kind = CaptureKind.PHONE.value

    def push_frame(self, frame: np.ndarray) -> None:
        if not self.is_live:
            return
        if frame.ndim == 3 and frame.shape[2] == 3:
            alpha = np.full(frame.shape[:2] + (1,), 255, dtype=np.uint8)
            frame = np.concatenate([frame.astype(np.uint8), alpha], axis=2)
        self._frame = frame
        self.height, self.width = frame.shape[:2]

    def read(self) -> np.ndarray | None:
        return self._frame

    def finish(self) -> None:
        """The remote end hung up."""
        self._end()


def open_capture(kind: CaptureKind | str, camera_index: int = 0, screen_monitor: int = 1,
                 fps: float = 30.0) -> VideoResource:
    """Open a device capture for *kind*. Raises CaptureError on failure."""
    kind = CaptureKind(kind)
    if kind == CaptureKind.CAMERA:
        return CaptureResource(camera_index, fps=fps)
    if kind == CaptureKind.SCREEN:
        return ScreenResource(screen_monitor, fps=fps)
    raise CaptureError(f"{kind.value} sources cannot be opened locally; register them instead")
