"""VideoElement: a muted frame reader bound to one VideoResource."""

from __future__ import annotations

import logging

import numpy as np
from PySide6.QtCore import QObject, Signal

from livescene.errors import PlaybackError
from livescene.media.resource import VideoResource

logger = logging.getLogger(__name__)


class VideoElement(QObject):
    """Plays a VideoResource for one consumer (a preview or a pipeline).

    While paused the last decoded frame is held. Rebinding ``src_object``
    pauses playback; callers must ``play()`` again.
    """

    source_changed = Signal(object)  # VideoResource | None

    def __init__(self, resource: VideoResource | None = None, parent: QObject | None = None):
        super().__init__(parent)
        self._src: VideoResource | None = resource
        self._playing = False
        self._last_frame: np.ndarray | None = None

    @property
    def src_object(self) -> VideoResource | None:
        return self._src

    @src_object.setter
    def src_object(self, resource: VideoResource | None) -> None:
        if resource is self._src:
            return
        self._src = resource
        self._playing = False
        self._last_frame = None
        self.source_changed.emit(resource)

    @property
    def playing(self) -> bool:
        return self._playing

    def play(self) -> None:
        """Start playback. Raises PlaybackError when there is nothing to play."""
        if self._src is None:
            raise PlaybackError("No source bound to video element")
        if not self._src.is_live:
            raise PlaybackError(f"Source {self._src.id} has ended")
        self._playing = True

    def pause(self) -> None:
        self._playing = False

    def current_frame(self) -> np.ndarray | None:
        if self._playing and self._src is not None:
            frame = self._src.read()
            if frame is not None:
                self._last_frame = frame
        return self._last_frame

    @property
    def video_width(self) -> int:
        return 0 if self._last_frame is None else int(self._last_frame.shape[1])

    @property
    def video_height(self) -> int:
        return 0 if self._last_frame is None else int(self._last_frame.shape[0])

    def remove(self) -> None:
        """Detach from the source and drop the held frame."""
        self.src_object = None
