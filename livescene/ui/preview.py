"""Preview widget that paints frames from a VideoElement."""

from __future__ import annotations

import numpy as np
from PySide6.QtCore import Qt, QTimer, Slot
from PySide6.QtGui import QImage, QPixmap
from PySide6.QtWidgets import QLabel, QSizePolicy, QWidget

from livescene.media.element import VideoElement


def frame_to_qimage(frame: np.ndarray) -> QImage:
    """Convert an RGBA uint8 frame to a QImage that owns its pixels."""
    frame = np.ascontiguousarray(frame)
    h, w = frame.shape[:2]
    img = QImage(frame.data, w, h, 4 * w, QImage.Format.Format_RGBA8888)
    return img.copy()  # must copy, underlying data goes out of scope


class PreviewWidget(QLabel):
    """Shows the current frame of a VideoElement, scaled to fit."""

    def __init__(self, element: VideoElement | None = None, fps: float = 30.0,
                 parent: QWidget | None = None):
        super().__init__(parent)
        self.setAlignment(Qt.AlignmentFlag.AlignCenter)
        self.setMinimumSize(320, 180)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setText("No video")
        self._element: VideoElement | None = None
        self._timer = QTimer(self)
        self._timer.setInterval(max(1, int(1000 / fps)))
        self._timer.timeout.connect(self.refresh)
        self.set_element(element)

    @property
    def element(self) -> VideoElement | None:
        return self._element

    def set_element(self, element: VideoElement | None) -> None:
        self._element = element
        if element is None:
            self._timer.stop()
            self.clear()
            self.setText("No video")
        else:
            self._timer.start()

    @Slot()
    def refresh(self) -> bool:
        """Paint the element's current frame. Returns True if one was painted."""
        if self._element is None:
            return False
        frame = self._element.current_frame()
        if frame is None or frame.size == 0:
            return False
        pixmap = QPixmap.fromImage(frame_to_qimage(frame))
        self.setPixmap(
            pixmap.scaled(
                self.size(),
                Qt.AspectRatioMode.KeepAspectRatio,
                Qt.TransformationMode.SmoothTransformation,
            )
        )
        return True

    def cleanup(self) -> None:
        self._timer.stop()
        self._element = None

    def closeEvent(self, event) -> None:
        self.cleanup()
        super().closeEvent(event)
