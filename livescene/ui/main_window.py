"""Main window: camera/screen preview with the effects panel beside it."""

from __future__ import annotations

import logging

from PySide6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QSplitter,
    QVBoxLayout,
    QWidget,
)

from livescene.errors import CaptureError
from livescene.session import LiveSession
from livescene.ui.effects_panel import EffectsPanel
from livescene.ui.preview import PreviewWidget

logger = logging.getLogger(__name__)

CAMERA_LAYER = "camera"
SCREEN_LAYER = "screen"


class MainWindow(QMainWindow):
    """Presenter window with one camera layer and one screen layer."""

    def __init__(self, session: LiveSession | None = None, parent: QWidget | None = None):
        super().__init__(parent)
        self.setWindowTitle("LiveScene")
        self.setMinimumSize(900, 540)

        self.session = session or LiveSession()

        central = QWidget()
        self.setCentralWidget(central)
        layout = QVBoxLayout(central)

        splitter = QSplitter()
        layout.addWidget(splitter)

        previews = QWidget()
        previews_layout = QVBoxLayout(previews)
        previews_layout.addWidget(QLabel("Camera"))
        self.camera_preview = PreviewWidget(fps=self.session.settings.output_fps)
        previews_layout.addWidget(self.camera_preview)
        previews_layout.addWidget(QLabel("Screen"))
        self.screen_preview = PreviewWidget(fps=self.session.settings.capture_fps)
        previews_layout.addWidget(self.screen_preview)
        splitter.addWidget(previews)

        self.effects_panel = EffectsPanel(self.session.effects)
        splitter.addWidget(self.effects_panel)
        splitter.setStretchFactor(0, 3)
        splitter.setStretchFactor(1, 1)

        buttons = QHBoxLayout()
        self.camera_button = QPushButton("Start Camera")
        self.camera_button.setCheckable(True)
        self.screen_button = QPushButton("Share Screen")
        self.screen_button.setCheckable(True)
        buttons.addWidget(self.camera_button)
        buttons.addWidget(self.screen_button)
        buttons.addStretch()
        layout.addLayout(buttons)

        self.camera_button.toggled.connect(self._toggle_camera)
        self.screen_button.toggled.connect(self._toggle_screen)
        self.effects_panel.config_changed.connect(self._on_effects_changed)
        self.session.sources.capture_stopped.connect(self._on_capture_stopped)

    def _toggle_camera(self, checked: bool) -> None:
        self._toggle_layer(CAMERA_LAYER, checked, self.camera_button, self.camera_preview,
                           self.session.start_camera, "Stop Camera")

    def _toggle_screen(self, checked: bool) -> None:
        self._toggle_layer(SCREEN_LAYER, checked, self.screen_button, self.screen_preview,
                           self.session.start_screen, "Stop Sharing")

    def _toggle_layer(self, layer_id, checked, button, preview, start, on_text) -> None:
        if not checked:
            self.session.stop(layer_id)
            return
        try:
            start(layer_id)
        except CaptureError as e:
            logger.warning("Failed to start %s: %s", layer_id, e)
            QMessageBox.warning(self, "Capture Failed", str(e))
            button.blockSignals(True)
            button.setChecked(False)
            button.blockSignals(False)
            return
        preview.set_element(self.session.sources.get_preview_element(layer_id))
        button.setText(on_text)

    def _on_capture_stopped(self, layer_id: str) -> None:
        if layer_id == CAMERA_LAYER:
            self.camera_preview.set_element(None)
            self._reset_button(self.camera_button, "Start Camera")
        elif layer_id == SCREEN_LAYER:
            self.screen_preview.set_element(None)
            self._reset_button(self.screen_button, "Share Screen")

    @staticmethod
    def _reset_button(button: QPushButton, text: str) -> None:
        button.blockSignals(True)
        button.setChecked(False)
        button.blockSignals(False)
        button.setText(text)

    def _on_effects_changed(self, changes: dict) -> None:
        self.session.update_effects(**changes)

    def closeEvent(self, event) -> None:
        self.camera_preview.cleanup()
        self.screen_preview.cleanup()
        self.session.close()
        super().closeEvent(event)
