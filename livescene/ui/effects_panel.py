"""Effects panel: mode, engine and live parameter controls."""

from __future__ import annotations

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QSlider,
    QVBoxLayout,
    QWidget,
)

from livescene.model.effects import (
    MAX_BLUR_RADIUS_PX,
    MAX_EDGE_SOFTNESS_PX,
    EffectEngine,
    EffectMode,
    EffectQuality,
    EffectsConfig,
    parse_color,
)

MODE_LABELS = {
    EffectMode.OFF: "Off",
    EffectMode.BLUR: "Blur background",
    EffectMode.REMOVE_BACKGROUND: "Remove background",
    EffectMode.CHROMA_KEY: "Green screen",
}

ENGINE_LABELS = {
    EffectEngine.ML_SEGMENTATION: "Segmentation (MediaPipe)",
    EffectEngine.MOCK: "Simple (full-frame)",
}

QUALITY_LABELS = {
    EffectQuality.FAST: "Fast",
    EffectQuality.BALANCED: "Balanced",
    EffectQuality.HIGH: "High",
}


class EffectsPanel(QWidget):
    """Edits an EffectsConfig.

    The panel never mutates the config itself; it emits ``config_changed``
    with the edited fields and the owner applies them (so the pipeline
    can tell structural edits from live ones).
    """

    config_changed = Signal(dict)

    def __init__(self, config: EffectsConfig | None = None, parent: QWidget | None = None):
        super().__init__(parent)
        self._loading = False
        self._setup_ui()
        self._connect_signals()
        self.load(config or EffectsConfig())

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(4, 4, 4, 4)

        group = QGroupBox("Camera Effects")
        form = QFormLayout()
        form.setVerticalSpacing(4)

        self.enabled_check = QCheckBox("Enable effects")
        form.addRow(self.enabled_check)

        self.mode_combo = QComboBox()
        for mode, label in MODE_LABELS.items():
            self.mode_combo.addItem(label, mode.value)
        form.addRow("Mode:", self.mode_combo)

        self.engine_combo = QComboBox()
        for engine, label in ENGINE_LABELS.items():
            self.engine_combo.addItem(label, engine.value)
        form.addRow("Engine:", self.engine_combo)

        self.quality_combo = QComboBox()
        for quality, label in QUALITY_LABELS.items():
            self.quality_combo.addItem(label, quality.value)
        form.addRow("Quality:", self.quality_combo)

        self.blur_slider = QSlider(Qt.Orientation.Horizontal)
        self.blur_slider.setRange(0, MAX_BLUR_RADIUS_PX)
        self.blur_label = QLabel()
        row = QHBoxLayout()
        row.addWidget(self.blur_slider)
        row.addWidget(self.blur_label)
        form.addRow("Blur radius:", row)

        self.tolerance_slider = QSlider(Qt.Orientation.Horizontal)
        self.tolerance_slider.setRange(0, 100)
        self.tolerance_label = QLabel()
        row = QHBoxLayout()
        row.addWidget(self.tolerance_slider)
        row.addWidget(self.tolerance_label)
        form.addRow("Key tolerance:", row)

        self.softness_slider = QSlider(Qt.Orientation.Horizontal)
        self.softness_slider.setRange(0, MAX_EDGE_SOFTNESS_PX)
        self.softness_label = QLabel()
        row = QHBoxLayout()
        row.addWidget(self.softness_slider)
        row.addWidget(self.softness_label)
        form.addRow("Edge softness:", row)

        self.key_color_edit = QLineEdit()
        self.key_color_edit.setPlaceholderText("#00ff00")
        form.addRow("Key color:", self.key_color_edit)

        self.background_color_edit = QLineEdit()
        self.background_color_edit.setPlaceholderText("#000000")
        form.addRow("Background:", self.background_color_edit)

        group.setLayout(form)
        layout.addWidget(group)
        layout.addStretch()

    def _connect_signals(self) -> None:
        self.enabled_check.toggled.connect(lambda v: self._emit(enabled=v))
        self.mode_combo.currentIndexChanged.connect(
            lambda _: self._emit(mode=self.mode_combo.currentData())
        )
        self.engine_combo.currentIndexChanged.connect(
            lambda _: self._emit(engine=self.engine_combo.currentData())
        )
        self.quality_combo.currentIndexChanged.connect(
            lambda _: self._emit(quality=self.quality_combo.currentData())
        )
        self.blur_slider.valueChanged.connect(self._on_blur_changed)
        self.tolerance_slider.valueChanged.connect(self._on_tolerance_changed)
        self.softness_slider.valueChanged.connect(self._on_softness_changed)
        self.key_color_edit.editingFinished.connect(
            lambda: self._emit_color("chroma_key_color", self.key_color_edit)
        )
        self.background_color_edit.editingFinished.connect(
            lambda: self._emit_color("background_color", self.background_color_edit)
        )

    def load(self, config: EffectsConfig) -> None:
        """Show *config* without emitting changes."""
        self._loading = True
        try:
            self.enabled_check.setChecked(config.enabled)
            self.mode_combo.setCurrentIndex(self.mode_combo.findData(config.mode.value))
            self.engine_combo.setCurrentIndex(self.engine_combo.findData(config.engine.value))
            self.quality_combo.setCurrentIndex(self.quality_combo.findData(config.quality.value))
            self.blur_slider.setValue(config.blur_radius_px)
            self.tolerance_slider.setValue(int(round(config.chroma_key_tolerance_percent)))
            self.softness_slider.setValue(int(round(config.edge_softness_px)))
            self.key_color_edit.setText(config.chroma_key_color)
            self.background_color_edit.setText(config.background_color)
            self._update_labels()
            self._update_enabled_controls(config.mode)
        finally:
            self._loading = False

    def _emit(self, **changes) -> None:
        if "mode" in changes:
            self._update_enabled_controls(EffectMode(changes["mode"]))
        if self._loading:
            return
        self.config_changed.emit(changes)

    def _emit_color(self, field: str, edit: QLineEdit) -> None:
        text = edit.text().strip()
        if parse_color(text, default=None) is None:
            edit.setStyleSheet("color: red;")
            return
        edit.setStyleSheet("")
        self._emit(**{field: text})

    def _on_blur_changed(self, value: int) -> None:
        self._update_labels()
        self._emit(blur_radius_px=value)

    def _on_tolerance_changed(self, value: int) -> None:
        self._update_labels()
        self._emit(chroma_key_tolerance_percent=float(value))

    def _on_softness_changed(self, value: int) -> None:
        self._update_labels()
        self._emit(edge_softness_px=float(value))

    def _update_labels(self) -> None:
        self.blur_label.setText(f"{self.blur_slider.value()} px")
        self.tolerance_label.setText(f"{self.tolerance_slider.value()}%")
        self.softness_label.setText(f"{self.softness_slider.value()} px")

    def _update_enabled_controls(self, mode: EffectMode) -> None:
        self.blur_slider.setEnabled(mode == EffectMode.BLUR)
        self.engine_combo.setEnabled(mode == EffectMode.BLUR)
        self.tolerance_slider.setEnabled(mode == EffectMode.CHROMA_KEY)
        self.key_color_edit.setEnabled(mode == EffectMode.CHROMA_KEY)
        self.softness_slider.setEnabled(
            mode in (EffectMode.CHROMA_KEY, EffectMode.REMOVE_BACKGROUND)
        )
        self.background_color_edit.setEnabled(
            mode in (EffectMode.CHROMA_KEY, EffectMode.REMOVE_BACKGROUND)
        )
