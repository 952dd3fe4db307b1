"""UI tests: effects panel controls and change signals."""

import pytest

from livescene.model.effects import EffectMode, EffectsConfig
from livescene.ui.effects_panel import MODE_LABELS, EffectsPanel


@pytest.fixture()
def config():
    c = EffectsConfig()
    c.update(enabled=True, mode="blur", blur_radius_px=20)
    return c


@pytest.fixture()
def panel(qtbot, config):
    p = EffectsPanel(config)
    qtbot.addWidget(p)
    return p


@pytest.fixture()
def changes(panel):
    received = []
    panel.config_changed.connect(received.append)
    return received


class TestInitialValues:
    def test_controls_match_config(self, panel, config):
        assert panel.enabled_check.isChecked() is True
        assert panel.mode_combo.currentData() == "blur"
        assert panel.engine_combo.currentData() == config.engine.value
        assert panel.quality_combo.currentData() == "balanced"
        assert panel.blur_slider.value() == 20
        assert panel.tolerance_slider.value() == 30
        assert panel.softness_slider.value() == 2
        assert panel.key_color_edit.text() == "#00ff00"
        assert panel.background_color_edit.text() == "#000000"
        assert panel.blur_label.text() == "20 px"

    def test_all_modes_listed(self, panel):
        assert panel.mode_combo.count() == len(MODE_LABELS)

    def test_load_does_not_emit(self, panel, changes):
        other = EffectsConfig(mode="chromaKey", blur_radius_px=3)
        panel.load(other)
        assert changes == []
        assert panel.blur_slider.value() == 3


class TestSignals:
    def test_toggle_enabled(self, panel, changes):
        panel.enabled_check.setChecked(False)
        assert changes == [{"enabled": False}]

    def test_mode_change(self, panel, changes):
        panel.mode_combo.setCurrentIndex(panel.mode_combo.findData("chromaKey"))
        assert changes == [{"mode": "chromaKey"}]

    def test_engine_change(self, panel, changes):
        panel.engine_combo.setCurrentIndex(panel.engine_combo.findData("mock"))
        assert changes == [{"engine": "mock"}]

    def test_blur_slider(self, panel, changes):
        panel.blur_slider.setValue(33)
        assert changes == [{"blur_radius_px": 33}]
        assert panel.blur_label.text() == "33 px"

    def test_tolerance_slider(self, panel, changes):
        panel.tolerance_slider.setValue(55)
        assert changes == [{"chroma_key_tolerance_percent": 55.0}]
        assert panel.tolerance_label.text() == "55%"

    def test_valid_color(self, panel, changes):
        panel.background_color_edit.setText("#ff0000")
        panel.background_color_edit.editingFinished.emit()
        assert changes == [{"background_color": "#ff0000"}]

    def test_invalid_color_not_emitted(self, panel, changes):
        panel.key_color_edit.setText("greenish")
        panel.key_color_edit.editingFinished.emit()
        assert changes == []
        assert "red" in panel.key_color_edit.styleSheet()

    def test_panel_does_not_mutate_config(self, panel, config):
        panel.blur_slider.setValue(40)
        assert config.blur_radius_px == 20


class TestEnabledControls:
    def test_blur_mode(self, panel):
        assert panel.blur_slider.isEnabled()
        assert panel.engine_combo.isEnabled()
        assert not panel.tolerance_slider.isEnabled()
        assert not panel.background_color_edit.isEnabled()

    def test_chroma_mode(self, panel):
        panel.mode_combo.setCurrentIndex(panel.mode_combo.findData(EffectMode.CHROMA_KEY.value))
        assert panel.tolerance_slider.isEnabled()
        assert panel.key_color_edit.isEnabled()
        assert panel.softness_slider.isEnabled()
        assert not panel.blur_slider.isEnabled()

    def test_remove_background_mode(self, panel):
        panel.mode_combo.setCurrentIndex(
            panel.mode_combo.findData(EffectMode.REMOVE_BACKGROUND.value)
        )
        assert panel.background_color_edit.isEnabled()
        assert panel.softness_slider.isEnabled()
        assert not panel.key_color_edit.isEnabled()
