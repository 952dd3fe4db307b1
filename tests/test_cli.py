"""Tests for CLI argument parsing, config precedence and headless mode."""

import os
import textwrap
from unittest.mock import patch

import cv2
import pytest

from livescene.__main__ import main, parse_args
from livescene.app import run_headless
from livescene.config import Settings
from livescene.model.effects import EffectEngine, EffectMode


class TestParseArgs:
    def test_defaults(self):
        args = parse_args([])
        assert args.files == []
        assert args.headless is False
        assert args.output is None
        assert args.config is None
        assert args.mode is None
        assert args.verbose is False

    def test_all_flags(self):
        args = parse_args([
            "--headless", "--input", "in.mp4", "-o", "out.mp4", "-c", "s.yaml",
            "--camera", "2", "--mode", "chromaKey", "--engine", "mock", "-v",
        ])
        assert args.headless is True
        assert args.input == "in.mp4"
        assert args.output == "out.mp4"
        assert args.config == "s.yaml"
        assert args.camera == 2
        assert args.mode == "chromaKey"
        assert args.engine == "mock"
        assert args.verbose is True

    def test_invalid_mode_rejected(self):
        with pytest.raises(SystemExit) as exc:
            parse_args(["--mode", "sepia"])
        assert exc.value.code == 2

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            parse_args(["--version"])
        assert exc.value.code == 0
        assert "livescene" in capsys.readouterr().out


class TestMainDispatch:
    def test_gui_by_default(self):
        with patch("livescene.config.Settings.load", return_value=Settings()), \
                patch("livescene.app.run_gui", return_value=0) as mock_gui:
            assert main(["--camera", "3"]) == 0
        settings = mock_gui.call_args[0][0]
        assert settings.camera_index == 3

    def test_headless_needs_input(self, capsys):
        assert main(["--headless"]) == 2
        assert "input" in capsys.readouterr().err

    def test_missing_config_file(self, tmp_path, capsys):
        assert main(["--headless", "x.mp4", "-c", str(tmp_path / "nope.yaml")]) == 2
        assert "Error" in capsys.readouterr().err

    def test_cli_overrides_yaml(self, tmp_path):
        cfg = tmp_path / "session.yaml"
        cfg.write_text(textwrap.dedent("""\
            input: clip.mp4
            output: keyed.mp4
            effects:
              enabled: true
              mode: chromaKey
              engine: mlSegmentation
              blur_radius_px: 7
        """))
        with patch("livescene.app.run_headless", return_value=0) as mock_run:
            assert main(["--headless", "-c", str(cfg), "--mode", "blur", "--engine", "mock"]) == 0

        input_path, output = mock_run.call_args[0]
        settings = mock_run.call_args.kwargs["settings"]
        assert input_path == str(tmp_path / "clip.mp4")
        assert output == str(tmp_path / "keyed.mp4")
        assert settings.effects.mode == EffectMode.BLUR
        assert settings.effects.engine == EffectEngine.MOCK
        assert settings.effects.blur_radius_px == 7
        assert settings.effects.enabled is True

    def test_positional_input_and_default_output(self):
        with patch("livescene.app.run_headless", return_value=0) as mock_run:
            main(["--headless", "talk.mp4"])
        assert mock_run.call_args[0] == ("talk.mp4", "livescene_output.mp4")

    def test_mode_off_disables(self):
        with patch("livescene.app.run_headless", return_value=0) as mock_run:
            main(["--headless", "talk.mp4", "--mode", "off"])
        assert mock_run.call_args.kwargs["settings"].effects.enabled is False


class TestHeadless:
    # run_headless reuses the running app; make sure it is pytest-qt's QApplication
    @pytest.fixture(autouse=True)
    def _app(self, qapp):
        return qapp

    def test_missing_input_returns_error(self, tmp_path, capsys):
        result = run_headless("/nonexistent/video.mp4", str(tmp_path / "out.mp4"), quiet=True)
        assert result == 1
        assert "Error" in capsys.readouterr().err

    def test_passthrough_copies_frames(self, green_screen_video, tmp_path):
        output = str(tmp_path / "copy.mp4")
        assert run_headless(green_screen_video, output, quiet=True) == 0
        cap = cv2.VideoCapture(output)
        try:
            assert int(cap.get(cv2.CAP_PROP_FRAME_COUNT)) == 12
        finally:
            cap.release()

    def test_chroma_key_replaces_background(self, green_screen_video, tmp_path, capsys):
        settings = Settings()
        settings.effects.update(enabled=True, mode="chromaKey", background_color="#0000ff",
                                edge_softness_px=0)
        output = os.path.join(tmp_path, "keyed.mp4")
        assert run_headless(green_screen_video, output, settings=settings) == 0
        assert "Done!" in capsys.readouterr().out

        cap = cv2.VideoCapture(output)
        try:
            ok, frame = cap.read()
        finally:
            cap.release()
        assert ok
        b, g, r = (int(v) for v in frame[4, 4])
        # Background keyed to blue (lossy codec)
        assert b > 180 and g < 80
        b, g, r = (int(v) for v in frame[24, 32])
        # Gray block kept
        assert abs(b - 128) < 30 and abs(g - 128) < 30 and abs(r - 128) < 30
