"""Entry point for LiveScene - handles CLI arg parsing."""

import argparse
import logging
import sys

from livescene import __version__
from livescene.model.effects import EffectEngine, EffectMode


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="livescene",
        description="Live camera and screen presenter with background effects",
    )
    parser.add_argument(
        "files",
        nargs="*",
        help="Input video file (headless mode only)",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        help="Process a video file through the effects pipeline without any GUI",
    )
    parser.add_argument(
        "--input", "-i",
        type=str,
        default=None,
        help="Input video file (same as the positional argument)",
    )
    parser.add_argument(
        "--output", "-o",
        type=str,
        default=None,
        help="Output file path for headless mode (default: livescene_output.mp4)",
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to a YAML session configuration file",
    )
    parser.add_argument(
        "--camera",
        type=int,
        default=None,
        help="Camera device index (default: 0)",
    )
    parser.add_argument(
        "--mode",
        choices=[m.value for m in EffectMode],
        default=None,
        help="Effect mode; anything but 'off' also enables effects",
    )
    parser.add_argument(
        "--engine",
        choices=[e.value for e in EffectEngine],
        default=None,
        help="Background blur engine",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    from livescene.config import Settings

    settings = Settings() if args.headless else Settings.load()

    # Load YAML config if provided
    config = None
    if args.config:
        from livescene.yaml_config import load_session_config

        try:
            config = load_session_config(args.config)
        except (FileNotFoundError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        config.apply_to(settings)

    # Precedence: CLI flags > YAML > saved settings / defaults
    if args.camera is not None:
        settings.camera_index = args.camera
    if args.mode is not None:
        settings.effects.update(mode=args.mode, enabled=args.mode != EffectMode.OFF.value)
    if args.engine is not None:
        settings.effects.update(engine=args.engine)

    if args.headless:
        from livescene.app import run_headless

        # Precedence: CLI --input / positional > YAML input
        input_path = args.input or (args.files[0] if args.files else None) or (
            config.input_path if config else None
        )
        if not input_path:
            print("Error: headless mode needs an input video file", file=sys.stderr)
            return 2
        output = args.output or (config.output_path if config else None) or "livescene_output.mp4"
        return run_headless(input_path, output, settings=settings)

    from livescene.app import run_gui

    return run_gui(settings)


if __name__ == "__main__":
    sys.exit(main())
