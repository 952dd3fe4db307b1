"""QApplication setup and headless-mode runner."""

from __future__ import annotations

import logging
import sys
import time

logger = logging.getLogger(__name__)

# Longest a headless run waits for the segmentation model before starting
SEGMENTATION_WAIT_SEC = 60.0


def run_gui(settings=None) -> int:
    """Launch the LiveScene presenter window."""
    from PySide6.QtWidgets import QApplication

    from livescene.config import Settings
    from livescene.session import LiveSession
    from livescene.ui.main_window import MainWindow

    app = QApplication(sys.argv)
    app.setApplicationName("LiveScene")
    app.setOrganizationName("LiveScene")

    settings = settings or Settings.load()
    window = MainWindow(LiveSession(settings))
    window.show()

    result = app.exec()
    settings.save()
    return result


class FrameClock:
    """Manually ticked clock for reading a file one frame per output frame.

    Each tick moves a whole second, past any capture read cache.
    """

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def tick(self) -> None:
        self.now += 1.0


def run_headless(
    input_path: str,
    output_path: str,
    settings=None,
    quiet: bool = False,
    mask_source_factory=None,
) -> int:
    """Run the effects pipeline over a video file and write the result.

    Returns 0 on success, 1 on failure.
    """
    import cv2
    from PySide6.QtCore import QCoreApplication

    from livescene.config import Settings
    from livescene.effects.pipeline import EffectsPipeline
    from livescene.errors import CaptureError
    from livescene.media.registry import TrackRegistry
    from livescene.media.resource import CaptureResource

    app = QCoreApplication.instance() or QCoreApplication([])
    settings = settings or Settings()

    clock = FrameClock()
    try:
        raw = CaptureResource(input_path, clock=clock)
    except CaptureError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    registry = TrackRegistry()
    registry.acquire(raw)
    pipeline = EffectsPipeline(
        registry,
        config=settings.effects,
        mask_source_factory=mask_source_factory,
        fps=raw.fps,
        auto_draw=False,
    )
    pipeline.set_raw_resource(raw)
    _wait_for_segmentation(app, pipeline)

    writer = None
    frames = 0
    try:
        while raw.is_live:
            app.processEvents()
            clock.tick()
            if pipeline.instance is not None:
                pipeline.render_frame()
                frame = pipeline.output.read()
            else:
                frame = raw.read()
            if not raw.is_live:
                break
            if frame is None or frame.size == 0:
                continue

            if writer is None:
                h, w = frame.shape[:2]
                fourcc = cv2.VideoWriter_fourcc(*"mp4v")
                writer = cv2.VideoWriter(output_path, fourcc, raw.fps or 30.0, (w, h))
                if not writer.isOpened():
                    print(f"Error: cannot write {output_path}", file=sys.stderr)
                    return 1
            writer.write(cv2.cvtColor(frame, cv2.COLOR_RGBA2BGR))
            frames += 1
            if not quiet and frames % 30 == 0:
                print(f"  Frames: {frames}", end="\r")
    finally:
        if writer is not None:
            writer.release()
        pipeline.close()
        registry.release(raw)

    if frames == 0:
        print(f"Error: no frames read from {input_path}", file=sys.stderr)
        return 1
    if not quiet:
        print(f"\nDone! {frames} frames written to: {output_path}")
    return 0


def _wait_for_segmentation(app, pipeline) -> None:
    instance = pipeline.instance
    if instance is None or instance.mask_source is None:
        return
    deadline = time.monotonic() + SEGMENTATION_WAIT_SEC
    while time.monotonic() < deadline:
        app.processEvents()
        if instance.mask_ready or instance.mask_source is None:
            return
        time.sleep(0.01)
    logger.warning("Segmentation not ready after %.0fs; continuing without masks",
                   SEGMENTATION_WAIT_SEC)
