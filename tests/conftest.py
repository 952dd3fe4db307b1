"""Shared test fixtures: synthetic frames and videos, fake mask sources, offscreen setup."""

import os
import tempfile

import numpy as np
import pytest

# Force offscreen rendering for headless CI
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from livescene.media.registry import TrackRegistry  # noqa: E402
from livescene.media.resource import RelayResource  # noqa: E402
from livescene.segmentation.base import MaskSource  # noqa: E402


def solid_frame(color, width=8, height=6, alpha=255) -> np.ndarray:
    """RGBA frame filled with one color."""
    frame = np.zeros((height, width, 4), dtype=np.uint8)
    frame[..., :3] = color
    frame[..., 3] = alpha
    return frame


def split_frame(left, right, width=8, height=6) -> np.ndarray:
    """RGBA frame with *left* color on the left half and *right* on the right."""
    frame = solid_frame(left, width, height)
    frame[:, width // 2:, :3] = right
    return frame


class FakeMaskSource(MaskSource):
    """MaskSource with scripted init and a fixed mask.

    ``mask`` is published as soon as ``set_video()`` is called. With a
    ``gate`` (threading.Event), init() blocks until the gate is set.
    """

    name = "fake"

    def __init__(self, mask=None, fail_with=None, gate=None, **kwargs):
        super().__init__(**kwargs)
        self.mask = mask
        self.fail_with = fail_with
        self.gate = gate
        self.init_calls = 0
        self.video = None
        self.closed = False
        self.close_calls = 0

    def init(self) -> None:
        self.init_calls += 1
        if self.gate is not None:
            self.gate.wait(10)
        if self.fail_with is not None:
            raise self.fail_with

    def set_video(self, frame_source) -> None:
        self.video = frame_source
        if self.mask is not None:
            self._publish_mask(self.mask)

    def close(self) -> None:
        self.closed = True
        self.close_calls += 1
        self._clear_mask()

    def publish(self, mask) -> None:
        self._publish_mask(mask)


class CountingResource(RelayResource):
    """RelayResource that counts how often its device was released."""

    def __init__(self, frame=None, **kwargs):
        super().__init__(**kwargs)
        self.release_calls = 0
        if frame is not None:
            self.push_frame(frame)

    def _release(self) -> None:
        self.release_calls += 1


@pytest.fixture
def registry():
    return TrackRegistry()


@pytest.fixture
def make_resource():
    """Factory for CountingResources preloaded with a frame."""

    def _make(color=(10, 200, 30), width=8, height=6):
        return CountingResource(solid_frame(color, width, height))

    return _make


@pytest.fixture
def mask_sources():
    """Factory for FakeMaskSources that records every instance it makes.

    Call ``mask_sources.factory`` as a pipeline mask_source_factory;
    set ``mask_sources.mask`` / ``fail_with`` / ``gate`` beforehand.
    """

    class Recorder:
        def __init__(self):
            self.mask = None
            self.fail_with = None
            self.gate = None
            self.created = []
            self.qualities = []

        def factory(self, quality):
            self.qualities.append(quality)
            source = FakeMaskSource(mask=self.mask, fail_with=self.fail_with, gate=self.gate)
            self.created.append(source)
            return source

    return Recorder()


@pytest.fixture(scope="session")
def tmp_video_dir():
    """Session-scoped temp directory for synthetic test videos."""
    with tempfile.TemporaryDirectory(prefix="livescene_test_") as d:
        yield d


def _make_video(path: str, frames: int, fps: float, size: tuple[int, int], make_frame):
    """Helper to create a synthetic video using OpenCV."""
    import cv2

    writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*"mp4v"), fps, size)
    for i in range(frames):
        writer.write(cv2.cvtColor(make_frame(i), cv2.COLOR_RGB2BGR))
    writer.release()


@pytest.fixture(scope="session")
def green_screen_video(tmp_video_dir):
    """Green background with a gray block in the middle. 12 frames @ 12fps, 64x48."""
    path = os.path.join(tmp_video_dir, "green_screen.mp4")

    def make_frame(i):
        frame = np.zeros((48, 64, 3), dtype=np.uint8)
        frame[:, :] = [0, 255, 0]
        frame[16:32, 24:40] = [128, 128, 128]
        return frame

    _make_video(path, frames=12, fps=12, size=(64, 48), make_frame=make_frame)
    return path
