"""Person segmentation via MediaPipe Tasks ImageSegmenter.

Runs the selfie segmenter in LIVE_STREAM mode: frames are submitted from
a GUI-thread timer at the preset inference rate and results arrive on a
MediaPipe thread, where the newest confidence mask is published for the
pipeline to poll.
"""

from __future__ import annotations

import importlib
import logging
import threading
import time

import numpy as np
from PySide6.QtCore import QTimer

from livescene.model.effects import EffectQuality
from livescene.segmentation.base import MaskSource
from livescene.segmentation.models import ModelManager

logger = logging.getLogger(__name__)


class MediaPipeMaskSource(MaskSource):
    """Selfie segmentation masks from MediaPipe."""

    name = "mediapipe"

    def __init__(
        self,
        quality: EffectQuality = EffectQuality.BALANCED,
        model_manager: ModelManager | None = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.quality = EffectQuality(quality)
        self._manager = model_manager or ModelManager()
        self._model_name, self._inference_fps = self._manager.preset_for(self.quality)
        self._state_lock = threading.Lock()
        self._mp = None
        self._segmenter = None
        self._video = None
        self._timer: QTimer | None = None
        self._last_timestamp_ms = -1
        self._closed = False

    def init(self) -> None:
        try:
            mp = importlib.import_module("mediapipe")
        except ImportError:
            raise RuntimeError(
                "mediapipe is not installed. Install with: "
                "pip install 'livescene[segmentation]'"
            )

        model_path = self._manager.ensure_model(self._model_name)
        vision = mp.tasks.vision
        options = vision.ImageSegmenterOptions(
            base_options=mp.tasks.BaseOptions(model_asset_path=str(model_path)),
            running_mode=vision.RunningMode.LIVE_STREAM,
            output_confidence_masks=True,
            output_category_mask=False,
            result_callback=self._on_result,
        )
        segmenter = vision.ImageSegmenter.create_from_options(options)

        with self._state_lock:
            if self._closed:
                # Closed while the model was loading
                segmenter.close()
                return
            self._mp = mp
            self._segmenter = segmenter
        logger.info("MediaPipe segmenter loaded (%s, %.0f fps)", self._model_name, self._inference_fps)

    def set_video(self, frame_source) -> None:
        self._video = frame_source
        if self._segmenter is None or self._timer is not None:
            return
        self._timer = QTimer()
        self._timer.setInterval(max(1, int(1000 / self._inference_fps)))
        self._timer.timeout.connect(self._step)
        self._timer.start()

    def _step(self) -> None:
        if self._segmenter is None or self._video is None:
            return
        frame = self._video.current_frame()
        if frame is None or frame.size == 0:
            return
        timestamp_ms = int(time.monotonic() * 1000)
        if timestamp_ms <= self._last_timestamp_ms:
            return
        self._last_timestamp_ms = timestamp_ms
        image = self._mp.Image(
            image_format=self._mp.ImageFormat.SRGB,
            data=np.ascontiguousarray(frame[..., :3]),
        )
        try:
            self._segmenter.segment_async(image, timestamp_ms)
        except (RuntimeError, ValueError) as exc:
            logger.debug("segment_async rejected frame: %s", exc)

    def _on_result(self, result, output_image, timestamp_ms: int) -> None:
        masks = result.confidence_masks
        if not masks:
            return
        # The last category is the person
        mask = np.array(masks[-1].numpy_view(), dtype=np.float32)
        if mask.ndim == 3:
            mask = mask[..., 0]
        self._publish_mask(mask)

    def close(self) -> None:
        with self._state_lock:
            self._closed = True
            segmenter, self._segmenter = self._segmenter, None
        if self._timer is not None:
            self._timer.stop()
            self._timer.deleteLater()
            self._timer = None
        if segmenter is not None:
            segmenter.close()
        self._video = None
        self._clear_mask()
