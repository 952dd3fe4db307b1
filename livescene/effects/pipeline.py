"""Effects pipeline: turns a raw camera resource into a processed one.

The pipeline is rebuilt only when its structural key changes: the raw
resource, ``enabled``, ``mode`` or ``engine``. Each rebuild fully tears
down the previous PipelineInstance (draw loop, staging canvases,
segmentation session) before constructing the next. Every other effects
field is read from the shared EffectsConfig at the top of each frame, so
slider drags never rebuild anything.

All failures fall back toward showing the unmodified camera frame.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from PySide6.QtCore import QObject, QTimer, Signal, Slot

from livescene.effects.canvas import Canvas
from livescene.effects.chroma import apply_chroma_key
from livescene.errors import CaptureUnsupportedError, PlaybackError, RenderingContextError
from livescene.media.element import VideoElement
from livescene.media.registry import TrackRegistry
from livescene.media.resource import VideoResource
from livescene.model.effects import (
    STRUCTURAL_FIELDS,
    BlurEffect,
    ChromaKeyEffect,
    EffectEngine,
    EffectMode,
    EffectQuality,
    EffectsConfig,
    RemoveBackgroundEffect,
)
from livescene.segmentation.base import MaskSource
from livescene.workers.segmenter_worker import SegmenterInitWorker

logger = logging.getLogger(__name__)

MaskSourceFactory = Callable[[EffectQuality], MaskSource]


def default_mask_source_factory(quality: EffectQuality) -> MaskSource:
    from livescene.segmentation.mediapipe import MediaPipeMaskSource

    return MediaPipeMaskSource(quality=quality)


@dataclass(frozen=True)
class StructuralKey:
    resource_id: str | None
    enabled: bool
    mode: EffectMode
    engine: EffectEngine

    @property
    def is_passthrough(self) -> bool:
        return not self.enabled or self.mode == EffectMode.OFF

    @property
    def uses_segmentation(self) -> bool:
        if self.is_passthrough:
            return False
        if self.mode == EffectMode.REMOVE_BACKGROUND:
            return True
        return self.mode == EffectMode.BLUR and self.engine == EffectEngine.ML_SEGMENTATION


@dataclass
class PipelineInstance:
    """Everything one structural configuration allocates."""

    key: StructuralKey
    generation: int
    element: VideoElement
    output_canvas: Canvas
    output: VideoResource
    blur_canvas: Canvas | None = None
    fg_canvas: Canvas | None = None
    mask_source: MaskSource | None = None
    mask_ready: bool = False
    timer: QTimer | None = None
    fallback_logged: bool = False
    frames_drawn: int = 0

    @property
    def canvases(self) -> list[Canvas]:
        return [c for c in (self.output_canvas, self.blur_canvas, self.fg_canvas) if c is not None]


class EffectsPipeline(QObject):
    """Produces the outward video resource for one raw camera resource.

    Signals:
        output_changed: the new output VideoResource (or None). Emitted
            once per rebuild, only when the output identity changes.
    """

    output_changed = Signal(object)

    def __init__(
        self,
        registry: TrackRegistry,
        config: EffectsConfig | None = None,
        mask_source_factory: MaskSourceFactory | None = None,
        canvas_factory: Callable[[int, int], Canvas] = Canvas,
        fps: float = 30.0,
        auto_draw: bool = True,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self._registry = registry
        self._config = config if config is not None else EffectsConfig()
        self._mask_source_factory = mask_source_factory or default_mask_source_factory
        self._canvas_factory = canvas_factory
        self._fps = fps
        self._auto_draw = auto_draw

        self._raw: VideoResource | None = None
        self._key: StructuralKey | None = None
        self._instance: PipelineInstance | None = None
        self._output: VideoResource | None = None
        self._generation = 0
        self._init_workers: dict[int, SegmenterInitWorker] = {}
        self._capture_unsupported = False
        self.rebuild_count = 0

        self._renderers = {
            EffectMode.BLUR: self._draw_blur,
            EffectMode.REMOVE_BACKGROUND: self._draw_remove_background,
            EffectMode.CHROMA_KEY: self._draw_chroma_key,
        }

    # --- Properties ---

    @property
    def config(self) -> EffectsConfig:
        return self._config

    @property
    def raw_resource(self) -> VideoResource | None:
        return self._raw

    @property
    def output(self) -> VideoResource | None:
        return self._output

    @property
    def instance(self) -> PipelineInstance | None:
        return self._instance

    def structural_key(self) -> StructuralKey:
        return StructuralKey(
            resource_id=self._raw.id if self._raw is not None else None,
            enabled=self._config.enabled,
            mode=self._config.mode,
            engine=self._config.engine,
        )

    # --- Inputs ---

    def set_raw_resource(self, resource: VideoResource | None) -> None:
        """Switch to a new raw resource, holding one reference to it."""
        if resource is self._raw:
            return
        previous = self._raw
        if resource is not None:
            self._registry.acquire(resource)
        self._raw = resource
        self.refresh()
        if previous is not None:
            self._registry.release(previous)

    def update_config(self, **changes) -> set[str]:
        """Update effects fields; rebuilds only for structural changes."""
        changed = self._config.update(**changes)
        if changed & STRUCTURAL_FIELDS:
            self.refresh()
        return changed

    def refresh(self) -> None:
        """Rebuild if the structural key differs from the running instance."""
        key = self.structural_key()
        if key == self._key:
            return
        self._teardown_instance()
        self._set_output(self._build(key))

    # --- Lifecycle ---

    def teardown(self) -> None:
        """Stop the current instance. A no-op when nothing is running."""
        self._teardown_instance()
        self._key = None
        self._set_output(None)

    def close(self) -> None:
        """Tear down and drop the reference to the raw resource."""
        self.teardown()
        # Pending inits close their own mask sources when they return
        for worker in list(self._init_workers.values()):
            worker.ready.disconnect(self._on_segmenter_ready)
            worker.failed.disconnect(self._on_segmenter_failed)
            worker.discard()
        self._init_workers.clear()
        if self._raw is not None:
            raw, self._raw = self._raw, None
            self._registry.release(raw)

    def _set_output(self, output: VideoResource | None) -> None:
        if output is self._output:
            return
        self._output = output
        self.output_changed.emit(output)

    def _build(self, key: StructuralKey) -> VideoResource | None:
        self.rebuild_count += 1
        self._generation += 1
        self._key = key
        logger.info(
            "Rebuilding effects pipeline #%d (resource=%s enabled=%s mode=%s engine=%s)",
            self.rebuild_count, key.resource_id, key.enabled, key.mode.value, key.engine.value,
        )

        raw = self._raw
        if raw is None:
            return None
        if key.is_passthrough:
            return raw
        if self._capture_unsupported:
            return raw

        try:
            output_canvas = self._canvas_factory(raw.width, raw.height)
            blur_canvas = None
            fg_canvas = None
            if key.uses_segmentation and key.mode == EffectMode.BLUR:
                blur_canvas = self._canvas_factory(raw.width, raw.height)
            if key.mode != EffectMode.BLUR or key.uses_segmentation:
                fg_canvas = self._canvas_factory(raw.width, raw.height)
        except RenderingContextError as exc:
            logger.warning("No rendering context (%s); passing raw video through", exc)
            return raw

        try:
            output = output_canvas.capture_stream(self._fps)
        except CaptureUnsupportedError as exc:
            logger.warning("Canvas capture unsupported (%s); passing raw video through", exc)
            self._capture_unsupported = True
            return raw
        self._registry.acquire(output)
        output.label = f"effects:{key.mode.value}"

        instance = PipelineInstance(
            key=key,
            generation=self._generation,
            element=VideoElement(raw, parent=self),
            output_canvas=output_canvas,
            output=output,
            blur_canvas=blur_canvas,
            fg_canvas=fg_canvas,
        )
        self._instance = instance

        if key.uses_segmentation:
            self._start_segmentation(instance)

        try:
            instance.element.play()
        except PlaybackError as exc:
            logger.warning("Playback rejected (%s); draw loop started anyway", exc)

        if self._auto_draw:
            timer = QTimer(self)
            timer.setSingleShot(True)
            timer.setInterval(max(1, int(1000 / self._fps)))
            timer.timeout.connect(self._on_tick)
            instance.timer = timer
            timer.start()

        logger.info("Created processed output %s", output.id)
        return output

    def _teardown_instance(self) -> None:
        instance, self._instance = self._instance, None
        if instance is None:
            return
        logger.info("Tearing down effects pipeline #%d", instance.generation)
        if instance.timer is not None:
            instance.timer.stop()
            instance.timer.deleteLater()
            instance.timer = None
        if instance.mask_source is not None:
            instance.mask_source.close()
            instance.mask_source = None
        instance.mask_ready = False
        instance.element.remove()
        instance.element.deleteLater()
        instance.blur_canvas = None
        instance.fg_canvas = None
        self._registry.release(instance.output)

    # --- Segmentation ---

    def _start_segmentation(self, instance: PipelineInstance) -> None:
        logger.info("Initializing segmentation (quality=%s)", self._config.quality.value)
        try:
            mask_source = self._mask_source_factory(self._config.quality)
        except Exception as exc:
            logger.warning("Segmentation unavailable, falling back: %s", exc)
            return
        instance.mask_source = mask_source
        worker = SegmenterInitWorker(mask_source, instance.generation)
        worker.ready.connect(self._on_segmenter_ready)
        worker.failed.connect(self._on_segmenter_failed)
        self._init_workers[instance.generation] = worker
        worker.start()

    def _finish_worker(self, generation: int) -> SegmenterInitWorker | None:
        worker = self._init_workers.pop(generation, None)
        if worker is not None:
            worker.wait()
        return worker

    @Slot(int)
    def _on_segmenter_ready(self, generation: int) -> None:
        worker = self._finish_worker(generation)
        instance = self._instance
        if instance is None or instance.generation != generation or instance.mask_source is None:
            # The instance that asked for this session is gone
            if worker is not None:
                worker.mask_source.close()
            return
        logger.info("Segmentation ready")
        instance.mask_source.set_video(instance.element)
        instance.mask_ready = True

    @Slot(int, str)
    def _on_segmenter_failed(self, generation: int, message: str) -> None:
        worker = self._finish_worker(generation)
        if worker is not None:
            worker.mask_source.close()
        instance = self._instance
        if instance is not None and instance.generation == generation:
            logger.warning("Segmentation init failed, showing unmasked video: %s", message)
            instance.mask_source = None

    def _latest_mask(self, instance: PipelineInstance) -> np.ndarray | None:
        if instance.mask_source is None or not instance.mask_ready:
            return None
        return instance.mask_source.get_latest_mask()

    # --- Drawing ---

    @Slot()
    def _on_tick(self) -> None:
        instance = self._instance
        try:
            self.render_frame()
        finally:
            if self._instance is instance and instance is not None and instance.timer is not None:
                instance.timer.start()

    def render_frame(self) -> bool:
        """Draw one frame into the output canvas.

        Returns False without drawing when there is no running instance or
        the input has no frame with nonzero dimensions yet.
        """
        instance = self._instance
        if instance is None:
            return False
        frame = instance.element.current_frame()
        width, height = instance.element.video_width, instance.element.video_height
        if frame is None or not width or not height:
            return False

        for canvas in instance.canvases:
            canvas.resize(width, height)

        mode = instance.key.mode
        self._renderers[mode](instance, frame, self._config.params_for(mode))
        instance.frames_drawn += 1
        return True

    def _passthrough(self, instance: PipelineInstance, frame: np.ndarray, reason: str) -> None:
        if not instance.fallback_logged:
            logger.warning("%s; showing unmodified video", reason)
            instance.fallback_logged = True
        out = instance.output_canvas
        out.clear()
        out.draw_image(frame)

    def _draw_blur(self, instance: PipelineInstance, frame: np.ndarray, params: BlurEffect) -> None:
        out = instance.output_canvas
        if not instance.key.uses_segmentation:
            # Mock engine: everything is blurred together
            out.clear()
            out.draw_image(frame, blur_px=params.radius_px)
            return

        mask = self._latest_mask(instance)
        if mask is None:
            self._passthrough(instance, frame, "No segmentation mask for background blur")
            return

        bg = instance.blur_canvas
        bg.clear()
        bg.draw_image(frame, blur_px=params.radius_px)
        out.clear()
        out.draw_image(bg.pixels)

        fg = instance.fg_canvas
        fg.clear()
        fg.draw_image(frame)
        fg.mask_in(mask)
        out.draw_image(fg.pixels)

    def _draw_remove_background(
        self, instance: PipelineInstance, frame: np.ndarray, params: RemoveBackgroundEffect
    ) -> None:
        mask = self._latest_mask(instance)
        if mask is None:
            self._passthrough(instance, frame, "No segmentation mask for background removal")
            return

        out = instance.output_canvas
        out.fill(params.background)

        fg = instance.fg_canvas
        fg.clear()
        fg.draw_image(frame)
        fg.mask_in(mask)
        fg.feather(params.edge_softness_px)
        out.draw_image(fg.pixels)

    def _draw_chroma_key(
        self, instance: PipelineInstance, frame: np.ndarray, params: ChromaKeyEffect
    ) -> None:
        fg = instance.fg_canvas
        fg.clear()
        fg.draw_image(frame)
        fg.put_image_data(
            apply_chroma_key(
                fg.pixels,
                params.key_color,
                params.tolerance_percent,
                params.edge_softness_px,
            )
        )

        out = instance.output_canvas
        out.fill(params.background)
        out.draw_image(fg.pixels)
