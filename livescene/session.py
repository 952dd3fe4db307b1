"""LiveSession: one presenter's registry, sources and effects pipelines."""

from __future__ import annotations

import logging

from PySide6.QtCore import QObject

from livescene.config import Settings
from livescene.effects.pipeline import EffectsPipeline, MaskSourceFactory
from livescene.media.registry import TrackRegistry
from livescene.media.resource import CaptureKind, VideoResource, open_capture
from livescene.media.sources import CaptureFactory, LiveSourceManager
from livescene.model.effects import EffectQuality
from livescene.segmentation.base import MaskSource

logger = logging.getLogger(__name__)


class LiveSession(QObject):
    """Owns the live video state for one presenting session.

    Camera layers get an EffectsPipeline fed by the layer's raw resource;
    whenever a pipeline's output changes it is swapped into the layer's
    outward stream. All pipelines share ``settings.effects`` as their live
    parameter block.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        capture_factory: CaptureFactory | None = None,
        mask_source_factory: MaskSourceFactory | None = None,
        auto_draw: bool = True,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self.settings = settings or Settings()
        self.registry = TrackRegistry()
        self.sources = LiveSourceManager(
            self.registry,
            capture_factory=capture_factory or self._open_capture,
            parent=self,
        )
        self._mask_source_factory = mask_source_factory or self._default_mask_source
        self._auto_draw = auto_draw
        self.pipelines: dict[str, EffectsPipeline] = {}
        self.sources.capture_stopped.connect(self._on_capture_stopped)

    @property
    def effects(self):
        return self.settings.effects

    def _open_capture(self, kind: CaptureKind) -> VideoResource:
        return open_capture(
            kind,
            camera_index=self.settings.camera_index,
            screen_monitor=self.settings.screen_monitor,
            fps=self.settings.capture_fps,
        )

    def _default_mask_source(self, quality: EffectQuality) -> MaskSource:
        from livescene.segmentation.mediapipe import MediaPipeMaskSource

        return MediaPipeMaskSource(quality=quality, max_age_sec=self.settings.mask_max_age_sec)

    # --- Layers ---

    def start_camera(self, layer_id: str) -> VideoResource:
        resource = self.sources.start_capture(layer_id, CaptureKind.CAMERA)
        self._attach_pipeline(layer_id, resource)
        return resource

    def start_screen(self, layer_id: str) -> VideoResource:
        return self.sources.start_capture(layer_id, CaptureKind.SCREEN)

    def add_relay(self, layer_id: str, resource: VideoResource, with_effects: bool = True) -> None:
        """Bind a phone-camera relay resource; it gets effects like a camera."""
        self.sources.register_resource(layer_id, resource, CaptureKind.PHONE)
        if with_effects:
            self._attach_pipeline(layer_id, resource)

    def stop(self, layer_id: str) -> None:
        pipeline = self.pipelines.pop(layer_id, None)
        if pipeline is not None:
            pipeline.close()
            pipeline.deleteLater()
        self.sources.stop_capture(layer_id)

    def _attach_pipeline(self, layer_id: str, resource: VideoResource) -> EffectsPipeline:
        pipeline = EffectsPipeline(
            self.registry,
            config=self.settings.effects,
            mask_source_factory=self._mask_source_factory,
            fps=self.settings.output_fps,
            auto_draw=self._auto_draw,
            parent=self,
        )
        pipeline.output_changed.connect(
            lambda output, layer_id=layer_id: self._on_pipeline_output(layer_id, output)
        )
        self.pipelines[layer_id] = pipeline
        pipeline.set_raw_resource(resource)
        return pipeline

    def _on_pipeline_output(self, layer_id: str, output: VideoResource | None) -> None:
        if output is None:
            return
        self.sources.replace_outward_resource(layer_id, output)

    def _on_capture_stopped(self, layer_id: str) -> None:
        pipeline = self.pipelines.pop(layer_id, None)
        if pipeline is not None:
            pipeline.close()
            pipeline.deleteLater()

    # --- Effects ---

    def update_effects(self, **changes) -> set[str]:
        """Apply effects changes to every pipeline's shared config."""
        changed = self.settings.effects.update(**changes)
        if changed:
            for pipeline in self.pipelines.values():
                pipeline.refresh()
        return changed

    def acquire_outward(self, layer_id: str) -> VideoResource | None:
        return self.sources.acquire_outward(layer_id)

    def release(self, resource: VideoResource) -> None:
        self.registry.release(resource)

    def close(self) -> None:
        for layer_id in list(self.pipelines):
            self.stop(layer_id)
        self.sources.close()
        if len(self.registry):
            logger.warning("Session closed with %d resources still referenced", len(self.registry))
            self.registry.log_active()
            self.registry.release_all()
