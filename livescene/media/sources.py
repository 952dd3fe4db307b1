"""Binds scene layers to live capture resources.

Each layer with a live source has a SourceBinding: the raw device
resource, the outward resource currently exposed to consumers (the raw
one, or a processed one while effects are on) and a preview element.
The binding holds one reference on the raw resource for the lifetime of
the capture, plus one on the outward resource whenever that is not the
raw one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from PySide6.QtCore import QObject, Signal

from livescene.errors import CaptureError, PlaybackError
from livescene.media.element import VideoElement
from livescene.media.registry import TrackRegistry
from livescene.media.resource import CaptureKind, VideoResource, open_capture

logger = logging.getLogger(__name__)

CaptureFactory = Callable[[CaptureKind], VideoResource]


@dataclass
class SourceBinding:
    layer_id: str
    kind: CaptureKind
    raw: VideoResource
    outward: VideoResource
    preview: VideoElement


class LiveSourceManager(QObject):
    """Owns the layer -> live source bindings for one session.

    Signals:
        capture_started: layer_id
        capture_stopped: layer_id
        outward_changed: (layer_id, VideoResource)
    """

    capture_started = Signal(str)
    capture_stopped = Signal(str)
    outward_changed = Signal(str, object)

    def __init__(
        self,
        registry: TrackRegistry,
        capture_factory: CaptureFactory | None = None,
        parent: QObject | None = None,
    ):
        super().__init__(parent)
        self._registry = registry
        self._capture_factory = capture_factory or open_capture
        self._bindings: dict[str, SourceBinding] = {}

    def start_capture(self, layer_id: str, kind: CaptureKind | str) -> VideoResource:
        """Open a capture for *layer_id*. Raises CaptureError on failure."""
        kind = CaptureKind(kind)
        # Free the device before reopening it for the same layer
        self.stop_capture(layer_id)
        resource = self._capture_factory(kind)
        self.register_resource(layer_id, resource, kind)
        return resource

    def register_resource(
        self, layer_id: str, resource: VideoResource, kind: CaptureKind | str
    ) -> SourceBinding:
        """Bind an already-open resource (e.g. a phone relay) to a layer."""
        if not resource.is_live:
            raise CaptureError(f"Resource {resource.id} has already ended")
        self.stop_capture(layer_id)

        preview = VideoElement(resource, parent=self)
        binding = SourceBinding(
            layer_id=layer_id,
            kind=CaptureKind(kind),
            raw=resource,
            outward=resource,
            preview=preview,
        )
        self._registry.acquire(resource)
        self._registry.on_cleanup(resource, lambda: self._drop_binding(layer_id, resource))
        resource.ended.connect(lambda: self._on_resource_ended(layer_id, resource))
        self._bindings[layer_id] = binding
        self._play_preview(binding)

        logger.info("Started %s capture %s for layer %s", binding.kind.value, resource.id, layer_id)
        self.capture_started.emit(layer_id)
        return binding

    def replace_outward_resource(self, layer_id: str, new_resource: VideoResource) -> bool:
        """Expose *new_resource* for the layer in place of the current one.

        The binding survives the swap, so anything keyed by the layer id
        stays valid. A preview that fails to play again is logged but does
        not fail the swap.
        """
        binding = self._bindings.get(layer_id)
        if binding is None:
            logger.warning("Cannot replace resource: no live source for layer %s", layer_id)
            return False
        if new_resource is binding.outward:
            return True
        if not new_resource.is_live:
            logger.warning("Cannot replace resource for layer %s: %s has ended", layer_id,
                           new_resource.id)
            return False

        if new_resource is not binding.raw:
            self._registry.acquire(new_resource)
        old = binding.outward
        binding.outward = new_resource
        if old is not binding.raw:
            self._registry.release(old)

        binding.preview.src_object = new_resource
        self._play_preview(binding)

        logger.info("Layer %s now exposes %s (was %s)", layer_id, new_resource.id, old.id)
        self.outward_changed.emit(layer_id, new_resource)
        return True

    def stop_capture(self, layer_id: str) -> None:
        """Release the layer's resources and forget its binding."""
        binding = self._bindings.pop(layer_id, None)
        if binding is None:
            return
        binding.preview.remove()
        binding.preview.deleteLater()
        if binding.outward is not binding.raw:
            self._registry.release(binding.outward)
        self._registry.release(binding.raw)
        logger.info("Stopped capture for layer %s", layer_id)
        self.capture_stopped.emit(layer_id)

    def close(self) -> None:
        for layer_id in list(self._bindings):
            self.stop_capture(layer_id)

    # --- Lookups ---

    def get_preview_element(self, layer_id: str) -> VideoElement | None:
        binding = self._bindings.get(layer_id)
        return binding.preview if binding else None

    def get_raw_resource(self, layer_id: str) -> VideoResource | None:
        binding = self._bindings.get(layer_id)
        return binding.raw if binding else None

    def get_outward_resource(self, layer_id: str) -> VideoResource | None:
        binding = self._bindings.get(layer_id)
        return binding.outward if binding else None

    def acquire_outward(self, layer_id: str) -> VideoResource | None:
        """Take a consumer reference on the layer's outward resource.

        The caller (e.g. viewer delivery) must release it on the registry.
        """
        resource = self.get_outward_resource(layer_id)
        if resource is not None:
            self._registry.acquire(resource)
        return resource

    def has_active_source(self, layer_id: str) -> bool:
        return layer_id in self._bindings

    def layer_ids(self) -> list[str]:
        return list(self._bindings)

    # --- Internals ---

    def _play_preview(self, binding: SourceBinding) -> None:
        try:
            binding.preview.play()
        except PlaybackError as exc:
            logger.warning("Preview for layer %s did not start: %s", binding.layer_id, exc)

    def _on_resource_ended(self, layer_id: str, resource: VideoResource) -> None:
        binding = self._bindings.get(layer_id)
        if binding is not None and binding.raw is resource:
            logger.info("Capture for layer %s ended", layer_id)
            self.stop_capture(layer_id)

    def _drop_binding(self, layer_id: str, resource: VideoResource) -> None:
        binding = self._bindings.get(layer_id)
        if binding is not None and binding.raw is resource:
            del self._bindings[layer_id]
            binding.preview.remove()
            if binding.outward is not binding.raw:
                self._registry.release(binding.outward)
            self.capture_stopped.emit(layer_id)
