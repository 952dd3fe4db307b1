"""Reference counting for live video resources.

A single capture can feed several consumers at once (local preview, the
effects pipeline, viewer delivery, the phone-camera relay). Each consumer
holds one reference; the resource is physically stopped only when the
last one is released, after every registered cleanup callback has run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from livescene.media.resource import VideoResource

logger = logging.getLogger(__name__)


@dataclass
class ReferenceEntry:
    resource: VideoResource
    count: int = 0
    cleanup_callbacks: list[Callable[[], None]] = field(default_factory=list)


class TrackRegistry:
    """Reference-count table for VideoResources, owned by one session."""

    def __init__(self) -> None:
        self._entries: dict[str, ReferenceEntry] = {}

    def __contains__(self, resource: VideoResource) -> bool:
        entry = self._entries.get(resource.id)
        return entry is not None and entry.count > 0

    def __len__(self) -> int:
        return sum(1 for e in self._entries.values() if e.count > 0)

    def ref_count(self, resource: VideoResource) -> int:
        entry = self._entries.get(resource.id)
        return entry.count if entry else 0

    def acquire(self, resource: VideoResource) -> None:
        """Add one holder for *resource*.

        Call exactly once per ownership edge and pair it with one release().
        """
        entry = self._entries.get(resource.id)
        if entry is None:
            entry = self._entries[resource.id] = ReferenceEntry(resource)
        entry.count += 1
        logger.debug("Resource %s ref count: %d -> %d", resource.id, entry.count - 1, entry.count)

    def release(self, resource: VideoResource) -> None:
        """Drop one holder; the last release cleans up and stops the resource.

        Releasing a resource with no outstanding references logs a warning
        and changes nothing.
        """
        entry = self._entries.get(resource.id)
        if entry is None or entry.count <= 0:
            logger.warning("Release of resource %s with no outstanding references", resource.id)
            return

        entry.count -= 1
        logger.debug("Resource %s ref count: %d -> %d", resource.id, entry.count + 1, entry.count)
        if entry.count == 0:
            self._finalize(entry)

    def on_cleanup(self, resource: VideoResource, callback: Callable[[], None]) -> None:
        """Run *callback* just before *resource* is physically stopped."""
        entry = self._entries.get(resource.id)
        if entry is None:
            entry = self._entries[resource.id] = ReferenceEntry(resource)
        entry.cleanup_callbacks.append(callback)

    def force_release(self, resource: VideoResource) -> None:
        """Clean up and stop *resource* regardless of its count.

        Unsafe: other holders keep references to a stopped resource. Only
        for unrecoverable error paths.
        """
        logger.warning("Force releasing resource %s", resource.id)
        entry = self._entries.get(resource.id) or ReferenceEntry(resource)
        entry.count = 0
        self._finalize(entry)

    def release_all(self) -> None:
        """Force release every live entry (session teardown)."""
        for entry in list(self._entries.values()):
            if entry.count > 0:
                self.force_release(entry.resource)
        self._entries.clear()

    def active_resources(self) -> list[tuple[VideoResource, int]]:
        return [(e.resource, e.count) for e in self._entries.values() if e.count > 0]

    def log_active(self) -> None:
        active = self.active_resources()
        logger.info("Active video resources (%d)", len(active))
        for resource, count in active:
            logger.info("  %s [%s] refs=%d state=%s", resource.id, resource.label, count,
                        resource.ready_state.value)

    def _finalize(self, entry: ReferenceEntry) -> None:
        callbacks, entry.cleanup_callbacks = entry.cleanup_callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.warning("Cleanup callback for resource %s failed", entry.resource.id,
                               exc_info=True)
        entry.resource.stop()
        if self._entries.get(entry.resource.id) is entry:
            del self._entries[entry.resource.id]
        if entry.count > 0:
            logger.warning("Resource %s acquired during cleanup; dropping %d stale reference(s)",
                           entry.resource.id, entry.count)
            entry.count = 0
        logger.info("Resource %s stopped and cleaned up", entry.resource.id)
