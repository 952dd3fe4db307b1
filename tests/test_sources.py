"""Tests for LiveSourceManager layer bindings and outward replacement."""

import pytest

from conftest import CountingResource, solid_frame
from livescene.errors import CaptureError
from livescene.media.resource import CaptureKind
from livescene.media.sources import LiveSourceManager


@pytest.fixture
def opened():
    """Resources handed out by the fake capture factory, in order."""
    return []


@pytest.fixture
def manager(registry, opened):
    def factory(kind):
        resource = CountingResource(solid_frame((5, 5, 5)))
        resource.label = CaptureKind(kind).value
        opened.append(resource)
        return resource

    m = LiveSourceManager(registry, capture_factory=factory)
    yield m
    m.close()


class TestStartStop:
    def test_start_binds_raw_and_outward(self, manager, registry, opened):
        started = []
        manager.capture_started.connect(started.append)
        resource = manager.start_capture("cam", "camera")
        assert resource is opened[0]
        assert manager.get_raw_resource("cam") is resource
        assert manager.get_outward_resource("cam") is resource
        assert registry.ref_count(resource) == 1
        assert manager.get_preview_element("cam").playing
        assert started == ["cam"]

    def test_stop_releases_and_stops_device(self, manager, opened):
        stopped = []
        manager.capture_stopped.connect(stopped.append)
        manager.start_capture("cam", "camera")
        manager.stop_capture("cam")
        assert opened[0].release_calls == 1
        assert not manager.has_active_source("cam")
        assert stopped == ["cam"]

    def test_stop_unknown_layer_is_noop(self, manager):
        stopped = []
        manager.capture_stopped.connect(stopped.append)
        manager.stop_capture("nope")
        assert stopped == []

    def test_restart_stops_previous(self, manager, opened):
        manager.start_capture("cam", "camera")
        manager.start_capture("cam", "camera")
        assert opened[0].release_calls == 1
        assert opened[1].is_live
        assert manager.layer_ids() == ["cam"]

    def test_factory_error_propagates(self, registry):
        def failing(kind):
            raise CaptureError("permission denied")

        m = LiveSourceManager(registry, capture_factory=failing)
        with pytest.raises(CaptureError):
            m.start_capture("cam", "camera")
        assert not m.has_active_source("cam")

    def test_device_end_stops_binding(self, manager, opened):
        stopped = []
        manager.capture_stopped.connect(stopped.append)
        manager.start_capture("cam", "camera")
        opened[0].finish()
        assert stopped == ["cam"]
        assert not manager.has_active_source("cam")
        assert opened[0].release_calls == 1

    def test_register_ended_resource_raises(self, manager):
        relay = CountingResource()
        relay.finish()
        with pytest.raises(CaptureError):
            manager.register_resource("phone", relay, "phone")

    def test_register_relay(self, manager, registry):
        relay = CountingResource(solid_frame((1, 2, 3)))
        binding = manager.register_resource("phone", relay, CaptureKind.PHONE)
        assert binding.kind == CaptureKind.PHONE
        assert registry.ref_count(relay) == 1


class TestReplaceOutward:
    def test_unknown_layer(self, manager):
        assert manager.replace_outward_resource("nope", CountingResource()) is False

    def test_same_resource_is_noop(self, manager, registry):
        raw = manager.start_capture("cam", "camera")
        changed = []
        manager.outward_changed.connect(lambda layer, r: changed.append(r))
        assert manager.replace_outward_resource("cam", raw) is True
        assert changed == []
        assert registry.ref_count(raw) == 1

    def test_ended_replacement_rejected(self, manager):
        raw = manager.start_capture("cam", "camera")
        dead = CountingResource()
        dead.stop()
        assert manager.replace_outward_resource("cam", dead) is False
        assert manager.get_outward_resource("cam") is raw

    def test_swap_keeps_binding_and_counts(self, manager, registry):
        raw = manager.start_capture("cam", "camera")
        processed = CountingResource(solid_frame((9, 9, 9)))
        changed = []
        manager.outward_changed.connect(lambda layer, r: changed.append((layer, r)))

        assert manager.replace_outward_resource("cam", processed) is True
        assert manager.get_raw_resource("cam") is raw
        assert manager.get_outward_resource("cam") is processed
        assert manager.get_preview_element("cam").src_object is processed
        assert manager.get_preview_element("cam").playing
        assert registry.ref_count(raw) == 1
        assert registry.ref_count(processed) == 1
        assert changed == [("cam", processed)]

    def test_swap_releases_previous_processed(self, manager, registry):
        manager.start_capture("cam", "camera")
        first = CountingResource(solid_frame((1, 1, 1)))
        second = CountingResource(solid_frame((2, 2, 2)))
        manager.replace_outward_resource("cam", first)
        manager.replace_outward_resource("cam", second)
        assert first.release_calls == 1
        assert registry.ref_count(second) == 1

    def test_swap_back_to_raw(self, manager, registry):
        raw = manager.start_capture("cam", "camera")
        processed = CountingResource(solid_frame((1, 1, 1)))
        manager.replace_outward_resource("cam", processed)
        manager.replace_outward_resource("cam", raw)
        assert processed.release_calls == 1
        assert registry.ref_count(raw) == 1
        assert raw.is_live

    def test_stop_releases_outward_too(self, manager):
        raw = manager.start_capture("cam", "camera")
        processed = CountingResource(solid_frame((1, 1, 1)))
        manager.replace_outward_resource("cam", processed)
        manager.stop_capture("cam")
        assert processed.release_calls == 1
        assert raw.release_calls == 1


class TestConsumers:
    def test_acquire_outward_adds_reference(self, manager, registry):
        raw = manager.start_capture("cam", "camera")
        assert manager.acquire_outward("cam") is raw
        manager.stop_capture("cam")
        assert raw.is_live
        registry.release(raw)
        assert raw.release_calls == 1

    def test_acquire_outward_unknown(self, manager):
        assert manager.acquire_outward("nope") is None

    def test_force_release_drops_binding(self, manager, registry):
        raw = manager.start_capture("cam", "camera")
        stopped = []
        manager.capture_stopped.connect(stopped.append)
        registry.force_release(raw)
        assert not manager.has_active_source("cam")
        assert stopped == ["cam"]
        assert raw.release_calls == 1
