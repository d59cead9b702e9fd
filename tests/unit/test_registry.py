"""
Unit tests for the event subscriber registry.
"""

import threading
import time

import pytest

from iogateway.errors import RegistryFull
from iogateway.events import EventRegistry


class Handle:
    """Stand-in for a Connection: the registry only reads `id`."""

    def __init__(self, id: str):
        self.id = id


class TestMembership:

    def test_register_and_unregister(self, registry):
        subscriber = registry.register(Handle("a"))

        assert len(registry) == 1
        assert subscriber.id == "a"

        assert registry.unregister(subscriber) is True
        assert len(registry) == 0

    def test_unregister_is_idempotent(self, registry):
        subscriber = registry.register(Handle("a"))

        assert registry.unregister(subscriber) is True
        assert registry.unregister(subscriber) is False

    def test_handle_without_id(self, registry):
        subscriber = registry.register(object())

        assert subscriber.id

    def test_duplicate_id_rejected(self, registry):
        registry.register(Handle("a"))

        with pytest.raises(ValueError):
            registry.register(Handle("a"))

    def test_new_subscriber_starts_clean(self, registry):
        subscriber = registry.register(Handle("first"))

        assert registry.take_pending_outputs(subscriber) is None

    def test_late_subscriber_gets_current_outputs(self, registry):
        early = registry.register(Handle("early"))
        registry.publish_outputs(0b1010)
        assert registry.take_pending_outputs(early) == 0b1010

        late = registry.register(Handle("late"))

        assert registry.take_pending_outputs(late) == 0b1010
        assert registry.take_pending_outputs(late) is None


class TestCapacity:

    def test_full_registry_raises(self):
        registry = EventRegistry(capacity=2)
        registry.register(Handle("a"))
        registry.register(Handle("b"))

        assert registry.is_full
        with pytest.raises(RegistryFull) as exc_info:
            registry.register(Handle("c"))

        assert exc_info.value.capacity == 2

    def test_existing_subscribers_unaffected_when_full(self):
        registry = EventRegistry(capacity=2)
        a = registry.register(Handle("a"))
        b = registry.register(Handle("b"))

        with pytest.raises(RegistryFull):
            registry.register(Handle("c"))

        registry.publish_outputs(0b1000)

        assert registry.subscribers() == [a, b]
        assert registry.take_pending_outputs(a) == 0b1000
        assert registry.take_pending_outputs(b) == 0b1000

    def test_slot_freed_after_unregister(self):
        registry = EventRegistry(capacity=1)
        a = registry.register(Handle("a"))
        registry.unregister(a)

        registry.register(Handle("b"))
        assert len(registry) == 1


class TestDirtyFlags:

    def test_publish_marks_every_subscriber(self, registry):
        subscribers = [registry.register(Handle(name)) for name in "abc"]

        registry.publish_outputs(0b00001000)

        for subscriber in subscribers:
            assert registry.take_pending_outputs(subscriber) == 0b00001000

    def test_delivered_at_most_once(self, registry):
        subscriber = registry.register(Handle("a"))
        registry.publish_outputs(5)

        assert registry.take_pending_outputs(subscriber) == 5
        assert registry.take_pending_outputs(subscriber) is None

    def test_writes_coalesce_to_latest(self, registry):
        subscriber = registry.register(Handle("a"))

        registry.publish_outputs(1)
        registry.publish_outputs(3)
        registry.publish_outputs(7)

        assert registry.take_pending_outputs(subscriber) == 7
        assert registry.take_pending_outputs(subscriber) is None

    def test_outputs_property(self, registry):
        registry.publish_outputs(0x81)

        assert registry.outputs == 0x81


class TestTicksAndShutdown:

    def test_wait_times_out(self, registry):
        subscriber = registry.register(Handle("a"))

        start = time.time()
        assert registry.wait_for_tick(subscriber, 0.05) is True
        assert time.time() - start >= 0.04

    def test_close_wakes_waiters(self, registry):
        subscriber = registry.register(Handle("a"))
        results = []

        waiter = threading.Thread(
            target=lambda: results.append(registry.wait_for_tick(subscriber, 10.0))
        )
        waiter.start()
        time.sleep(0.05)

        start = time.time()
        registry.close()
        waiter.join(timeout=2.0)

        assert results == [False]
        assert time.time() - start < 2.0
        assert registry.is_closed

    def test_wait_after_close_returns_immediately(self, registry):
        subscriber = registry.register(Handle("a"))
        registry.close()

        assert registry.wait_for_tick(subscriber, 10.0) is False

    def test_close_is_idempotent(self, registry):
        registry.close()
        registry.close()

        assert registry.is_closed

    def test_push_immediately_wakes_on_publish(self):
        registry = EventRegistry(capacity=2, push_outputs_immediately=True)
        subscriber = registry.register(Handle("a"))
        woke_after = []

        def wait():
            start = time.time()
            registry.wait_for_tick(subscriber, 10.0)
            woke_after.append(time.time() - start)

        waiter = threading.Thread(target=wait)
        waiter.start()
        time.sleep(0.05)
        registry.publish_outputs(1)
        waiter.join(timeout=2.0)

        assert woke_after and woke_after[0] < 2.0

    def test_publish_does_not_shorten_tick_by_default(self, registry):
        subscriber = registry.register(Handle("a"))

        timer = threading.Timer(0.02, registry.publish_outputs, args=(1,))
        timer.start()

        start = time.time()
        registry.wait_for_tick(subscriber, 0.2)
        timer.join()

        assert time.time() - start >= 0.15

    def test_pending_outputs_do_not_wake_without_dirty_wakeup(self):
        registry = EventRegistry(capacity=2, push_outputs_immediately=True)
        subscriber = registry.register(Handle("a"))
        registry.publish_outputs(1)

        start = time.time()
        assert registry.wait_for_tick(subscriber, 0.2, wake_on_dirty=False) is True

        assert time.time() - start >= 0.15
        assert registry.take_pending_outputs(subscriber) == 1
