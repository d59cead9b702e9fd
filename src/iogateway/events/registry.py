"""
=============================================================================
EVENT SUBSCRIBER REGISTRY
=============================================================================

Keeps track of every browser holding an open events.qif stream, and of
the output vector those browsers have to be told about.

=============================================================================
DIRTY FLAGS
=============================================================================

Inputs are sampled fresh on every tick, so subscribers always get them.
Outputs only change when someone PUTs a bit, so each subscriber carries a
"dirty" flag meaning "the outputs changed since you last saw them".

    PUT bit 3 ← 1                             registry
    ─────────────                  ┌───────────────────────────────┐
    bridge.write_bit(3, 1)         │ outputs = 0b00001000          │
        └── publish_outputs() ───► │                               │
                                   │ slot a1b2  dirty ✓            │
                                   │ slot c3d4  dirty ✓            │
                                   │ slot e5f6  dirty ✓            │
                                   └───────────────────────────────┘

    next tick of subscriber c3d4:
        take_pending_outputs(c3d4)  → 0b00001000, dirty cleared
    the tick after that:
        take_pending_outputs(c3d4)  → None

Storing the vector and raising every flag happen in one critical section,
and so do reading the vector and clearing one flag. A subscriber therefore
gets each change at most once, and never misses one that was published
while it was registered. Several changes inside one tick collapse into the
latest vector. A browser that registers after the first publish starts
dirty, so it learns the current outputs on its first tick.

=============================================================================
CAPACITY
=============================================================================

The registry holds at most `capacity` subscribers (10 by default). A full
registry raises RegistryFull from register(); the subscribers already in
it are not touched.

=============================================================================
SHUTDOWN
=============================================================================

close() wakes every subscriber waiting in wait_for_tick(), which then
returns False so the stream loop ends within one tick.

=============================================================================
"""

import time
import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from ..errors import RegistryFull


logger = logging.getLogger(__name__)


# Default number of simultaneous event streams
MAX_EVENT_STREAMS = 10


@dataclass(eq=False)
class EventSubscriber:
    """
    One registry slot.

    The handle is the subscriber's Connection. The registry never reads
    from it, writes to it or closes it: the handler thread owns it.
    """

    id: str
    handle: Any = field(repr=False)
    dirty: bool = False
    registered_at: float = field(default_factory=time.time)


class EventRegistry:
    """
    Bounded set of event-stream subscribers plus the shared output vector.

    One threading.Condition guards the slots, their dirty flags and the
    output vector. Stream loops sleep on the same condition between ticks.
    """

    def __init__(
        self,
        capacity: int = MAX_EVENT_STREAMS,
        push_outputs_immediately: bool = False,
    ):
        """
        Args:
            capacity: Maximum number of simultaneous subscribers.
            push_outputs_immediately: Wake a subscriber as soon as its
                                      dirty flag is raised, instead of
                                      waiting for its next tick.
        """
        self.capacity = capacity
        self.push_outputs_immediately = push_outputs_immediately

        self._cond = threading.Condition()
        self._slots: dict[str, EventSubscriber] = {}
        self._outputs = 0
        self._published = False
        self._closed = False

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def outputs(self) -> int:
        """Last published output vector."""
        with self._cond:
            return self._outputs

    @property
    def is_closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def is_full(self) -> bool:
        with self._cond:
            return len(self._slots) >= self.capacity

    def __len__(self) -> int:
        with self._cond:
            return len(self._slots)

    def subscribers(self) -> list[EventSubscriber]:
        """Snapshot of the current slots."""
        with self._cond:
            return list(self._slots.values())

    # =========================================================================
    # MEMBERSHIP
    # =========================================================================

    def register(self, handle: Any) -> EventSubscriber:
        """
        Add a subscriber.

        Once any output vector has been published the new slot starts
        dirty, so its first event carries the current outputs. Before the
        first publish it starts clean.

        Args:
            handle: The subscriber's connection. Its `id` attribute, when
                    present, becomes the slot key.

        Raises:
            RegistryFull: No free slot.
            ValueError: A slot with the same key is already registered.
        """
        key = getattr(handle, "id", None) or str(uuid.uuid4())[:8]

        with self._cond:
            if len(self._slots) >= self.capacity:
                logger.warning(f"[{key}] Event registry full ({self.capacity} subscribers)")
                raise RegistryFull(self.capacity)
            if key in self._slots:
                raise ValueError(f"Subscriber already registered: {key}")

            subscriber = EventSubscriber(id=key, handle=handle, dirty=self._published)
            self._slots[key] = subscriber
            count = len(self._slots)

        logger.info(f"[{key}] Event stream registered ({count}/{self.capacity})")
        return subscriber

    def unregister(self, subscriber: EventSubscriber) -> bool:
        """
        Remove a subscriber. Safe to call more than once.

        Returns:
            True if the slot was removed by this call.
        """
        with self._cond:
            if self._slots.get(subscriber.id) is not subscriber:
                return False
            del self._slots[subscriber.id]
            count = len(self._slots)

        logger.info(f"[{subscriber.id}] Event stream unregistered ({count}/{self.capacity})")
        return True

    # =========================================================================
    # OUTPUT STATE
    # =========================================================================

    def publish_outputs(self, bits: int) -> None:
        """Store a new output vector and mark every subscriber dirty."""
        with self._cond:
            self._outputs = bits
            self._published = True
            for subscriber in self._slots.values():
                subscriber.dirty = True
            self._cond.notify_all()

    def take_pending_outputs(self, subscriber: EventSubscriber) -> Optional[int]:
        """
        Collect an output change for one subscriber.

        Returns:
            The current output vector if the subscriber was dirty (the
            flag is cleared), otherwise None.
        """
        with self._cond:
            if not subscriber.dirty:
                return None
            subscriber.dirty = False
            return self._outputs

    # =========================================================================
    # TICKS AND SHUTDOWN
    # =========================================================================

    def wait_for_tick(
        self,
        subscriber: EventSubscriber,
        timeout: float,
        wake_on_dirty: bool = True,
    ) -> bool:
        """
        Sleep until the subscriber's next tick.

        Returns early when the registry is closed, or (with
        push_outputs_immediately and wake_on_dirty) when the subscriber
        becomes dirty. A stream whose last tick was skipped passes
        wake_on_dirty=False: the flag it left raised must not wake it
        again before a full tick has passed.

        Returns:
            False once the registry is closed, True otherwise.
        """
        with self._cond:
            if self.push_outputs_immediately and wake_on_dirty:
                self._cond.wait_for(lambda: self._closed or subscriber.dirty, timeout)
            else:
                self._cond.wait_for(lambda: self._closed, timeout)
            return not self._closed

    def close(self) -> None:
        """Signal shutdown to every subscriber."""
        with self._cond:
            if self._closed:
                return
            self._closed = True
            count = len(self._slots)
            self._cond.notify_all()

        logger.info(f"Event registry closed ({count} streams active)")
