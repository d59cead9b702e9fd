"""
Event streaming: the subscriber registry and the per-subscriber SSE loop.
"""

from .registry import EventRegistry, EventSubscriber, MAX_EVENT_STREAMS
from .stream import (
    EventStream,
    format_event,
    state_snapshot,
    to_bits,
    DEFAULT_TICK,
    EVENT_NAME,
)

__all__ = [
    "EventRegistry",
    "EventSubscriber",
    "MAX_EVENT_STREAMS",
    "EventStream",
    "format_event",
    "state_snapshot",
    "to_bits",
    "DEFAULT_TICK",
    "EVENT_NAME",
]
