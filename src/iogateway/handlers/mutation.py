"""
=============================================================================
OUTPUT MUTATION ENDPOINT
=============================================================================

The web UI flips an output pin with a bodyless PUT:

    PUT /set_bit.qif?t3=1 HTTP/1.1

The query is read by position, not by key:

    t 3 = 1
    0 1 2 3      offset after "?"
      │   └── value digit: 0 or 1
      └────── bit digit:   0 to 7

The key letter (offset 0) and the separator (offset 2) are not checked,
so "?b3=1" and "?t3=1" mean the same thing.

=============================================================================
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..device import HardwareBridge, PIN_COUNT
from ..errors import MalformedRequest


logger = logging.getLogger(__name__)


BIT_OFFSET = 1
VALUE_OFFSET = 3

BIT_DIGITS = frozenset(str(i) for i in range(PIN_COUNT))


@dataclass(frozen=True)
class BitMutation:
    """Set output pin `index` to `value`."""
    index: int
    value: int


def parse_bit_mutation(query: Optional[str]) -> BitMutation:
    """
    Decode the bit index and value from a PUT query string.

    Raises:
        MalformedRequest: Missing query, too short, or digits out of range.
    """
    if query is None:
        raise MalformedRequest("PUT without a query string")

    if len(query) <= VALUE_OFFSET:
        raise MalformedRequest(f"PUT query too short: {query!r}")

    bit_char = query[BIT_OFFSET]
    value_char = query[VALUE_OFFSET]

    if bit_char not in BIT_DIGITS:
        raise MalformedRequest(f"Bad bit index in PUT query: {query!r}")

    if value_char not in ("0", "1"):
        raise MalformedRequest(f"Bad bit value in PUT query: {query!r}")

    return BitMutation(index=int(bit_char), value=int(value_char))


def apply_mutation(bridge: HardwareBridge, mutation: BitMutation) -> int:
    """
    Write one bit through the bridge. The bridge publishes the new vector
    to the event registry before returning.

    Returns:
        The new output vector.

    Raises:
        DeviceError: The device rejected the write.
    """
    outputs = bridge.write_bit(mutation.index, mutation.value)
    logger.info(f"Output bit {mutation.index} <- {mutation.value}")
    return outputs
