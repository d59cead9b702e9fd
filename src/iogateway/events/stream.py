"""
=============================================================================
EVENT STREAM (SERVER-SENT EVENTS)
=============================================================================

A GET for events.qif turns the connection into a Server-Sent Events
stream. The browser side is a plain EventSource listening for "piface":

    var source = new EventSource("events.qif");
    source.addEventListener("piface", function (e) { ... e.data ... });

=============================================================================
WIRE FORMAT
=============================================================================

    HTTP/1.1 200 OK\r\n
    Content-Type: text/event-stream; charset=UTF-8\r\n
    \r\n
    event: piface\n
    data: 10000000\n                  inputs only
    \n
    event: piface\n
    data: 1000000000010000\n          inputs + outputs (after a change)
    \n
    ...

Each vector is 8 characters, bit 0 first: pin 3 set reads "00010000".

=============================================================================
THE LOOP
=============================================================================

    send header
    loop:
        inputs  = bridge.read_inputs()         DeviceError → skip this tick
        outputs = registry.take_pending_outputs(subscriber)
        send event                             PeerWriteFailure → stop
        wait_for_tick()                        registry closed  → stop
                                               skipped tick     → no early wake
    finally:
        unregister

=============================================================================
"""

import logging
from typing import Optional

from ..device import HardwareBridge, PIN_COUNT
from ..errors import DeviceError, PeerWriteFailure
from ..http.response import event_stream_header
from .registry import EventRegistry, EventSubscriber


logger = logging.getLogger(__name__)


EVENT_NAME = "piface"

# Seconds between two events on one stream
DEFAULT_TICK = 1.0


def to_bits(value: int, width: int = PIN_COUNT) -> str:
    """
    Render a vector as '0'/'1' characters, least significant bit first.

        >>> to_bits(0b00001000)
        '00010000'
    """
    return "".join("1" if (value >> i) & 1 else "0" for i in range(width))


def format_event(inputs: int, outputs: Optional[int] = None) -> bytes:
    """
    Build one SSE message.

        >>> format_event(1)
        b'event: piface\\ndata: 10000000\\n\\n'
        >>> format_event(0, 8)
        b'event: piface\\ndata: 0000000000010000\\n\\n'
    """
    data = to_bits(inputs)
    if outputs is not None:
        data += to_bits(outputs)
    return f"event: {EVENT_NAME}\ndata: {data}\n\n".encode("ascii")


class EventStream:
    """
    Drives one subscriber's stream until the peer leaves or the registry
    closes.

    The subscriber must already be registered. run() always unregisters
    it, whatever ends the stream.
    """

    def __init__(
        self,
        connection,
        registry: EventRegistry,
        bridge: HardwareBridge,
        subscriber: EventSubscriber,
        tick: float = DEFAULT_TICK,
    ):
        self.connection = connection
        self.registry = registry
        self.bridge = bridge
        self.subscriber = subscriber
        self.tick = tick
        self.events_sent = 0

    def run(self) -> int:
        """
        Send the header, then one event per tick.

        Returns:
            Number of events sent.
        """
        conn_id = self.subscriber.id

        try:
            self.connection.send(event_stream_header())
            self.connection.start_streaming()

            while True:
                sent = self._send_tick()
                if not self.registry.wait_for_tick(self.subscriber, self.tick, wake_on_dirty=sent):
                    logger.debug(f"[{conn_id}] Registry closed, ending event stream")
                    break

        except PeerWriteFailure as e:
            logger.info(f"[{conn_id}] Event stream ended by peer: {e.__cause__ or e}")

        finally:
            self.registry.unregister(self.subscriber)

        return self.events_sent

    def _send_tick(self) -> bool:
        """
        Sample, format and send one event.

        Returns:
            False if the tick was skipped because the inputs could not be
            read. The pending outputs then stay pending for the next tick.
        """
        try:
            inputs = self.bridge.read_inputs()
        except DeviceError as e:
            logger.warning(f"[{self.subscriber.id}] Input read failed, skipping tick: {e}")
            return False

        outputs = self.registry.take_pending_outputs(self.subscriber)
        self.connection.send(format_event(inputs, outputs))
        self.events_sent += 1
        return True


def state_snapshot(bridge: HardwareBridge) -> bytes:
    """
    Body of state.qif: inputs then outputs, 8 characters each.

    Raises:
        DeviceError: The inputs could not be read.
    """
    return (to_bits(bridge.read_inputs()) + to_bits(bridge.outputs)).encode("ascii")
