"""
In-memory stand-in for the I/O board.

Used when no hardware is attached (development, demos, tests). With
loopback enabled every output write is mirrored onto the inputs, the way
a board with its outputs wired back to its inputs would behave.
"""

import logging
import threading

from .base import DigitalIODevice, PIN_MASK
from ..errors import DeviceError


logger = logging.getLogger(__name__)


class SimulatedDevice(DigitalIODevice):
    """
    Simulated 8-in / 8-out board.

    Attributes:
        outputs: Last vector written with write_outputs().
        loopback: Mirror outputs onto inputs.
        fail_writes: Make write_outputs() raise DeviceError.
        fail_reads: Make read_inputs() raise DeviceError.
        writes: Every vector written, in order.
    """

    def __init__(self, inputs: int = 0, loopback: bool = False):
        self._inputs = inputs & PIN_MASK
        self.outputs = 0
        self.loopback = loopback
        self.fail_writes = False
        self.fail_reads = False
        self.writes: list[int] = []
        self.is_open = False

        # Guards _inputs against set_inputs() from another thread
        self._lock = threading.Lock()

    def open(self) -> None:
        self.is_open = True
        logger.info(f"Simulated I/O board opened (loopback={'on' if self.loopback else 'off'})")

    def close(self) -> None:
        self.is_open = False
        logger.info("Simulated I/O board closed")

    def set_inputs(self, bits: int) -> None:
        """Change what read_inputs() reports, as if pins changed level."""
        with self._lock:
            self._inputs = bits & PIN_MASK

    def set_input(self, index: int, value: int) -> None:
        """Change a single input pin."""
        with self._lock:
            if value:
                self._inputs |= 1 << index
            else:
                self._inputs &= ~(1 << index) & PIN_MASK

    def read_inputs(self) -> int:
        if self.fail_reads:
            raise DeviceError("Simulated input read failure")
        with self._lock:
            return self._inputs

    def write_outputs(self, bits: int) -> None:
        if self.fail_writes:
            raise DeviceError("Simulated output write failure")

        self.outputs = bits & PIN_MASK
        self.writes.append(self.outputs)

        if self.loopback:
            self.set_inputs(self.outputs)
