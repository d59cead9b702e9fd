"""
=============================================================================
HARDWARE STATE BRIDGE
=============================================================================

Every connection handler thread shares one I/O board. The bridge is the
only path to it.

=============================================================================
ONE LOCK AROUND THE DEVICE
=============================================================================

    handler A (PUT bit 2)        handler B (PUT bit 5)       subscriber C
          │                            │                          │
          ▼                            ▼                          ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                          device lock                                │
    ├─────────────────────────────────────────────────────────────────────┤
    │   write_bit(2, 1)                                                   │
    │     new = last | 1<<2                                               │
    │     device.write_outputs(new)                                       │
    │     last = new                                                      │
    │     on_outputs(new)  ──► EventRegistry.publish_outputs()            │
    │                                                                      │
    │   write_bit(5, 1)          (waits for A)                            │
    │     new = last | 1<<5      sees A's bit, nothing is lost            │
    │     ...                                                              │
    │                                                                      │
    │   read_inputs()            (waits for B)                            │
    └─────────────────────────────────────────────────────────────────────┘

The read-modify-write of the output vector happens entirely under the
lock, so concurrent mutations always end in a state some serial order of
them would have produced. on_outputs() is called while still holding the
lock: subscribers see vectors published in the same order the device
received them.

Lock order is bridge → registry. Nothing holding the registry lock may
call into the bridge.

=============================================================================
"""

import logging
import threading
from typing import Callable, Optional

from .base import DigitalIODevice, PIN_COUNT
from ..errors import DeviceError


logger = logging.getLogger(__name__)


OutputsCallback = Callable[[int], None]


class HardwareBridge:
    """
    Serialized access to a DigitalIODevice.

    Usage:
        bridge = HardwareBridge(device, on_outputs=registry.publish_outputs)
        bridge.open()

        inputs = bridge.read_inputs()
        bridge.write_bit(3, 1)     # publishes 0b00001000
        bridge.outputs             # 8
    """

    def __init__(
        self,
        device: DigitalIODevice,
        on_outputs: Optional[OutputsCallback] = None,
        initial_outputs: int = 0,
    ):
        self.device = device
        self.on_outputs = on_outputs

        self._lock = threading.Lock()
        self._outputs = initial_outputs

    @property
    def outputs(self) -> int:
        """Last vector successfully written to the device."""
        with self._lock:
            return self._outputs

    def open(self) -> None:
        with self._lock:
            self.device.open()

    def close(self) -> None:
        with self._lock:
            self.device.close()

    def read_inputs(self) -> int:
        """
        Sample the input pins.

        Raises:
            DeviceError: The device failed the read.
        """
        with self._lock:
            return self.device.read_inputs()

    def write_bit(self, index: int, value: int) -> int:
        """
        Set or clear one output pin.

        Args:
            index: Pin number, 0-7.
            value: 0 or 1.

        Returns:
            The new output vector.

        Raises:
            ValueError: index or value out of range.
            DeviceError: The device rejected the write. The last-known
                         output vector is left unchanged.
        """
        if not 0 <= index < PIN_COUNT:
            raise ValueError(f"Output index out of range: {index}")
        if value not in (0, 1):
            raise ValueError(f"Output value must be 0 or 1: {value}")

        with self._lock:
            if value:
                new_outputs = self._outputs | (1 << index)
            else:
                new_outputs = self._outputs & ~(1 << index)

            try:
                self.device.write_outputs(new_outputs)
            except DeviceError as e:
                logger.error(f"Output write failed (bit {index} <- {value}): {e}")
                raise

            self._outputs = new_outputs
            logger.debug(f"Outputs now {new_outputs:#04x} (bit {index} <- {value})")

            if self.on_outputs is not None:
                self.on_outputs(new_outputs)

        return new_outputs
