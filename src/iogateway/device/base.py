"""
=============================================================================
DIGITAL I/O DEVICE INTERFACE
=============================================================================

The gateway talks to exactly one board with 8 digital inputs and 8 digital
outputs. Each side is an 8-bit vector: bit i is pin i.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        DigitalIODevice                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   open()                  claim the hardware (once, at startup)     │
    │   read_inputs()  → int    sample the 8 input pins (0..255)          │
    │   write_outputs(int)      drive the 8 output pins                   │
    │   close()                 release the hardware (once, at shutdown)  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Implementations raise DeviceError on any hardware failure. They are NOT
required to be thread-safe: HardwareBridge serializes every call.

=============================================================================
"""

from abc import ABC, abstractmethod


# Number of pins on each side of the board
PIN_COUNT = 8

# All eight bits set
PIN_MASK = (1 << PIN_COUNT) - 1


class DigitalIODevice(ABC):
    """
    Abstract base class for an 8-in / 8-out digital I/O board.

    Example:
        class SpiBoard(DigitalIODevice):
            def read_inputs(self) -> int:
                return self._spi.read_register(GPIOB) ^ 0xFF

            def write_outputs(self, bits: int) -> None:
                self._spi.write_register(GPIOA, bits)
    """

    def open(self) -> None:
        """Claim the hardware. Default: nothing to do."""

    def close(self) -> None:
        """Release the hardware. Default: nothing to do."""

    @abstractmethod
    def read_inputs(self) -> int:
        """
        Sample the input pins.

        Returns:
            Input vector in 0..255, bit i = pin i.

        Raises:
            DeviceError: The board could not be read.
        """

    @abstractmethod
    def write_outputs(self, bits: int) -> None:
        """
        Drive the output pins.

        Args:
            bits: Output vector in 0..255, bit i = pin i.

        Raises:
            DeviceError: The board could not be written.
        """
