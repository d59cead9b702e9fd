"""
Device layer: the I/O board interface, a simulated board and the bridge
that serializes access to it.
"""

from .base import DigitalIODevice, PIN_COUNT, PIN_MASK
from .simulated import SimulatedDevice
from .bridge import HardwareBridge

__all__ = [
    "DigitalIODevice",
    "PIN_COUNT",
    "PIN_MASK",
    "SimulatedDevice",
    "HardwareBridge",
]
