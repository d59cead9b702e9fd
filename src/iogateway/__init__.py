"""
=============================================================================
IOGATEWAY - Web Gateway for an 8-bit Digital I/O Board
=============================================================================

Serves a small web UI, streams the board's inputs to every open page over
Server-Sent Events, and lets any page flip an output pin.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    iogateway/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m iogateway PORT)
    ├── server.py            # GatewayServer: wiring, run, shutdown
    ├── config.py            # GatewayConfig dataclass
    ├── errors.py            # Exception taxonomy
    ├── accesslog.py         # Access log entries (text / json)
    ├── core/                # Networking
    │   ├── socket_server.py # Listener: accept loop
    │   ├── connection.py    # Connection wrapper
    │   └── workers.py       # Capped thread-per-connection
    ├── http/                # Just enough HTTP
    │   ├── request.py       # Request parsing
    │   ├── response.py      # Response framing, SSE header, 404 page
    │   ├── status_codes.py  # Status enum
    │   └── mime_types.py    # Content-Type by extension
    ├── resources/           # What a GET path refers to
    │   ├── assets.py        # Directory / in-memory asset stores
    │   └── resolver.py      # Static, pseudo-file or not found
    ├── events/              # Server-Sent Events
    │   ├── registry.py      # Subscribers, dirty flags, output state
    │   └── stream.py        # Per-subscriber loop, event format
    ├── device/              # The I/O board
    │   ├── base.py          # DigitalIODevice interface
    │   ├── simulated.py     # In-memory board
    │   └── bridge.py        # Serialized access, publishes outputs
    └── handlers/            # Per-connection logic
        ├── dispatcher.py    # State machine
        └── mutation.py      # PUT set_bit.qif?t<bit>=<value>

=============================================================================
QUICK START
=============================================================================

    from iogateway import GatewayServer, GatewayConfig

    server = GatewayServer(GatewayConfig(port=8080, assets_dir="www"))
    server.run()

Or from the command line:

    python -m iogateway 8080 v --assets www

=============================================================================
"""

__version__ = "1.0.0"

from .config import GatewayConfig
from .errors import (
    GatewayError,
    MalformedRequest,
    AssetNotFound,
    DeviceError,
    RegistryFull,
    PeerWriteFailure,
)
from .device import DigitalIODevice, SimulatedDevice, HardwareBridge
from .events import EventRegistry
from .resources import DirectoryAssetStore, MemoryAssetStore
from .server import GatewayServer

__all__ = [
    "__version__",

    # Server
    "GatewayServer",
    "GatewayConfig",

    # Devices
    "DigitalIODevice",
    "SimulatedDevice",
    "HardwareBridge",

    # Shared state
    "EventRegistry",

    # Assets
    "DirectoryAssetStore",
    "MemoryAssetStore",

    # Errors
    "GatewayError",
    "MalformedRequest",
    "AssetNotFound",
    "DeviceError",
    "RegistryFull",
    "PeerWriteFailure",
]
