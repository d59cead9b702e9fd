"""
=============================================================================
GATEWAY ERROR TAXONOMY
=============================================================================

Every failure the gateway knows how to recover from has its own exception
type. Each stage of the connection state machine catches the ones it
expects and turns them into an explicit outcome (silent close, 404, 500,
503, end of subscription).

    ┌─────────────────────────┬──────────────────────────────────────────┐
    │  Exception              │  What the client sees                    │
    ├─────────────────────────┼──────────────────────────────────────────┤
    │  MalformedRequest       │  nothing, connection closed              │
    │  AssetNotFound          │  fixed 404 page                          │
    │  DeviceError            │  500 Internal Server Error               │
    │  RegistryFull           │  503 Service Unavailable                 │
    │  PeerWriteFailure       │  (peer is gone) subscription ends        │
    └─────────────────────────┴──────────────────────────────────────────┘

Listener setup failures (bind/listen) are plain OSError and abort startup.

=============================================================================
"""


class GatewayError(Exception):
    """Base class for all recoverable gateway errors."""


class MalformedRequest(GatewayError):
    """
    Raised when the bytes received cannot be turned into a request.

    Too few bytes, or a request line without a usable target.
    The handler closes the connection without answering.
    """


class AssetNotFound(GatewayError):
    """Raised by an asset store when the named asset does not exist."""

    def __init__(self, name: str):
        super().__init__(f"Asset not found: {name}")
        self.name = name


class DeviceError(GatewayError):
    """
    Raised when the I/O device fails a read or a write.

    Fatal to the request that triggered it, never to the process.
    """


class RegistryFull(GatewayError):
    """Raised when the event registry has no free subscriber slot."""

    def __init__(self, capacity: int):
        super().__init__(f"Event registry full ({capacity} subscribers)")
        self.capacity = capacity


class PeerWriteFailure(GatewayError):
    """Raised when writing to a client fails (reset, broken pipe, closed)."""
