"""
=============================================================================
GATEWAY CONFIGURATION
=============================================================================

Every tunable of the gateway in one dataclass.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m iogateway 8080 v --assets ./www                 │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── IOGW_PORT=8080 IOGW_ASSETS=./www python -m iogateway      │
    │                                                                      │
    │   3. Defaults in GatewayConfig                                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class GatewayConfig:
    """
    Configuration for the I/O gateway.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK
    - host, port, backlog, buffer_size, timeout, body_wait

    CONCURRENCY
    - max_connections, max_event_streams, shutdown_timeout

    EVENTS
    - tick, push_outputs_immediately

    CONTENT
    - assets_dir, legacy_not_found

    DEVICE
    - loopback

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """Address to bind to. All interfaces by default: the board is headless."""

    port: int = 8080
    """Port to listen on."""

    backlog: int = 16
    """Queued connections before the kernel refuses new ones."""

    buffer_size: int = 5000
    """Largest request looked at, in bytes."""

    timeout: Optional[float] = 30.0
    """Socket timeout for the first read and for every write."""

    body_wait: float = 1.0
    """How long the single extra read waits for the rest of a request."""

    # ─────────────────────────────────────────────────────────────────────
    # CONCURRENCY
    # ─────────────────────────────────────────────────────────────────────

    max_connections: int = 32
    """Connections handled at once. Past this the client gets 503."""

    max_event_streams: int = 10
    """Simultaneous events.qif subscribers."""

    shutdown_timeout: float = 5.0
    """How long shutdown waits for running connections."""

    # ─────────────────────────────────────────────────────────────────────
    # EVENTS
    # ─────────────────────────────────────────────────────────────────────

    tick: float = 1.0
    """Seconds between events on a stream."""

    push_outputs_immediately: bool = False
    """Send an output change right away instead of on the next tick."""

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    assets_dir: str = "."
    """Directory the web UI is served from."""

    legacy_not_found: bool = False
    """Send the not-found page with "200 OK", as older gateways did."""

    # ─────────────────────────────────────────────────────────────────────
    # DEVICE
    # ─────────────────────────────────────────────────────────────────────

    loopback: bool = False
    """Simulated board only: mirror outputs onto inputs."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG, INFO, WARNING or ERROR."""

    log_format: str = "text"
    """Access log format: 'text' or 'json'."""

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        IOGW_HOST               Bind address (default: 0.0.0.0)
        IOGW_PORT               Port (default: 8080)
        IOGW_ASSETS             Web UI directory (default: .)
        IOGW_TICK               Event interval in seconds (default: 1.0)
        IOGW_MAX_CONNECTIONS    Connection cap (default: 32)
        IOGW_MAX_EVENT_STREAMS  Subscriber cap (default: 10)
        IOGW_LOG_LEVEL          Logging level (default: INFO)
        IOGW_LOG_FORMAT         Access log format (default: text)

        =====================================================================
        """
        return cls(
            host=os.getenv("IOGW_HOST", "0.0.0.0"),
            port=int(os.getenv("IOGW_PORT", "8080")),
            assets_dir=os.getenv("IOGW_ASSETS", "."),
            tick=float(os.getenv("IOGW_TICK", "1.0")),
            max_connections=int(os.getenv("IOGW_MAX_CONNECTIONS", "32")),
            max_event_streams=int(os.getenv("IOGW_MAX_EVENT_STREAMS", "10")),
            log_level=os.getenv("IOGW_LOG_LEVEL", "INFO"),
            log_format=os.getenv("IOGW_LOG_FORMAT", "text"),
        )

    def validate(self) -> None:
        """Check every value at startup, before anything is bound or opened."""
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.buffer_size < 64:
            raise ValueError("buffer_size must be >= 64")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.body_wait <= 0:
            raise ValueError("body_wait must be > 0")

        if self.max_connections < 1:
            raise ValueError("max_connections must be >= 1")

        if self.max_event_streams < 1:
            raise ValueError("max_event_streams must be >= 1")

        if self.max_event_streams > self.max_connections:
            raise ValueError("max_event_streams must be <= max_connections")

        if self.tick <= 0:
            raise ValueError("tick must be > 0")

        if self.shutdown_timeout < 0:
            raise ValueError("shutdown_timeout must be >= 0")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log_level: {self.log_level}")

        if self.log_format not in ("text", "json"):
            raise ValueError(f"Invalid log_format: {self.log_format}. Must be 'text' or 'json'.")
