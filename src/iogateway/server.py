"""
=============================================================================
GATEWAY SERVER
=============================================================================

Wires the components together and runs them.

=============================================================================
ARCHITECTURE OVERVIEW
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        GATEWAY ARCHITECTURE                         │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   ┌──────────┐  accept   ┌───────────────────┐                      │
    │   │ Listener │ ────────► │ ConnectionWorkers │  one thread each,    │
    │   └──────────┘           └─────────┬─────────┘  capped              │
    │                                    │                                │
    │                                    ▼                                │
    │                        ┌───────────────────────┐                    │
    │                        │   ConnectionHandler   │                    │
    │                        └───┬───────┬───────┬───┘                    │
    │                   GET      │       │ GET   │ PUT                    │
    │                   asset    │       │ events│                        │
    │                            ▼       ▼       ▼                        │
    │              ┌──────────────┐ ┌─────────┐ ┌──────────────┐          │
    │              │   Resource   │ │  Event  │ │   Mutation   │          │
    │              │   Resolver   │ │ Stream  │ │   endpoint   │          │
    │              └──────┬───────┘ └──┬───┬──┘ └──────┬───────┘          │
    │                     │            │   │           │                  │
    │                     ▼            │   ▼           ▼                  │
    │               ┌────────────┐     │ ┌──────────────────┐             │
    │               │ AssetStore │     │ │  HardwareBridge  │──► device   │
    │               └────────────┘     │ └────────┬─────────┘             │
    │                                  ▼          │ publish_outputs       │
    │                          ┌───────────────┐  │                       │
    │                          │ EventRegistry │◄─┘                       │
    │                          └───────────────┘                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SHUTDOWN ORDER
=============================================================================

    1. listener stops accepting
    2. event registry closes      streams end within one tick
    3. workers are joined         up to shutdown_timeout seconds
    4. device is closed

=============================================================================
"""

import logging
from typing import Optional

from . import __version__
from .accesslog import AccessLog
from .config import GatewayConfig
from .core import Connection, ConnectionWorkers, Listener
from .errors import DeviceError
from .device import DigitalIODevice, HardwareBridge, SimulatedDevice
from .events import EventRegistry, state_snapshot
from .handlers import ConnectionHandler
from .http.request import RequestParser
from .http.response import service_unavailable
from .resources import AssetStore, DirectoryAssetStore, ResourceResolver


logger = logging.getLogger(__name__)


class GatewayServer:
    """
    The I/O gateway.

    Usage:
        server = GatewayServer(GatewayConfig(port=8080, assets_dir="www"))
        server.run()      # blocks until Ctrl+C

    With real hardware, pass a DigitalIODevice; without one a
    SimulatedDevice is used.
    """

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        device: Optional[DigitalIODevice] = None,
        store: Optional[AssetStore] = None,
        install_signal_handlers: bool = True,
    ):
        self.config = config or GatewayConfig()
        self.config.validate()

        # ─────────────────────────────────────────────────────────────────
        # SHARED STATE
        # ─────────────────────────────────────────────────────────────────

        self.device = device or SimulatedDevice(loopback=self.config.loopback)

        self.registry = EventRegistry(
            capacity=self.config.max_event_streams,
            push_outputs_immediately=self.config.push_outputs_immediately,
        )

        # Every successful write is published to the registry
        self.bridge = HardwareBridge(self.device, on_outputs=self.registry.publish_outputs)

        # ─────────────────────────────────────────────────────────────────
        # REQUEST HANDLING
        # ─────────────────────────────────────────────────────────────────

        self.store = store or DirectoryAssetStore(self.config.assets_dir)
        self.resolver = ResourceResolver(self.store)
        self.resolver.add_computed("state", lambda: state_snapshot(self.bridge))

        self.handler = ConnectionHandler(
            resolver=self.resolver,
            registry=self.registry,
            bridge=self.bridge,
            parser=RequestParser(),
            access_log=AccessLog(log_format=self.config.log_format),
            tick=self.config.tick,
            legacy_not_found=self.config.legacy_not_found,
        )

        # ─────────────────────────────────────────────────────────────────
        # NETWORKING
        # ─────────────────────────────────────────────────────────────────

        self.workers = ConnectionWorkers(max_connections=self.config.max_connections)
        self.listener = Listener(self.config, install_signal_handlers=install_signal_handlers)

        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> tuple[str, int]:
        """Bound (host, port); the real port once the listener is up."""
        return self.listener.address

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def run(self, configure_logging: bool = True, banner: bool = True):
        """
        Open the device and serve until shutdown() or a signal. Blocks.

        Raises:
            OSError: The listening address could not be bound.
        """
        if configure_logging:
            self._setup_logging()

        self.bridge.open()
        self._running = True

        try:
            self.listener.bind()
            if banner:
                self._print_startup_banner()
            self.listener.start(self._dispatch)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self._shutdown()

    def shutdown(self):
        """Request shutdown from any thread. run() finishes the cleanup."""
        self.listener.shutdown()
        self.registry.close()

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self.listener.wait_until_ready(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the listening socket has been closed."""
        return self.listener.wait_for_shutdown(timeout)

    def _shutdown(self):
        logger.info("Shutting down gateway...")

        self.listener.shutdown()
        self.registry.close()
        self.workers.shutdown(timeout=self.config.shutdown_timeout)

        try:
            self.bridge.close()
        except DeviceError as e:
            logger.error(f"Error closing device: {e}")

        self._running = False
        logger.info("Gateway stopped")

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def _dispatch(self, conn: Connection):
        """Runs on the listener thread: hand the connection to a worker."""
        if self.workers.submit(self.handler.handle, conn):
            return

        logger.warning(f"[{conn.id}] Too many connections, rejecting {conn.client_ip}")
        conn.linger = 0
        with conn:
            conn.send_response(service_unavailable("Too many connections").to_bytes())

    # =========================================================================
    # SETUP
    # =========================================================================

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("iogateway").setLevel(level)

    def _print_startup_banner(self):
        host, port = self.address
        print()
        print("╔══════════════════════════════════════════════════════════════╗")
        print(f"  iogateway {__version__} on http://{host}:{port}")
        print(f"  assets:  {self.store!r}")
        print(f"  device:  {type(self.device).__name__}")
        print(f"  streams: up to {self.config.max_event_streams}, every {self.config.tick}s")
        print("  Press Ctrl+C to stop")
        print("╚══════════════════════════════════════════════════════════════╝")
        print()
