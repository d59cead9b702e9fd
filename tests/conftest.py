"""
pytest configuration and fixtures.
"""

import socket
import threading
import time
from typing import Generator
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from iogateway import GatewayServer, GatewayConfig
from iogateway.core import Connection
from iogateway.device import SimulatedDevice, HardwareBridge
from iogateway.events import EventRegistry, state_snapshot
from iogateway.handlers import ConnectionHandler
from iogateway.resources import MemoryAssetStore, ResourceResolver


INDEX_HTML = b"<html><head><title>PiFace</title></head><body>board</body></html>"
PIFACE_JS = b"var source = new EventSource('events.qif');"
BOARD_PNG = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\xff\xfe"


@pytest.fixture
def sample_get_request() -> bytes:
    """Request a browser sends for the UI page."""
    return (
        b"GET /index.html HTTP/1.1\r\n"
        b"Host: 192.168.1.20:8080\r\n"
        b"User-Agent: pytest\r\n"
        b"Accept: text/html\r\n"
        b"\r\n"
    )


@pytest.fixture
def sample_put_request() -> bytes:
    """Request the UI script sends when an output button is clicked."""
    return (
        b"PUT /set_bit.qif?t3=1 HTTP/1.1\r\n"
        b"Host: 192.168.1.20:8080\r\n"
        b"Content-Length: 0\r\n"
        b"\r\n"
    )


@pytest.fixture
def assets() -> MemoryAssetStore:
    return MemoryAssetStore({
        "index.html": INDEX_HTML,
        "piface.js": PIFACE_JS,
        "board.png": BOARD_PNG,
    })


@pytest.fixture
def device() -> SimulatedDevice:
    return SimulatedDevice()


@pytest.fixture
def registry() -> EventRegistry:
    return EventRegistry(capacity=3)


@pytest.fixture
def bridge(device: SimulatedDevice, registry: EventRegistry) -> HardwareBridge:
    return HardwareBridge(device, on_outputs=registry.publish_outputs)


@pytest.fixture
def resolver(assets: MemoryAssetStore, bridge: HardwareBridge) -> ResourceResolver:
    resolver = ResourceResolver(assets)
    resolver.add_computed("state", lambda: state_snapshot(bridge))
    return resolver


@pytest.fixture
def handler(resolver, registry, bridge) -> ConnectionHandler:
    return ConnectionHandler(resolver, registry, bridge, tick=0.05)


@pytest.fixture
def socket_pair() -> Generator[tuple[Connection, socket.socket], None, None]:
    """
    A server-side Connection and the client socket talking to it.

    Short timeouts keep tests that hit the slow paths fast.
    """
    server_sock, client_sock = socket.socketpair()
    conn = Connection(
        socket=server_sock,
        address=("127.0.0.1", 50000),
        timeout=2.0,
        body_wait=0.2,
        linger=0.05,
    )
    client_sock.settimeout(5.0)

    yield conn, client_sock

    conn.close()
    client_sock.close()


def recv_until(sock: socket.socket, marker: bytes, timeout: float = 5.0) -> bytes:
    """Read from sock until marker appears in the data (or the peer closes)."""
    data = b""
    deadline = time.time() + timeout
    while marker not in data:
        if time.time() > deadline:
            raise TimeoutError(f"{marker!r} not received, got {data!r}")
        chunk = sock.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


def recv_all(sock: socket.socket) -> bytes:
    """Read until the peer closes."""
    data = b""
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return data
        data += chunk


class TestGateway:
    """Gateway running in a background thread."""

    __test__ = False

    def __init__(self, server: GatewayServer):
        self.server = server
        self._thread: threading.Thread = None

    @property
    def port(self) -> int:
        return self.server.address[1]

    def start(self):
        self._thread = threading.Thread(
            target=self.server.run,
            kwargs={"configure_logging": False, "banner": False},
            daemon=True,
        )
        self._thread.start()

        if not self.server.wait_until_ready(timeout=5.0):
            raise RuntimeError("Gateway failed to start")

    def stop(self):
        self.server.shutdown()
        if not self.server.wait_for_shutdown(timeout=10.0):
            raise RuntimeError("Gateway failed to stop listening")

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=10.0)

    def connect(self) -> socket.socket:
        sock = socket.create_connection(("127.0.0.1", self.port), timeout=5.0)
        return sock

    def request(self, raw: bytes) -> bytes:
        """Send one request and return everything until the server closes."""
        with self.connect() as sock:
            sock.sendall(raw)
            return recv_all(sock)


@pytest.fixture
def gateway_config() -> GatewayConfig:
    return GatewayConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        tick=0.1,
        max_connections=8,
        max_event_streams=2,
        timeout=5.0,
        body_wait=0.2,
        shutdown_timeout=5.0,
        log_level="WARNING",
    )


@pytest.fixture
def test_gateway(gateway_config, assets, device) -> Generator[TestGateway, None, None]:
    """A running gateway with an in-memory UI and a simulated board."""
    server = GatewayServer(
        gateway_config,
        device=device,
        store=assets,
        install_signal_handlers=False,
    )

    gateway = TestGateway(server)
    gateway.start()

    yield gateway

    gateway.stop()
