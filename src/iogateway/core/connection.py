"""
=============================================================================
CONNECTION MANAGEMENT
=============================================================================

Wraps one accepted client socket. A Connection is owned by exactly one
handler thread from accept to close.

=============================================================================
READING: ONE READ, AT MOST ONE MORE
=============================================================================

TCP does not preserve message boundaries, so the first recv() can return
part of a request. A browser usually sends a GET in one segment, but a PUT
often arrives as headers first and body a moment later.

The gateway never waits indefinitely for a slow client:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     read_request() Flow                             │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   recv(buffer_size)                 first read, up to `timeout`     │
    │        │                                                             │
    │        ▼                                                             │
    │   request looks incomplete?                                          │
    │     - no end of request line yet                                     │
    │     - no end of headers yet                                          │
    │     - Content-Length says more body is coming                        │
    │        │                                                             │
    │        ├── no  ──► return what we have                               │
    │        │                                                             │
    │        └── yes ──► ONE more recv(), waiting at most `body_wait`      │
    │                    then return whatever arrived                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
CONNECTION STATE MACHINE
=============================================================================

    NEW ──► READING ──► PROCESSING ──► WRITING ──────────────┐
                            │                                 │
                            └────► STREAMING (events.qif) ────┤
                                                              ▼
                                                CLOSING ──► CLOSED

Closing is idempotent: whatever path the handler took, the socket is
released exactly once.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
import uuid

from ..errors import PeerWriteFailure


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states, used for logging and the close guard."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    STREAMING = "streaming"      # Long-lived event stream
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass
class Connection:
    """
    Represents a client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short unique identifier, used in logs and as registry key.
        state: Current connection state.
        created_at: Timestamp when the connection was accepted.
        bytes_sent: Total bytes written to the client.
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    created_at: float = field(default_factory=time.time)
    bytes_sent: int = 0

    # Configuration (passed from GatewayConfig)
    buffer_size: int = 5000           # Largest request we look at
    timeout: float = 30.0             # First read and every write
    body_wait: float = 1.0            # The one extra read for slow clients
    linger: float = 0.5               # Drain time when closing

    def __post_init__(self):
        self.socket.setblocking(True)
        if self.timeout:
            self.socket.settimeout(self.timeout)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def age(self) -> float:
        """Connection age in seconds."""
        return time.time() - self.created_at

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> bytes:
        """
        Read a request from the socket.

        Returns:
            The bytes received. Empty if the client sent nothing before
            the timeout or closed the connection.
        """
        self.state = ConnectionState.READING

        try:
            data = self._recv(self.buffer_size)
        except socket.timeout:
            logger.debug(f"[{self.id}] No request before timeout")
            return b""

        if data and len(data) < self.buffer_size and self._expects_more(data):
            logger.debug(f"[{self.id}] Partial request ({len(data)} bytes), waiting for more")
            data += self._recv_extra(self.buffer_size - len(data))

        logger.debug(f"[{self.id}] Read {len(data)} bytes")
        return data

    def _recv(self, size: int) -> bytes:
        """recv() that maps an abrupt disconnect to "no data"."""
        try:
            return self.socket.recv(size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _recv_extra(self, size: int) -> bytes:
        """The single bounded extra read. Never raises on timeout."""
        self.socket.settimeout(self.body_wait)
        try:
            return self._recv(size)
        except (socket.timeout, BlockingIOError):
            return b""
        finally:
            self.socket.settimeout(self.timeout)

    def _expects_more(self, data: bytes) -> bool:
        """
        Heuristic: does the client still have bytes in flight?

        The request line is not terminated yet, the headers are not
        terminated yet, or a Content-Length marker names more body bytes
        than we hold.
        """
        if b"\n" not in data:
            return True

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            return True

        content_length = self._parse_content_length(data[:header_end])
        return len(data) - (header_end + 4) < content_length

    def _parse_content_length(self, headers: bytes) -> int:
        """
        Parse the Content-Length value from raw header bytes.

        Returns 0 if the header is missing or invalid.
        """
        try:
            header_str = headers.decode("latin-1").lower()
            for line in header_str.split("\r\n"):
                if line.startswith("content-length:"):
                    return int(line.split(":", 1)[1].strip())
        except (ValueError, IndexError):
            pass
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send(self, data: bytes) -> None:
        """
        Write all of data to the client.

        Raises:
            PeerWriteFailure: The client is gone (reset, broken pipe,
                              timeout or already closed).
        """
        if self.state not in (ConnectionState.STREAMING,):
            self.state = ConnectionState.WRITING

        try:
            self.socket.sendall(data)
        except (OSError, ValueError) as e:
            # OSError covers reset, broken pipe and timeout.
            # ValueError is raised for a socket that was already closed.
            raise PeerWriteFailure(f"[{self.id}] Send failed: {e}") from e

        self.bytes_sent += len(data)

    def send_response(self, data: bytes) -> bool:
        """
        Write a complete one-shot response.

        Returns:
            True if the send succeeded, False if the client is gone.
        """
        try:
            self.send(data)
            return True
        except PeerWriteFailure as e:
            logger.warning(str(e))
            return False

    def start_streaming(self):
        """Mark the connection as a long-lived event stream."""
        self.state = ConnectionState.STREAMING

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection gracefully, exactly once.

        1. shutdown(SHUT_WR): send FIN, we are done writing
        2. drain whatever the client still sends (bounded by `linger`)
        3. close(): release the file descriptor
        """
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # Peer already gone

        try:
            self.socket.settimeout(self.linger)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass  # socket.timeout is an OSError

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.age:.2f}s, {self.bytes_sent} bytes sent")

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self):
        """
        Scope the connection to a block:

            with conn:
                data = conn.read_request()
                conn.send_response(response)
            # closed here, whatever happened inside
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
