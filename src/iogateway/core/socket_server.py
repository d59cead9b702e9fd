"""
=============================================================================
TCP LISTENER
=============================================================================

Owns the listening socket and the accept loop. Every accepted client is
wrapped in a Connection and handed to a callback; the listener itself
never reads or writes client data.

                    ┌───────────────────────┐
                    │   Listening Socket    │ ◄── Created once at startup
                    │   0.0.0.0:8080        │     Never sends/receives data
                    └───────────┬───────────┘
                                │ accept()
        ┌───────────────────────┼───────────────────────┐
        ▼                       ▼                       ▼
    ┌───────────┐         ┌───────────┐         ┌───────────┐
    │ GET       │         │ GET       │         │ PUT       │
    │ index.html│         │ events.qif│         │ set_bit   │
    └───────────┘         └───────────┘         └───────────┘

=============================================================================
SOCKET OPTIONS
=============================================================================

SO_REUSEADDR:  restart immediately, without waiting out TIME_WAIT.
TCP_NODELAY:   send each event as soon as it is written. An event is a
               few dozen bytes; Nagle's algorithm would hold it back.

=============================================================================
STOPPING
=============================================================================

accept() waits at most one second, so the loop notices shutdown() within
a second. SIGINT and SIGTERM call shutdown() when the listener runs on
the main thread.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import GatewayConfig
from .connection import Connection


logger = logging.getLogger(__name__)


# Seconds accept() blocks before re-checking the running flag
ACCEPT_TIMEOUT = 1.0


class Listener:
    """
    TCP accept loop.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        Listener Internals                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    start(callback)                                                   │
    │        ├──► _create_socket()   SO_REUSEADDR, TCP_NODELAY, timeout   │
    │        ├──► bind()             OSError propagates to the caller     │
    │        ├──► listen()                                                 │
    │        ├──► _setup_signals()   main thread only                     │
    │        └──► _accept_loop()     blocks until shutdown()              │
    │                                                                      │
    │    shutdown()                                                        │
    │        └──► _running = False                                         │
    │                                                                      │
    │    _cleanup()                                                        │
    │        ├──► restore signal handlers                                  │
    │        └──► close listening socket                                   │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

    Usage:
        listener = Listener(config)
        listener.start(workers_dispatch)   # blocks
    """

    def __init__(self, config: GatewayConfig, install_signal_handlers: bool = True):
        self.config = config
        self.install_signal_handlers = install_signal_handlers

        self._socket: Optional[socket.socket] = None
        self._running = False

        # Set once the socket is listening, cleared again after cleanup
        self._ready = threading.Event()
        self._stopped = threading.Event()

        # Handlers replaced by _setup_signals(), put back on cleanup
        self._saved_handlers: dict[signal.Signals, object] = {}
        self._bound_address: Optional[Tuple[str, int]] = None

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def address(self) -> Tuple[str, int]:
        """
        The address actually bound. With port 0 this holds the port the
        OS picked.
        """
        return self._bound_address or (self.config.host, self.config.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        sock.settimeout(ACCEPT_TIMEOUT)
        return sock

    def _setup_signals(self):
        """Turn SIGTERM / SIGINT into a graceful shutdown()."""
        if not self.install_signal_handlers:
            return
        if threading.current_thread() is not threading.main_thread():
            logger.debug("Not on the main thread, leaving signal handlers alone")
            return

        def on_signal(signum, frame):
            logger.info(f"{signal.Signals(signum).name} received, stopping gateway")
            self.shutdown()

        for sig in (signal.SIGTERM, signal.SIGINT):
            self._saved_handlers[sig] = signal.signal(sig, on_signal)

    def _restore_signals(self):
        while self._saved_handlers:
            sig, previous = self._saved_handlers.popitem()
            signal.signal(sig, previous)

    def bind(self) -> Tuple[str, int]:
        """
        Create, bind and listen. Called by start(); callable on its own so
        bind failures surface before anything else is started.

        Raises:
            OSError: The address is in use or not permitted.
        """
        if self._socket is not None:
            return self.address

        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        self._socket = sock
        self._bound_address = sock.getsockname()[:2]
        return self._bound_address

    def start(self, connection_handler: Callable[[Connection], None]):
        """
        Accept connections until shutdown(). Blocks.

        Args:
            connection_handler: Called on the listener thread for every
                                accepted connection. It must not block.
        """
        self.bind()

        self._running = True
        self._stopped.clear()
        self._setup_signals()
        self._ready.set()

        host, port = self.address
        logger.info(f"Listening on {host}:{port}")

        try:
            self._accept_loop(connection_handler)
        finally:
            self._cleanup()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                body_wait=self.config.body_wait,
            )
            connection_handler(conn)

    def shutdown(self):
        """Stop accepting. Idempotent, callable from any thread."""
        if self._running:
            logger.info("Stopping listener...")
        self._running = False

    def _cleanup(self):
        self._restore_signals()

        if self._socket:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._ready.clear()
        self._stopped.set()
        logger.info("Listener stopped")

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Block until the socket is listening. For tests and embedding."""
        return self._ready.wait(timeout)

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until the accept loop has exited and the socket is closed."""
        return self._stopped.wait(timeout)
