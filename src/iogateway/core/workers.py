"""
=============================================================================
CONNECTION WORKERS
=============================================================================

One thread per accepted connection, with a hard cap on how many run at
once.

=============================================================================
WHY NOT A QUEUE-FED POOL?
=============================================================================

An event stream holds its thread for as long as the browser keeps the
page open: minutes or hours. With a fixed pool, a handful of open pages
would starve every other request sitting in the queue.

    Fixed pool of 4, 4 browsers subscribed:

    ┌──────────┐ ┌──────────┐ ┌──────────┐ ┌──────────┐
    │ Worker 1 │ │ Worker 2 │ │ Worker 3 │ │ Worker 4 │   all streaming
    │ events   │ │ events   │ │ events   │ │ events   │
    └──────────┘ └──────────┘ └──────────┘ └──────────┘
    queue: [GET /index.html] [PUT /set_bit.qif] ...        never served

So each connection gets its own short-lived thread instead, and the cap
turns into an immediate "503 Service Unavailable" rather than a queue
that silently grows.

=============================================================================
WORKER LIFECYCLE
=============================================================================

    submit(handler, conn)
        │
        ├── active >= max_connections ──► return False (caller sends 503)
        │
        └── start daemon thread:
                try:    handler(conn)
                except: log it, the thread still ends cleanly
                finally: forget this thread

    shutdown(timeout)
        └── join every live thread, up to `timeout` seconds in total

=============================================================================
"""

import threading
import time
import logging
from enum import Enum
from typing import Callable, Any


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """State of the worker group as a whole."""
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class ConnectionWorkers:
    """
    Capped thread-per-connection executor.

    Usage:
        workers = ConnectionWorkers(max_connections=32)

        if not workers.submit(handler.handle, conn):
            reject(conn)              # over the cap

        workers.shutdown(timeout=5.0)
    """

    def __init__(self, max_connections: int = 32):
        if max_connections < 1:
            raise ValueError("max_connections must be >= 1")

        self.max_connections = max_connections
        self.state = WorkerState.RUNNING

        self._lock = threading.Lock()
        self._threads: set[threading.Thread] = set()
        self._counter = 0

        # Metrics
        self.tasks_completed = 0
        self.tasks_failed = 0
        self.tasks_rejected = 0

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._threads)

    def submit(self, func: Callable[..., Any], *args: Any) -> bool:
        """
        Run func(*args) on a new thread.

        Returns:
            True if a thread was started, False if the cap is reached or
            the group is shutting down.
        """
        with self._lock:
            if self.state is not WorkerState.RUNNING:
                self.tasks_rejected += 1
                return False

            if len(self._threads) >= self.max_connections:
                self.tasks_rejected += 1
                logger.warning(f"Connection cap reached ({self.max_connections} active)")
                return False

            self._counter += 1
            thread = threading.Thread(
                target=self._run,
                args=(func, args),
                name=f"Conn-{self._counter}",
                daemon=True,
            )
            self._threads.add(thread)

        thread.start()
        return True

    def _run(self, func: Callable[..., Any], args: tuple) -> None:
        start_time = time.time()
        try:
            func(*args)
            with self._lock:
                self.tasks_completed += 1
        except Exception as e:
            # Logged here, never re-raised into the thread machinery
            elapsed = time.time() - start_time
            logger.exception(f"{threading.current_thread().name} failed after {elapsed:.3f}s: {e}")
            with self._lock:
                self.tasks_failed += 1
        finally:
            with self._lock:
                self._threads.discard(threading.current_thread())

    def shutdown(self, timeout: float = 5.0) -> bool:
        """
        Stop accepting work and wait for running connections to finish.

        Event streams end on their own once the event registry is closed,
        so close the registry before calling this.

        Returns:
            True if every thread finished within the timeout.
        """
        with self._lock:
            self.state = WorkerState.STOPPING
            threads = list(self._threads)

        logger.info(f"Waiting for {len(threads)} connection(s) to finish...")

        deadline = time.time() + timeout
        for thread in threads:
            remaining = deadline - time.time()
            if remaining <= 0:
                break
            thread.join(remaining)

        still_running = self.active_count
        self.state = WorkerState.STOPPED

        if still_running:
            logger.warning(f"{still_running} connection(s) still running after {timeout}s")
            return False

        logger.info("All connections finished")
        return True
