"""
Core networking: the listener, the per-client Connection and the capped
worker threads that run handlers.
"""

from .connection import Connection, ConnectionState
from .socket_server import Listener
from .workers import ConnectionWorkers

__all__ = [
    "Connection",
    "ConnectionState",
    "Listener",
    "ConnectionWorkers",
]
