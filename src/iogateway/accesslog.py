"""
=============================================================================
ACCESS LOG
=============================================================================

One line per handled connection, written to the "iogateway.access" logger
so it can be routed separately from diagnostics:

    logging.getLogger("iogateway.access").addHandler(file_handler)

=============================================================================
LOG FORMATS
=============================================================================

    TEXT (default):
    ┌─────────────────────────────────────────────────────────────────────┐
    │ 192.168.1.7 - - [18/Oct/2026:10:55:36 +0000] "PUT /set_bit.qif?t3=1"│
    │   200 0 2.41ms mutating                                             │
    └─────────────────────────────────────────────────────────────────────┘

    JSON:
    ┌─────────────────────────────────────────────────────────────────────┐
    │ {"request_id": "a1b2c3d4", "method": "GET", "target": "/events.qif",│
    │  "client_ip": "192.168.1.7", "status_code": 200,                    │
    │  "bytes_sent": 1860, "duration_ms": 62013.5, "state": "subscribing"}│
    └─────────────────────────────────────────────────────────────────────┘

For an event stream the entry is written when the stream ends, so the
duration is how long the browser stayed subscribed.

=============================================================================
"""

import json
import logging
import time
from dataclasses import dataclass, asdict
from typing import Optional


logger = logging.getLogger("iogateway.access")


LOG_FORMATS = ("text", "json")


@dataclass
class RequestLog:
    """Structured access-log entry for one connection."""

    request_id: str
    method: str
    target: str
    client_ip: str
    status_code: Optional[int]
    bytes_sent: int
    duration_ms: float
    state: str
    timestamp: str

    def to_dict(self) -> dict:
        entry = asdict(self)
        entry["duration_ms"] = round(self.duration_ms, 2)
        return entry

    def to_text(self) -> str:
        """Apache-style line. A missing status is written as "-"."""
        status = self.status_code if self.status_code is not None else "-"
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.target}" {status} '
            f'{self.bytes_sent} {self.duration_ms:.2f}ms {self.state}'
        )


class AccessLog:
    """
    Writes RequestLog entries in the configured format.

    Usage:
        access_log = AccessLog(log_format="json")
        access_log.record(entry)
    """

    def __init__(self, log_format: str = "text", log_level: int = logging.INFO):
        if log_format not in LOG_FORMATS:
            raise ValueError(f"Unknown access log format: {log_format!r}")
        self.log_format = log_format
        self.log_level = log_level

    def record(self, entry: RequestLog) -> None:
        if not logger.isEnabledFor(self.log_level):
            return

        if self.log_format == "json":
            logger.log(self.log_level, json.dumps(entry.to_dict()))
        else:
            logger.log(self.log_level, entry.to_text())


def timestamp() -> str:
    """Current time in access-log format."""
    return time.strftime("%d/%b/%Y:%H:%M:%S %z")
