"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes read from a client socket into a Request.

The gateway only needs three things from a request: which method it is,
which target it names and what follows the "?" in that target. Headers
and body are never interpreted, so the parser is deliberately small.

=============================================================================
WHAT THE PARSER LOOKS AT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  PUT /set_bit.qif?t3=1 HTTP/1.1\r\n                                 │
    │  ─┬─ ─────────┬─────── ────────                                     │
    │   │           │           └── ignored                               │
    │   │           └── target                                            │
    │   │                 ├── path:  /set_bit.qif                         │
    │   │                 └── query: t3=1                                 │
    │   └── method: GET, PUT or anything else (UNKNOWN)                   │
    │                                                                      │
    │  Host: 192.168.1.20\r\n          ┐                                  │
    │  Content-Length: 1\r\n           │ never parsed                     │
    │  \r\n                            │                                  │
    │  0                               ┘                                  │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
FAILURE MODES
=============================================================================

    fewer than MIN_REQUEST_BYTES     →  MalformedRequest (silent close)
    request line without a target    →  MalformedRequest (silent close)
    method other than GET / PUT      →  Request(method=UNKNOWN) (dropped)

None of these produce an HTTP response: a client that cannot form a
request line gets nothing back.

=============================================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..errors import MalformedRequest


class RequestMethod(Enum):
    """Request classification. Everything that is not GET or PUT is UNKNOWN."""
    GET = "GET"
    PUT = "PUT"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class Request:
    """
    A parsed request. Immutable once built, discarded after handling.

    Attributes:
        method:         GET, PUT or UNKNOWN.
        target:         The raw request-line target ("/set_bit.qif?t3=1").
        path:           Target without the query ("/set_bit.qif").
        query:          Everything after the first "?", or None.
        raw:            The bytes the request was parsed from.
        client_address: (ip, port) of the client, for logging.
    """

    method: RequestMethod
    target: str = ""
    path: str = ""
    query: Optional[str] = None
    raw: bytes = field(default=b"", repr=False)
    client_address: tuple[str, int] = ("", 0)

    @property
    def is_supported(self) -> bool:
        """True for GET and PUT."""
        return self.method is not RequestMethod.UNKNOWN

    @property
    def client_ip(self) -> str:
        return self.client_address[0]


class RequestParser:
    """
    Parses raw request bytes into Request objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        raw bytes
           │
           ├── 1. len(data) < MIN_REQUEST_BYTES ?  → MalformedRequest
           │
           ├── 2. leading "GET " / "PUT " ?         → method
           │        neither                         → UNKNOWN, stop here
           │
           ├── 3. second token of the first line    → target
           │        missing, or not "/..."          → MalformedRequest
           │
           └── 4. split target at the first "?"     → path, query

    ==========================================================================
    """

    # A request needs more than ten bytes to be worth looking at
    MIN_REQUEST_BYTES = 11

    METHOD_PREFIXES = {
        b"GET ": RequestMethod.GET,
        b"PUT ": RequestMethod.PUT,
    }

    def __init__(self, min_request_bytes: int = MIN_REQUEST_BYTES):
        self.min_request_bytes = min_request_bytes

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> Request:
        """
        Parse raw request bytes.

        Args:
            data: Bytes received from the client socket.
            client_address: Client's (ip, port) tuple for logging.

        Returns:
            Parsed Request. Its method is UNKNOWN for unsupported requests.

        Raises:
            MalformedRequest: Too few bytes, or no usable target.
        """
        if len(data) < self.min_request_bytes:
            raise MalformedRequest(f"Request too short: {len(data)} bytes")

        method = self._classify(data)
        if method is RequestMethod.UNKNOWN:
            return Request(method=method, raw=data, client_address=client_address)

        target = self._parse_target(data)
        path, _, query = target.partition("?")

        return Request(
            method=method,
            target=target,
            path=path,
            query=query if "?" in target else None,
            raw=data,
            client_address=client_address,
        )

    def _classify(self, data: bytes) -> RequestMethod:
        for prefix, method in self.METHOD_PREFIXES.items():
            if data.startswith(prefix):
                return method
        return RequestMethod.UNKNOWN

    def _parse_target(self, data: bytes) -> str:
        """
        Extract the target from the request line.

        latin-1 maps every byte to one character, so decoding never fails
        and offsets in the decoded text match offsets in the bytes.
        """
        request_line = data.split(b"\n", 1)[0].rstrip(b"\r").decode("latin-1")
        parts = request_line.split(" ")
        if len(parts) < 2 or not parts[1]:
            raise MalformedRequest(f"No target in request line: {request_line!r}")

        target = parts[1]
        if not target.startswith("/"):
            raise MalformedRequest(f"Target has no path: {target!r}")
        return target


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
) -> Request:
    """Convenience function: parse with a default RequestParser."""
    return RequestParser().parse(data, client_address)
