"""
=============================================================================
HTTP RESPONSE WRITER
=============================================================================

Frames everything the gateway sends back to a browser.

=============================================================================
THREE KINDS OF RESPONSE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  ONE-SHOT (pages, images, state.qif, PUT acknowledgements, errors)  │
    │  ─────────────────────────────────────────────────────────────────  │
    │  HTTP/1.1 200 OK\r\n                                                │
    │  Content-Type: text/html; charset=UTF-8\r\n                         │
    │  Content-Length: 1234\r\n                                           │
    │  \r\n                                                               │
    │  <html>...                                                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │  EVENT STREAM HEADER (events.qif)                                   │
    │  ─────────────────────────────────────────────────────────────────  │
    │  HTTP/1.1 200 OK\r\n                                                │
    │  Content-Type: text/event-stream; charset=UTF-8\r\n                 │
    │  \r\n                                                               │
    │  (no Content-Length: the body never ends)                           │
    ├─────────────────────────────────────────────────────────────────────┤
    │  NOT FOUND                                                          │
    │  ─────────────────────────────────────────────────────────────────  │
    │  HTTP/1.1 404 Not Found\r\n     (or 200 OK in legacy mode)          │
    │  Content-Type: text/html; charset=UTF-8\r\n                         │
    │  Content-Length: 59\r\n                                             │
    │  \r\n                                                               │
    │  <html><head></head><body>404: File not found</body></html>         │
    └─────────────────────────────────────────────────────────────────────┘

Headers are limited to Content-Type and Content-Length. There is no Date,
Server or Connection header: every connection is closed after its one
response, and the event stream is closed by the client.

=============================================================================
"""

from dataclasses import dataclass
from typing import Union

from .status_codes import HTTPStatus
from .mime_types import DEFAULT_CHARSET


HTML_CONTENT_TYPE = f"text/html; charset={DEFAULT_CHARSET}"
TEXT_CONTENT_TYPE = f"text/plain; charset={DEFAULT_CHARSET}"
EVENT_STREAM_CONTENT_TYPE = f"text/event-stream; charset={DEFAULT_CHARSET}"

NOT_FOUND_PAGE = b"<html><head></head><body>404: File not found</body></html>"


@dataclass
class HTTPResponse:
    """
    A one-shot response: status, content type and body.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        Dispatcher builds        to_bytes()              Connection sends
        HTTPResponse    ─────►   serializes    ─────►    raw bytes

    =========================================================================
    """

    status: HTTPStatus = HTTPStatus.OK
    content_type: str = HTML_CONTENT_TYPE
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """Example: "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def set_body(self, body: Union[str, bytes]) -> "HTTPResponse":
        """Set the body, encoding strings as UTF-8."""
        if isinstance(body, str):
            self.body = body.encode("utf-8")
        else:
            self.body = body
        return self

    def to_bytes(self) -> bytes:
        """
        Serialize the response for socket.sendall().

        Content-Length is always computed from the body.
        """
        lines = [
            self.status_line,
            f"Content-Type: {self.content_type}",
            f"Content-Length: {len(self.body)}",
            "",
            "",
        ]
        return "\r\n".join(lines).encode("latin-1") + self.body


class ResponseBuilder:
    """
    Fluent builder for one-shot responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.NOT_FOUND)
            .html(NOT_FOUND_PAGE)
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._content_type = HTML_CONTENT_TYPE
        self._body = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        self._content_type = content_type
        return self

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        """Set a raw body, keeping the current content type."""
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def text(self, text: str) -> "ResponseBuilder":
        """Set a text/plain body."""
        self._content_type = TEXT_CONTENT_TYPE
        return self.body(text)

    def html(self, html: Union[str, bytes]) -> "ResponseBuilder":
        """Set a text/html body."""
        self._content_type = HTML_CONTENT_TYPE
        return self.body(html)

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            content_type=self._content_type,
            body=self._body,
        )

    def to_bytes(self) -> bytes:
        """Build and serialize in one step."""
        return self.build().to_bytes()


# =============================================================================
# EVENT STREAM FRAMING
# =============================================================================

def event_stream_header() -> bytes:
    """
    Header that turns the connection into a Server-Sent Events stream.

    There is no Content-Length: the browser keeps reading events until
    one side closes the connection.
    """
    return (
        f"HTTP/1.1 {int(HTTPStatus.OK)} {HTTPStatus.OK.phrase}\r\n"
        f"Content-Type: {EVENT_STREAM_CONTENT_TYPE}\r\n"
        "\r\n"
    ).encode("latin-1")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def ok(body: bytes = b"", content_type: str = HTML_CONTENT_TYPE) -> HTTPResponse:
    """200 OK with the given body (empty for PUT acknowledgements)."""
    return ResponseBuilder().content_type(content_type).body(body).build()


def not_found(legacy: bool = False) -> HTTPResponse:
    """
    The fixed not-found page.

    Args:
        legacy: Frame the page with "200 OK" instead of "404 Not Found",
                for clients written against the old gateway, which never
                sent a 404 status line.
    """
    status = HTTPStatus.OK if legacy else HTTPStatus.NOT_FOUND
    return ResponseBuilder().status(status).html(NOT_FOUND_PAGE).build()


def internal_error(message: str = "Internal Server Error") -> HTTPResponse:
    """500 with a short text body. Keep device details out of the message."""
    return (ResponseBuilder()
        .status(HTTPStatus.INTERNAL_SERVER_ERROR)
        .text(message)
        .build())


def service_unavailable(message: str = "Service Unavailable") -> HTTPResponse:
    """503 with a short text body (connection or subscriber cap reached)."""
    return (ResponseBuilder()
        .status(HTTPStatus.SERVICE_UNAVAILABLE)
        .text(message)
        .build())
