"""
=============================================================================
HTTP PROTOCOL LAYER
=============================================================================

Just enough HTTP for a browser talking to the gateway:

    request.py       raw bytes → Request (method, target, path, query)
    response.py      HTTPResponse framing, SSE header, fixed error pages
    status_codes.py  the status codes the gateway sends
    mime_types.py    asset name → Content-Type

=============================================================================
"""

from .request import Request, RequestMethod, RequestParser, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    NOT_FOUND_PAGE,
    EVENT_STREAM_CONTENT_TYPE,
    event_stream_header,
    ok,
    not_found,
    internal_error,
    service_unavailable,
)
from .status_codes import HTTPStatus
from .mime_types import get_mime_type, get_content_type

__all__ = [
    # Request parsing
    "Request",
    "RequestMethod",
    "RequestParser",
    "parse_request",

    # Response framing
    "HTTPResponse",
    "ResponseBuilder",
    "NOT_FOUND_PAGE",
    "EVENT_STREAM_CONTENT_TYPE",
    "event_stream_header",
    "ok",
    "not_found",
    "internal_error",
    "service_unavailable",

    # Status codes
    "HTTPStatus",

    # MIME types
    "get_mime_type",
    "get_content_type",
]
