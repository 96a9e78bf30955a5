"""
=============================================================================
HTTP LAYER
=============================================================================

    request.py       raw bytes → HTTPRequest
    chunked.py       Transfer-Encoding: chunked bodies
    router.py        HTTPRequest → handler (first match wins) or 404
    response.py      HTTPResponse / ResponseBuilder / fixed error bodies
    status_codes.py  HTTPStatus with reason phrases

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .chunked import ChunkedError, decode_chunked
from .response import (
    HTTPResponse,
    ResponseBuilder,
    ok,              # 200 OK
    bad_request,     # 400 Bad Request
    not_found,       # 404 Not Found
    internal_error,  # 500 Internal Server Error
    error_response,
)
from .router import Router, Route, RouteMatch, PathMatcher, PathPattern
from .status_codes import HTTPStatus

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",
    "ChunkedError",
    "decode_chunked",
    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "ok",
    "bad_request",
    "not_found",
    "internal_error",
    "error_response",
    # Routing
    "Router",
    "Route",
    "RouteMatch",
    "PathMatcher",
    "PathPattern",
    # Status codes
    "HTTPStatus",
]
