"""
=============================================================================
HTTP RESPONSE BUILDER
=============================================================================

Every response this server sends is JSON:

    HTTP/1.1 404 Not Found\r\n
    Content-Type: application/json\r\n      ← set once, by json()
    Content-Length: 23\r\n                  ← added by to_bytes()
    Date: Mon, 19 Oct 2026 12:00:00 GMT\r\n ← added by to_bytes()
    \r\n
    {"error": "not found"}

=============================================================================
THE RESPONSE CONTRACT
=============================================================================

1. Content-Type is `application/json`, set exactly once per response.
2. Exactly one status code.
3. Exactly one JSON body.

ResponseBuilder.json() does the encoding and the header together, and
encodes BEFORE touching the builder's state: if the data can't be
serialized, json() raises and the builder is left untouched, so a handler
can fall back to internal_error() without anything half-written.

=============================================================================
ERROR BODIES
=============================================================================

Error responses carry a fixed body with a single "error" field:

    400  {"error": "bad request"}
    404  {"error": "not found"}
    500  {"error": "internal server error"}

No internal details (exception text, stack traces) ever reach the client;
those go to the log.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Any
import json

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json"

BAD_REQUEST_MESSAGE = "bad request"
NOT_FOUND_MESSAGE = "not found"
INTERNAL_ERROR_MESSAGE = "internal server error"


@dataclass
class HTTPResponse:
    """
    An HTTP response ready to be serialized with to_bytes().

    Use ResponseBuilder (or the helpers at the bottom of this module)
    rather than constructing this directly.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        """e.g. "HTTP/1.1 200 OK"."""
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    def to_bytes(self) -> bytes:
        """
        Serialize for socket.sendall().

        Content-Length and Date are added here if the handler didn't set
        them; the original headers dict is not modified.
        """
        response_headers = dict(self.headers)
        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")

        header_bytes = "\r\n".join(lines).encode("utf-8") + b"\r\n"
        return header_bytes + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json({"id": "1001", "name": "Komi Shouko"})
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        """
        Set a JSON body and the JSON Content-Type.

        Raises:
            TypeError, ValueError: If `data` is not JSON-serializable
                                   (the builder is left unchanged).
        """
        body = json.dumps(data, ensure_ascii=False, allow_nan=False).encode("utf-8")
        self._body = body
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def close_connection(self) -> "ResponseBuilder":
        """Tell the client this connection closes after the response."""
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            body=self._body,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an RFC 7231 HTTP-date (always GMT):

        Mon, 19 Oct 2026 12:00:00 GMT
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================
#
#     return ok(user.to_dict())
#     return not_found()
#
# =============================================================================

def ok(data: Any) -> HTTPResponse:
    """
    200 OK with `data` as the JSON body.

    Raises:
        TypeError, ValueError: If `data` can't be serialized. Callers turn
                               that into internal_error().
    """
    return ResponseBuilder().status(HTTPStatus.OK).json(data).build()


def bad_request() -> HTTPResponse:
    """400 for undecodable or wrong-shaped input."""
    return error_response(HTTPStatus.BAD_REQUEST)


def not_found() -> HTTPResponse:
    """404 for a missing record or an unmatched route."""
    return error_response(HTTPStatus.NOT_FOUND)


def internal_error() -> HTTPResponse:
    """500 when the server could not produce its own output."""
    return error_response(HTTPStatus.INTERNAL_SERVER_ERROR)


def error_message(status: HTTPStatus) -> str:
    """
    Map any error status onto one of the three fixed messages.

    Transport-level statuses (408, 413, 503) reuse the closest one so
    clients only ever have to understand three error bodies.
    """
    if status == HTTPStatus.NOT_FOUND:
        return NOT_FOUND_MESSAGE
    if status.is_server_error:
        return INTERNAL_ERROR_MESSAGE
    return BAD_REQUEST_MESSAGE


def error_response(status: HTTPStatus) -> HTTPResponse:
    """Build `{"error": <message>}` for `status`."""
    return (ResponseBuilder()
        .status(status)
        .json({"error": error_message(status)})
        .build())
