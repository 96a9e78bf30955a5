"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Turns the raw bytes of one HTTP/1.1 request into an HTTPRequest.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │    POST /users?x=1 HTTP/1.1\r\n          ← request line              │
    │    Host: localhost:8080\r\n              ← headers                   │
    │    Content-Type: application/json\r\n                                │
    │    Content-Length: 31\r\n                                            │
    │    \r\n                                  ← blank line                │
    │    {"id": "2001", "name": "X"}           ← body (Content-Length)     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

What the router sees:
    method = "POST"
    path   = "/users"            (query string split off, %-decoded)

The path is NOT otherwise normalized. "/users//" and "/users/1/" reach
the router as-is and simply fail to match any route.

A body arrives either as Content-Length bytes or in chunked transfer
coding (see chunked.py); any other Transfer-Encoding is a 400.

Any uppercase token is accepted as a method. Whether "DELETE" or "BREW"
is supported is the router's decision (it answers 404), not the parser's.

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Dict
from urllib.parse import parse_qs, urlparse, unquote
import re

from .chunked import ChunkedError, decode_chunked, is_chunked


class HTTPParseError(Exception):
    """
    Raised when the request bytes are not a valid HTTP message.

    Attributes:
        status_code: HTTP status to answer with (400, or 413 for
                     oversized requests).
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Headers are stored with LOWERCASE names (HTTP header names are
    case-insensitive), query_params as lists of values, and path_params
    are filled in by the router when a route matches.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"
    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""

    # Router-injected captures, e.g. {"id": "42"}
    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple[str, int] = ("", 0)

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection open unless told "close";
        HTTP/1.0 closes it unless told "keep-alive".
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

        1. Size check                 too large  → HTTPParseError(413)
        2. Split at \\r\\n\\r\\n          missing    → HTTPParseError(400)
        3. Request line               malformed  → HTTPParseError(400)
        4. Headers                    lenient, bad lines skipped
        5. Body by Content-Length     short/bad  → HTTPParseError(400)
           or chunked coding          malformed  → HTTPParseError(400)
    """

    # METHOD SP REQUEST-URI SP HTTP-VERSION
    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse one complete request.

        Raises:
            HTTPParseError: If the request is malformed or too large.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413,
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        if "transfer-encoding" in headers:
            body = self._decode_chunked_body(headers, body)
        else:
            body = self._cut_to_content_length(headers, body)

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body,
            client_address=client_address,
        )

    def _cut_to_content_length(self, headers: Dict[str, str], body: bytes) -> bytes:
        """
        Body is exactly Content-Length bytes; anything after belongs to
        the next pipelined request.
        """
        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError(f"Invalid Content-Length: {headers['content-length']}")
        if content_length < 0:
            raise HTTPParseError(f"Invalid Content-Length: {content_length}")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )
        return body[:content_length]

    def _decode_chunked_body(self, headers: Dict[str, str], body: bytes) -> bytes:
        """
        Only plain "chunked" is understood. Any other coding, or a
        Content-Length alongside it, leaves the body length ambiguous and
        is rejected.
        """
        transfer_encoding = headers["transfer-encoding"]
        if not is_chunked(transfer_encoding):
            raise HTTPParseError(f"Unsupported Transfer-Encoding: {transfer_encoding}")
        if "content-length" in headers:
            raise HTTPParseError("Both Transfer-Encoding and Content-Length present")

        try:
            decoded = decode_chunked(body)
        except ChunkedError as e:
            raise HTTPParseError(str(e))
        if decoded is None:
            raise HTTPParseError("Incomplete chunked body")
        return decoded[0]

    def _parse_request_line(
        self,
        line: str
    ) -> tuple[str, str, Dict[str, list[str]], str]:
        """
        Split "GET /users/1?x=y HTTP/1.1" into its parts.

        Returns:
            (method, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(f"Unsupported HTTP version: {version}")

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        return method, path, query_params, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse "Name: Value" lines into a dict with lowercase names.

        Repeated headers are joined with ", " (RFC 7230 §3.2.2). Obsolete
        line folding (a line starting with whitespace) continues the
        previous header.
        """
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue  # lenient: skip malformed header lines

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers


def parse_request(
    data: bytes,
    client_address: tuple[str, int] = ("", 0),
    max_size: int = 1024 * 1024
) -> HTTPRequest:
    """One-shot helper: RequestParser(max_size).parse(data, client_address)."""
    return RequestParser(max_request_size=max_size).parse(data, client_address)
