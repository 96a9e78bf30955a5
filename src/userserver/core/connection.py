"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted client socket.

TCP is a byte stream, not a message stream: one recv() may return half a
request, or one and a half. Connection buffers bytes until it has exactly
one complete HTTP request (headers up to \\r\\n\\r\\n, then Content-Length
bytes of body, or a chunked body up to its last chunk) and keeps any
leftover bytes for the next request on the same keep-alive connection.

    NEW ──► READING ──► PROCESSING ──► WRITING ──► KEEP_ALIVE ──┐
               ▲                                                │
               └────────────────────────────────────────────────┘
                                     │
                                     ▼
                              CLOSING ──► CLOSED

=============================================================================
"""

import socket
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Optional, Tuple
import uuid

from ..http.chunked import ChunkedError, decode_chunked, is_chunked


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


class RequestTooLarge(ValueError):
    """The client sent more bytes than max_request_size allows."""


@dataclass
class Connection:
    """
    A client connection with buffered request reading.

    Usage:
        with Connection(socket=sock, address=addr) as conn:
            raw = conn.read_request()
            conn.send_response(b"HTTP/1.1 200 OK\\r\\n...")
        # socket closed here
    """

    socket: socket.socket
    address: tuple[str, int]

    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: ConnectionState = ConnectionState.NEW
    requests_handled: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.settimeout(self.timeout)

    @property
    def has_buffered_data(self) -> bool:
        """Bytes of a pipelined request are already waiting in the buffer."""
        return bool(self._buffer)

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request.

        Subsequent requests on a kept-alive connection use the shorter
        keep_alive_timeout; running out of it there is a normal close,
        not an error.

        Returns:
            The request bytes, or None if the client closed the
            connection (or went idle after an earlier request).

        Raises:
            TimeoutError: The first request didn't arrive in time.
            RequestTooLarge: More than max_request_size bytes.
        """
        self.state = ConnectionState.READING

        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                chunk = self._recv()
                if not chunk:
                    return None
                self._buffer += chunk
                self._check_size()

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            chunked, content_length = self._body_framing(self._buffer[:header_end])

            if chunked:
                request_end = self._read_chunked_body(body_start)
            else:
                while len(self._buffer) - body_start < content_length:
                    chunk = self._recv()
                    if not chunk:
                        break  # closed mid-body; the parser reports it as incomplete
                    self._buffer += chunk
                    self._check_size()
                request_end = body_start + content_length

            request_data = self._buffer[:request_end]
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            self.socket.settimeout(self.timeout)

    def _recv(self) -> bytes:
        try:
            return self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return b""

    def _check_size(self):
        if len(self._buffer) > self.max_request_size:
            raise RequestTooLarge(f"Request too large: {len(self._buffer)} bytes")

    def _read_chunked_body(self, body_start: int) -> int:
        """
        recv() until the chunked body starting at body_start is complete.

        Returns:
            Offset just past the body. On bad framing, or if the client
            closes first, everything buffered so far; the parser then
            rejects the request and the connection is closed.
        """
        while True:
            try:
                decoded = decode_chunked(self._buffer, body_start)
            except ChunkedError:
                return len(self._buffer)
            if decoded is not None:
                return decoded[1]

            chunk = self._recv()
            if not chunk:
                return len(self._buffer)
            self._buffer += chunk
            self._check_size()

    def _body_framing(self, headers: bytes) -> Tuple[bool, int]:
        """
        Find Transfer-Encoding and Content-Length in raw header bytes.

        Only needed to know how much body to read; the full header parse
        happens later in RequestParser, which rejects bad values.

        Returns:
            (chunked, content_length)
        """
        chunked = False
        content_length = 0
        header_str = headers.decode("utf-8", errors="replace").lower()
        for line in header_str.split("\r\n"):
            name, _, value = line.partition(":")
            name = name.strip()
            if name == "transfer-encoding":
                chunked = is_chunked(value)
            elif name == "content-length":
                try:
                    content_length = max(int(value.strip()), 0)
                except ValueError:
                    content_length = 0
        return chunked, content_length

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        sendall() the response bytes.

        Returns:
            True on success, False if the client has gone away.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
            return True
        except OSError as e:
            logger.warning(f"[{self.id}] Send failed: {e}")
            return False

    def set_keep_alive(self):
        self.state = ConnectionState.KEEP_ALIVE

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self, linger: float = 0.5):
        """
        Close gracefully: send FIN (shutdown SHUT_WR), drain what the
        client still sends for up to `linger` seconds, then release the
        socket. Idempotent.

        linger=0 skips the wait; use it for idle connections that have
        nothing left to read.
        """
        if self.state == ConnectionState.CLOSED:
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        try:
            self.socket.settimeout(linger)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass  # includes socket.timeout

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(f"[{self.id}] Connection closed after {self.requests_handled} requests")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
