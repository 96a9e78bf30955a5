"""
=============================================================================
CHUNKED TRANSFER CODING
=============================================================================

A body sent with "Transfer-Encoding: chunked" has no Content-Length.
Instead it is a series of size-prefixed chunks, closed by a zero-size
chunk and an (optional, usually empty) trailer section:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │    1a;name=value\r\n          ← chunk size in hex, extensions       │
    │    abcdefghijklmnopqrstuvwxyz\r\n                                    │
    │    4\r\n                                                             │
    │    1234\r\n                                                          │
    │    0\r\n                      ← last chunk                           │
    │    Expires: never\r\n         ← trailer fields (ignored)            │
    │    \r\n                       ← end of message                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

decode_chunked() is written for a buffer that is still growing: it
returns None while the message is incomplete, so the connection reader
can simply call it again after every recv().

=============================================================================
"""

import re
from typing import List, Optional, Tuple


# Hex digits only; 16 of them already exceed any request we would accept.
_CHUNK_SIZE = re.compile(rb"[0-9A-Fa-f]{1,16}")


class ChunkedError(ValueError):
    """The chunked framing is malformed."""


def is_chunked(transfer_encoding: str) -> bool:
    """True if a Transfer-Encoding value is exactly "chunked"."""
    return transfer_encoding.strip().lower() == "chunked"


def decode_chunked(data: bytes, start: int = 0) -> Optional[Tuple[bytes, int]]:
    """
    Decode the chunked body that begins at data[start].

    Returns:
        (body, end) where `end` is the offset just past the message, so
        data[end:] is whatever the client pipelined after it. None if
        more bytes are needed.

    Raises:
        ChunkedError: Bad size line, or chunk data not followed by CRLF.
    """
    chunks: List[bytes] = []
    pos = start

    while True:
        line_end = data.find(b"\r\n", pos)
        if line_end == -1:
            return None

        size_field = data[pos:line_end].split(b";", 1)[0].strip()
        if not _CHUNK_SIZE.fullmatch(size_field):
            raise ChunkedError(f"Invalid chunk size line: {data[pos:line_end][:32]!r}")

        size = int(size_field, 16)
        pos = line_end + 2
        if size == 0:
            break

        if len(data) < pos + size + 2:
            return None
        if data[pos + size:pos + size + 2] != b"\r\n":
            raise ChunkedError("Chunk data not terminated by CRLF")

        chunks.append(data[pos:pos + size])
        pos += size + 2

    # Trailer fields, up to the empty line.
    while True:
        line_end = data.find(b"\r\n", pos)
        if line_end == -1:
            return None
        if line_end == pos:
            return b"".join(chunks), line_end + 2
        pos = line_end + 2
