"""
=============================================================================
BYTE RANGE REQUESTS (RFC 7233)
=============================================================================

Parses the Range request header into a concrete byte interval.

=============================================================================
WHAT IS A RANGE REQUEST?
=============================================================================

A client that already has part of a file (a resumed download, a video
player seeking) asks for just the bytes it is missing:

    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /movie.mp4 HTTP/1.1                                            │
    │  Range: bytes=500-999                                               │
    │                                                                      │
    │  HTTP/1.1 206 Partial Content                                       │
    │  Content-Range: bytes 500-999/1000                                  │
    │  Content-Length: 500                                                │
    │                                                                      │
    │  <500 bytes>                                                        │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SUPPORTED FORMS (single range only)
=============================================================================

    Header value        Meaning                     Interval for length=1000
    ──────────────────  ──────────────────────────  ────────────────────────
    bytes=0-99          first 100 bytes             [0, 100)
    bytes=500-          from 500 to the end         [500, 1000)
    bytes=-100          last 100 bytes              [900, 1000)
    bytes=900-5000      end past EOF gets clipped   [900, 1000)

Everything else gives None, and the caller sends the full file with 200:

    bytes=abc           not numeric
    bytes=0-1,5-9       multiple ranges (not supported)
    bytes=-             neither bound
    bytes=10-5          end before start
    bytes=1000-         start at/after EOF
    bytes=-0            empty suffix

An unusable Range header is never a client error here. The worst case
is that the client gets more bytes than it asked for.

=============================================================================
HALF-OPEN INTERVALS
=============================================================================

Internally we use [start, end) like Python slices, so that
len == end - start with no +1 bookkeeping. The wire format uses an
INCLUSIVE last byte, so Content-Range prints end - 1.

=============================================================================
"""

import re
from dataclasses import dataclass
from typing import Optional


RANGE_PATTERN = re.compile(r"^bytes=(\d*)-(\d*)$")


@dataclass(frozen=True)
class ByteRange:
    """
    A half-open byte interval [start, end) within an entity.

    Invariant: 0 <= start < end <= entity length.
    """

    start: int
    end: int

    @property
    def length(self) -> int:
        """Number of bytes in the interval (the Content-Length)."""
        return self.end - self.start

    def content_range(self, total: int) -> str:
        """
        Format the Content-Range header value.

        Example:
            >>> ByteRange(0, 100).content_range(1000)
            'bytes 0-99/1000'
        """
        return f"bytes {self.start}-{self.end - 1}/{total}"


def parse_range(header: Optional[str], length: int) -> Optional[ByteRange]:
    """
    Parse a Range header against an entity of the given length.

    Args:
        header: Raw Range header value, or None if absent.
        length: Entity length in bytes.

    Returns:
        ByteRange for a satisfiable single range, otherwise None.
    """
    if not header or length <= 0:
        return None

    match = RANGE_PATTERN.match(header.strip())
    if not match:
        return None

    first, last = match.groups()

    if not first:
        # ─────────────────────────────────────────────────────────────────
        # SUFFIX RANGE: bytes=-N means "the last N bytes"
        # ─────────────────────────────────────────────────────────────────
        if not last:
            return None
        suffix = int(last)
        if suffix == 0:
            return None
        return ByteRange(max(0, length - suffix), length)

    start = int(first)
    if start >= length:
        return None

    if not last:
        return ByteRange(start, length)

    end = int(last) + 1  # Wire format is inclusive
    if end <= start:
        return None
    return ByteRange(start, min(end, length))
