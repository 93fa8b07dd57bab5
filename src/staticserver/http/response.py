"""
=============================================================================
HTTP RESPONSE MODEL
=============================================================================

Builds HTTP/1.x responses, including STREAMED bodies that never sit in
memory all at once.

=============================================================================
BODY KINDS
=============================================================================

A file server answers with one of four kinds of body:

    ┌───────────────────┬────────────────────────────────────────────────┐
    │ Kind              │ Produced by                                    │
    ├───────────────────┼────────────────────────────────────────────────┤
    │ NONE              │ 304, 403, 404, HEAD                            │
    │ FULL_FILE         │ 200 for a file: FileStream over the whole file │
    │ RANGE_FILE        │ 206: FileStream limited to [start, end)        │
    │ LISTING           │ 200 for a directory: ListingStream of HTML     │
    └───────────────────┴────────────────────────────────────────────────┘

A plain `bytes` body is still available for small fixed responses.

=============================================================================
MESSAGE FRAMING
=============================================================================

The client has to know where the body ends. finalize() picks one of:

    Content-Length known       →  "Content-Length: N", raw bytes
    unknown length, HTTP/1.1   →  "Transfer-Encoding: chunked"
    unknown length, HTTP/1.0   →  "Connection: close", body ends at EOF

Chunked framing wraps every piece as  <hex size>\\r\\n<data>\\r\\n  and
ends with a zero-size chunk:

    5\\r\\n
    hello\\r\\n
    0\\r\\n
    \\r\\n

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import BinaryIO, Dict, Iterable, Iterator, Optional, Union

from .status_codes import HTTPStatus


DEFAULT_CHUNK_SIZE = 64 * 1024


class BodyKind(Enum):
    """What the response body consists of."""

    NONE = "none"
    BYTES = "bytes"
    FULL_FILE = "full_file"
    RANGE_FILE = "range_file"
    LISTING = "listing"


# =============================================================================
# STREAMED BODIES
# =============================================================================

class FileStream:
    """
    Streams a byte interval of an already-open file in fixed-size chunks.

    The file is opened by the handler BEFORE the response is built, so a
    failure to open still turns into a 404. After that, this object owns
    the handle: close() releases it and is safe to call any number of
    times. The server calls it in a `finally`, so the descriptor is freed
    whether the transfer completes, the client disconnects, or a read
    fails.

        stream = FileStream(open(path, "rb"), start=500, end=1000)
        for chunk in stream:      # seeks to 500, reads 500 bytes
            sock.sendall(chunk)
        stream.close()
    """

    def __init__(
        self,
        fileobj: BinaryIO,
        start: int = 0,
        end: Optional[int] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self._file = fileobj
        self.start = start
        self.end = end
        self.chunk_size = chunk_size
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        if self.closed:
            return
        if self.start:
            self._file.seek(self.start)

        remaining = None if self.end is None else self.end - self.start
        while remaining is None or remaining > 0:
            size = self.chunk_size if remaining is None else min(self.chunk_size, remaining)
            chunk = self._file.read(size)
            if not chunk:
                break  # File shrank underneath us
            if remaining is not None:
                remaining -= len(chunk)
            yield chunk

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._file.close()


class ListingStream:
    """
    Streams a directory listing as UTF-8 encoded HTML fragments.

    Wraps a generator of str pieces. Closing it closes the generator,
    which in turn releases the underlying directory iterator.
    """

    def __init__(self, pieces: Iterable[str]):
        self._pieces = pieces
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        for piece in self._pieces:
            yield piece.encode("utf-8")

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            close = getattr(self._pieces, "close", None)
            if close is not None:
                close()


BodyStream = Union[FileStream, ListingStream]


@dataclass
class HTTPResponse:
    """
    Represents an HTTP response to be sent to the client.

    =========================================================================
    RESPONSE LIFECYCLE
    =========================================================================

        Handler returns        finalize()            iter_bytes()
        HTTPResponse   ─────►  picks framing  ─────► head + body chunks
                               for the peer          → socket.sendall()

    =========================================================================
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    stream: Optional[BodyStream] = None
    version: str = "HTTP/1.1"

    # Decided by finalize()
    chunked: bool = False
    close_after: bool = False

    @property
    def status_line(self) -> str:
        """Status line, e.g. "HTTP/1.1 206 Partial Content"."""
        return f"{self.version} {self.status} {self.status.phrase}"

    @property
    def body_kind(self) -> BodyKind:
        """Classify the body for logging and tests."""
        if self.stream is not None:
            if isinstance(self.stream, ListingStream):
                return BodyKind.LISTING
            if self.status == HTTPStatus.PARTIAL_CONTENT:
                return BodyKind.RANGE_FILE
            return BodyKind.FULL_FILE
        if self.body:
            return BodyKind.BYTES
        return BodyKind.NONE

    @property
    def content_length(self) -> Optional[int]:
        """Declared Content-Length, if any."""
        value = self.headers.get("Content-Length")
        return int(value) if value is not None else None

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        """Set a response header; returns self for chaining."""
        self.headers[name] = value
        return self

    def close(self) -> None:
        """Release the body stream, if any. Idempotent."""
        if self.stream is not None:
            self.stream.close()

    # =========================================================================
    # FRAMING
    # =========================================================================

    def finalize(self, request_version: str = "HTTP/1.1", head: bool = False) -> None:
        """
        Decide how the body is delimited for this peer.

        Args:
            request_version: The request's HTTP version; the response
                             answers in the same version.
            head: True for HEAD requests. Headers stay as a GET would
                  have them, but no body bytes or framing are sent.
        """
        self.version = request_version

        if not self.status.allows_body:
            self.headers.pop("Content-Length", None)
            return

        if self.stream is None:
            self.headers.setdefault("Content-Length", str(len(self.body)))
            return

        if head or "Content-Length" in self.headers:
            return

        if request_version == "HTTP/1.1":
            self.headers["Transfer-Encoding"] = "chunked"
            self.chunked = True
        else:
            # HTTP/1.0 has no chunked coding: closing the connection
            # marks the end of the body.
            self.close_after = True
            self.headers["Connection"] = "close"

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def head_bytes(self, server_name: str = "PyStaticServer/1.0") -> bytes:
        """
        Serialize the status line and headers, including the blank line.

            HTTP/1.1 200 OK\\r\\n
            Accept-Ranges: bytes\\r\\n
            ...
            Date: Wed, 01 Jan 2026 12:00:00 GMT\\r\\n
            Server: PyStaticServer/1.0\\r\\n
            \\r\\n
        """
        response_headers = dict(self.headers)
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        for name, value in response_headers.items():
            lines.append(f"{name}: {value}")
        lines.append("")
        return "\r\n".join(lines).encode("utf-8") + b"\r\n"

    def iter_bytes(
        self,
        server_name: str = "PyStaticServer/1.0",
        send_body: bool = True,
    ) -> Iterator[bytes]:
        """
        Yield the wire bytes of the response, head first.

        Body pieces come straight from the stream, so memory use stays at
        one chunk regardless of file size. Errors reading the stream
        propagate to the caller, who is responsible for close().
        """
        yield self.head_bytes(server_name)

        if not send_body or not self.status.allows_body:
            return

        if self.stream is None:
            if self.body:
                yield self.body
            return

        for chunk in self.stream:
            if not chunk:
                continue
            if self.chunked:
                yield f"{len(chunk):X}\r\n".encode("ascii") + chunk + b"\r\n"
            else:
                yield chunk

        if self.chunked:
            yield b"0\r\n\r\n"

    def to_bytes(self, server_name: str = "PyStaticServer/1.0") -> bytes:
        """
        Serialize a fully buffered response in one piece.

        Only meaningful for responses without a stream; streamed bodies
        should go through iter_bytes().
        """
        if "Content-Length" not in self.headers and self.status.allows_body and self.stream is None:
            self.headers["Content-Length"] = str(len(self.body))
        return b"".join(self.iter_bytes(server_name))


class ResponseBuilder:
    """
    Fluent builder for constructing HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.PARTIAL_CONTENT)
            .header("Content-Range", "bytes 0-99/1000")
            .header("Content-Length", "100")
            .stream(FileStream(f, 0, 100))
            .build())
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._stream: Optional[BodyStream] = None

    def status(self, status: HTTPStatus) -> "ResponseBuilder":
        self._status = status
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def content_type(self, content_type: Optional[str]) -> "ResponseBuilder":
        """Set Content-Type; None leaves it unset."""
        if content_type:
            self._headers["Content-Type"] = content_type
        return self

    def stream(self, stream: BodyStream) -> "ResponseBuilder":
        """Attach a streamed body."""
        self._stream = stream
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=self._headers,
            stream=self._stream,
        )


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date (RFC 7231).

    Format: Day, DD Mon YYYY HH:MM:SS GMT
    Example: Wed, 01 Jan 2026 12:00:00 GMT

    HTTP dates are ALWAYS in GMT; aware datetimes are converted first.
    """
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc)

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
# Error responses carry NO body: clients only ever see the status code.
#
# =============================================================================

def empty_response(status: HTTPStatus) -> HTTPResponse:
    """Create a bodyless response with the given status."""
    return ResponseBuilder().status(status).build()


def not_modified() -> HTTPResponse:
    """Create a 304 Not Modified response."""
    return empty_response(HTTPStatus.NOT_MODIFIED)


def forbidden() -> HTTPResponse:
    """Create a 403 Forbidden response."""
    return empty_response(HTTPStatus.FORBIDDEN)


def not_found() -> HTTPResponse:
    """Create a 404 Not Found response."""
    return empty_response(HTTPStatus.NOT_FOUND)


def internal_error() -> HTTPResponse:
    """Create a 500 Internal Server Error response."""
    return empty_response(HTTPStatus.INTERNAL_SERVER_ERROR)
