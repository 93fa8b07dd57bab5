"""
=============================================================================
CLIENT CONNECTION
=============================================================================

Wraps one accepted client socket: buffered request reading, streamed
response writing, and a clean close.

=============================================================================
READING: ONE REQUEST AT A TIME
=============================================================================

TCP delivers bytes, not messages. A request may arrive in pieces, and a
pipelining client may send two requests in one segment:

    recv #1: "GET /a HTTP/1.1\r\nHost: x\r\n"
    recv #2: "\r\nGET /b HTTP/1.1\r\nHost: x\r\n\r\n"
                   └── leftover, kept in _buffer for the next call

read_request() accumulates until the blank line, then reads exactly
Content-Length body bytes. A file server has no use for a request body,
but it must still be consumed so the next request on the connection
starts at the right byte.

=============================================================================
WRITING: STREAMED, WITH BACKPRESSURE
=============================================================================

    for piece in response.iter_bytes():     # 64 KiB at a time
        sendall(piece)                      # blocks while the peer's
                                            # window is full

Only one chunk is in memory per connection. While writing, the socket
has no timeout: a slow reader slows the transfer, it does not fail it.
A reset or broken pipe ends the transfer and the connection.

=============================================================================
"""

import socket
import time
import logging
from enum import Enum
from dataclasses import dataclass, field
from typing import Iterable, Optional
import uuid


logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """Connection lifecycle states."""
    NEW = "new"
    READING = "reading"
    PROCESSING = "processing"
    WRITING = "writing"
    KEEP_ALIVE = "keep_alive"
    CLOSING = "closing"
    CLOSED = "closed"


class RequestTooLargeError(ValueError):
    """The request head (plus body) exceeded max_request_size."""


@dataclass
class Connection:
    """
    A client connection.

    Attributes:
        socket: The client socket.
        address: Client's (ip, port) tuple.
        id: Short connection identifier for logs.
        state: Current lifecycle state.
        requests_handled: Requests read on this connection so far.
        bytes_sent: Bytes written on this connection so far.
    """

    socket: socket.socket
    address: tuple

    id: str = field(default_factory=lambda: str(uuid.uuid4())[:8])
    state: ConnectionState = ConnectionState.NEW
    last_activity: float = field(default_factory=time.time)
    requests_handled: int = 0
    bytes_sent: int = 0

    buffer_size: int = 8192
    timeout: Optional[float] = 30.0
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    _buffer: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        self.socket.setblocking(True)
        self.socket.settimeout(self.timeout)

    @property
    def client_ip(self) -> str:
        return self.address[0]

    @property
    def is_closed(self) -> bool:
        return self.state == ConnectionState.CLOSED

    # =========================================================================
    # READING
    # =========================================================================

    def read_request(self) -> Optional[bytes]:
        """
        Read one complete HTTP request (head plus Content-Length body).

        Returns:
            The request bytes, or None if the client closed the
            connection or went quiet between kept-alive requests.

        Raises:
            TimeoutError: If the first request does not arrive in time.
            RequestTooLargeError: If the request exceeds max_request_size.
        """
        self.state = ConnectionState.READING
        self.last_activity = time.time()

        # Between requests the client gets the shorter keep-alive window
        if self.requests_handled > 0:
            self.socket.settimeout(self.keep_alive_timeout)

        try:
            while b"\r\n\r\n" not in self._buffer:
                if not self._fill():
                    return None

            header_end = self._buffer.find(b"\r\n\r\n")
            body_start = header_end + 4
            content_length = self._parse_content_length(self._buffer[:header_end])

            if body_start + content_length > self.max_request_size:
                raise RequestTooLargeError(
                    f"Request too large: {body_start + content_length} bytes"
                )

            while len(self._buffer) - body_start < content_length:
                if not self._fill():
                    break  # Client closed mid-body; parser sees the short read

            request_end = body_start + content_length
            request_data = self._buffer[:request_end]

            # Leftovers belong to the next pipelined request
            self._buffer = self._buffer[request_end:]

            self.requests_handled += 1
            self.state = ConnectionState.PROCESSING
            return request_data

        except socket.timeout:
            if self.requests_handled > 0:
                logger.debug(f"[{self.id}] Keep-alive timeout")
                return None
            raise TimeoutError("Request read timeout")

        finally:
            if not self.is_closed:
                self.socket.settimeout(self.timeout)

    def _fill(self) -> bool:
        """recv() once into the buffer. False if the peer closed."""
        try:
            chunk = self.socket.recv(self.buffer_size)
        except (ConnectionResetError, BrokenPipeError):
            return False

        if not chunk:
            return False

        self._buffer += chunk
        self.last_activity = time.time()

        if len(self._buffer) > self.max_request_size:
            raise RequestTooLargeError(f"Request too large: {len(self._buffer)} bytes")
        return True

    @staticmethod
    def _parse_content_length(head: bytes) -> int:
        """
        Find Content-Length in the raw head, before full parsing.

        Anything unusable counts as 0; the request parser rejects it
        properly afterwards.
        """
        for line in head.split(b"\r\n")[1:]:
            name, sep, value = line.partition(b":")
            if sep and name.strip().lower() == b"content-length":
                try:
                    return max(int(value.strip()), 0)
                except ValueError:
                    return 0
        return 0

    # =========================================================================
    # WRITING
    # =========================================================================

    def send_response(self, data: bytes) -> bool:
        """
        Send bytes to the client.

        Returns:
            True if all bytes were sent, False if the connection is gone.
        """
        self.state = ConnectionState.WRITING
        try:
            self.socket.sendall(data)
        except OSError as e:
            logger.warning(f"[{self.id}] Send to {self.client_ip} failed: {e}")
            return False

        self.bytes_sent += len(data)
        self.last_activity = time.time()
        return True

    def stream_response(self, pieces: Iterable[bytes]) -> bool:
        """
        Send a response piece by piece.

        The socket timeout is lifted for the duration. Errors raised by
        the iterable itself (e.g. a failing disk read) propagate to the
        caller; send failures return False.

        Returns:
            True if every piece was sent, False if the client went away.
        """
        self.socket.settimeout(None)
        try:
            for piece in pieces:
                if piece and not self.send_response(piece):
                    return False
            return True
        finally:
            if not self.is_closed:
                self.socket.settimeout(self.timeout)

    # =========================================================================
    # CLOSING
    # =========================================================================

    def close(self):
        """
        Close the connection: FIN, brief drain, release the descriptor.

        Safe to call more than once.
        """
        if self.state in (ConnectionState.CLOSING, ConnectionState.CLOSED):
            return

        self.state = ConnectionState.CLOSING

        try:
            self.socket.shutdown(socket.SHUT_WR)
        except OSError:
            pass  # peer already gone

        try:
            self.socket.settimeout(0.5)
            while self.socket.recv(1024):
                pass
        except OSError:
            pass

        try:
            self.socket.close()
        except OSError:
            pass

        self.state = ConnectionState.CLOSED
        logger.debug(
            f"[{self.id}] Connection closed after {self.requests_handled} requests, "
            f"{self.bytes_sent} bytes sent"
        )

    def set_keep_alive(self):
        """Mark the connection as waiting for its next request."""
        self.state = ConnectionState.KEEP_ALIVE

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
