"""
Unit tests for Connection, over a local socket pair.
"""

import socket

import pytest

from staticserver.core.connection import (
    Connection,
    ConnectionState,
    RequestTooLargeError,
)


@pytest.fixture
def pair():
    server_sock, client_sock = socket.socketpair()
    yield server_sock, client_sock
    client_sock.close()
    server_sock.close()


def make_connection(sock, **kwargs) -> Connection:
    kwargs.setdefault("timeout", 1.0)
    kwargs.setdefault("keep_alive_timeout", 0.2)
    return Connection(socket=sock, address=("127.0.0.1", 50000), **kwargs)


class TestReadRequest:
    """Tests for read_request()."""

    def test_single_request(self, pair):
        """Test a complete head is returned as one unit."""
        server_sock, client_sock = pair
        client_sock.sendall(b"GET / HTTP/1.1\r\nHost: x\r\n\r\n")

        conn = make_connection(server_sock)

        assert conn.read_request() == b"GET / HTTP/1.1\r\nHost: x\r\n\r\n"
        assert conn.requests_handled == 1
        assert conn.state == ConnectionState.PROCESSING

    def test_body_is_consumed(self, pair):
        """Test Content-Length body bytes belong to the request."""
        server_sock, client_sock = pair
        client_sock.sendall(
            b"POST /x HTTP/1.1\r\nContent-Length: 4\r\n\r\nbody"
            b"GET /y HTTP/1.1\r\n\r\n"
        )
        conn = make_connection(server_sock)

        first = conn.read_request()
        second = conn.read_request()

        assert first.endswith(b"\r\n\r\nbody")
        assert second == b"GET /y HTTP/1.1\r\n\r\n"

    def test_pipelined_requests(self, pair):
        """Test two requests in one segment are read one at a time."""
        server_sock, client_sock = pair
        client_sock.sendall(b"GET /a HTTP/1.1\r\n\r\nGET /b HTTP/1.1\r\n\r\n")
        conn = make_connection(server_sock)

        assert conn.read_request().startswith(b"GET /a ")
        assert conn.read_request().startswith(b"GET /b ")

    def test_peer_closed(self, pair):
        """Test a closed peer reads as None."""
        server_sock, client_sock = pair
        client_sock.close()
        assert make_connection(server_sock).read_request() is None

    def test_first_request_timeout(self, pair):
        """Test a silent client times out on its first request."""
        server_sock, _ = pair
        conn = make_connection(server_sock, timeout=0.1)

        with pytest.raises(TimeoutError):
            conn.read_request()

    def test_keep_alive_timeout(self, pair):
        """Test an idle kept-alive connection reads as None."""
        server_sock, client_sock = pair
        client_sock.sendall(b"GET / HTTP/1.1\r\n\r\n")
        conn = make_connection(server_sock)

        conn.read_request()

        assert conn.read_request() is None

    def test_too_large(self, pair):
        """Test an oversized head raises."""
        server_sock, client_sock = pair
        client_sock.sendall(b"GET / HTTP/1.1\r\nX-Pad: " + b"a" * 500)
        conn = make_connection(server_sock, max_request_size=256, buffer_size=128)

        with pytest.raises(RequestTooLargeError):
            conn.read_request()

    def test_declared_body_too_large(self, pair):
        """Test a Content-Length past the limit raises before reading it."""
        server_sock, client_sock = pair
        client_sock.sendall(b"POST / HTTP/1.1\r\nContent-Length: 100000\r\n\r\n")
        conn = make_connection(server_sock, max_request_size=1024)

        with pytest.raises(RequestTooLargeError):
            conn.read_request()

    def test_parse_content_length(self):
        """Test the pre-parse Content-Length scan."""
        head = b"POST / HTTP/1.1\r\ncontent-LENGTH:  12\r\n"
        assert Connection._parse_content_length(head) == 12
        assert Connection._parse_content_length(b"GET / HTTP/1.1") == 0
        assert Connection._parse_content_length(b"GET / HTTP/1.1\r\nContent-Length: x") == 0


class TestWriting:
    """Tests for send_response() and stream_response()."""

    def test_stream(self, pair):
        """Test pieces arrive in order and are counted."""
        server_sock, client_sock = pair
        conn = make_connection(server_sock)

        assert conn.stream_response([b"abc", b"", b"def"])
        assert conn.bytes_sent == 6
        assert client_sock.recv(16) == b"abcdef"

    def test_stream_restores_timeout(self, pair):
        """Test the read timeout is back in place after streaming."""
        server_sock, _ = pair
        conn = make_connection(server_sock, timeout=1.5)

        conn.stream_response([b"x"])

        assert server_sock.gettimeout() == 1.5

    def test_send_to_closed_peer(self, pair):
        """Test writing to a gone client returns False."""
        server_sock, client_sock = pair
        client_sock.close()
        conn = make_connection(server_sock)

        assert not conn.stream_response([b"x" * 65536] * 64)

    def test_iterator_error_propagates(self, pair):
        """Test a failing body source is not mistaken for a disconnect."""
        server_sock, _ = pair
        conn = make_connection(server_sock)

        def pieces():
            yield b"a"
            raise OSError("read failed")

        with pytest.raises(OSError, match="read failed"):
            conn.stream_response(pieces())


class TestClose:
    """Tests for close()."""

    def test_close_idempotent(self, pair):
        """Test close() twice is harmless."""
        server_sock, client_sock = pair
        client_sock.close()
        conn = make_connection(server_sock)

        conn.close()
        conn.close()

        assert conn.is_closed

    def test_context_manager(self, pair):
        """Test the with-block closes the connection."""
        server_sock, client_sock = pair
        client_sock.close()

        with make_connection(server_sock) as conn:
            pass

        assert conn.is_closed
