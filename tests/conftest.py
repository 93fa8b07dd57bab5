"""
pytest configuration and fixtures.
"""

import os
import socket
from dataclasses import dataclass, field
from typing import Dict, Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from staticserver import StaticFileServer, ServerConfig
from staticserver.http import HTTPRequest


# Fixed mtime for data.bin: Tue, 14 Nov 2023 22:13:20 GMT
DATA_MTIME = 1_700_000_000
DATA = bytes(i % 251 for i in range(1000))


@pytest.fixture
def docroot(tmp_path: Path) -> Path:
    """
    A small document root:

        data.bin            1000 bytes, mtime DATA_MTIME
        hello.txt           "Hello, world!\\n"
        Photo.JPG           a few bytes
        site/index.html     "<h1>Site</h1>"
        site/about.txt
        docs/               no index: a.txt, b.md, "two words.txt"
    """
    root = tmp_path / "www"
    root.mkdir()

    data = root / "data.bin"
    data.write_bytes(DATA)
    os.utime(data, (DATA_MTIME, DATA_MTIME))

    (root / "hello.txt").write_text("Hello, world!\n")
    (root / "Photo.JPG").write_bytes(b"\xff\xd8\xff\xe0fake")

    site = root / "site"
    site.mkdir()
    (site / "index.html").write_text("<h1>Site</h1>")
    (site / "about.txt").write_text("about")

    docs = root / "docs"
    docs.mkdir()
    (docs / "a.txt").write_text("a")
    (docs / "b.md").write_text("# b")
    (docs / "two words.txt").write_text("spaces")

    return root


@pytest.fixture
def config() -> ServerConfig:
    """Test server configuration."""
    return ServerConfig(
        host="127.0.0.1",
        port=0,  # Let OS pick a free port
        min_workers=2,
        max_workers=4,
        timeout=5.0,
        keep_alive_timeout=2.0,
        chunk_size=256,  # Several chunks even for small files
        log_level="WARNING",
    )


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def make_request():
    """Factory for parsed requests, for driving the handler directly."""
    def _make(
        path: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        version: str = "HTTP/1.1",
        raw_path: str = "",
    ) -> HTTPRequest:
        return HTTPRequest(
            method=method,
            path=path,
            raw_path=raw_path or path,
            version=version,
            headers={k.lower(): v for k, v in (headers or {}).items()},
            client_address=("127.0.0.1", 50000),
        )
    return _make


# =============================================================================
# LIVE SERVER
# =============================================================================

@pytest.fixture
def server(docroot: Path, config: ServerConfig) -> Generator[StaticFileServer, None, None]:
    """A running server on a free port."""
    srv = StaticFileServer(docroot, config=config)
    srv.start()
    yield srv
    srv.stop()


@dataclass
class RawResponse:
    """A response as read off the wire."""
    status: int
    reason: str
    version: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    raw_body: bytes = b""  # Before chunked decoding


def read_response(rfile, head: bool = False) -> RawResponse:
    """
    Read exactly one response from a socket file.

    Body framing follows the headers: Content-Length, chunked, or read
    until the server closes.
    """
    status_line = rfile.readline()
    if not status_line:
        raise ConnectionError("connection closed before a response")

    version, status, reason = status_line.decode("latin-1").rstrip("\r\n").split(" ", 2)
    headers = {}
    while True:
        line = rfile.readline().decode("latin-1").rstrip("\r\n")
        if not line:
            break
        name, _, value = line.partition(":")
        headers[name.strip().lower()] = value.strip()

    response = RawResponse(int(status), reason, version, headers)
    if head or response.status in (204, 304):
        return response

    if "content-length" in headers:
        response.raw_body = rfile.read(int(headers["content-length"]))
        response.body = response.raw_body
    elif headers.get("transfer-encoding") == "chunked":
        raw, body = [], []
        while True:
            size_line = rfile.readline()
            raw.append(size_line)
            size = int(size_line.strip(), 16)
            chunk = rfile.read(size + 2)
            raw.append(chunk)
            if size == 0:
                break
            body.append(chunk[:-2])
        response.raw_body = b"".join(raw)
        response.body = b"".join(body)
    else:
        response.raw_body = rfile.read()
        response.body = response.raw_body
    return response


class RawConnection:
    """One client TCP connection speaking hand-written HTTP."""

    def __init__(self, port: int):
        self.sock = socket.create_connection(("127.0.0.1", port), timeout=5.0)
        self.rfile = self.sock.makefile("rb")

    def send(self, data: bytes):
        self.sock.sendall(data)

    def request(
        self,
        path: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        version: str = "HTTP/1.1",
    ) -> RawResponse:
        lines = [f"{method} {path} {version}", "Host: 127.0.0.1"]
        lines += [f"{k}: {v}" for k, v in (headers or {}).items()]
        self.send(("\r\n".join(lines) + "\r\n\r\n").encode("latin-1"))
        return self.read(head=(method == "HEAD"))

    def read(self, head: bool = False) -> RawResponse:
        return read_response(self.rfile, head=head)

    def is_closed_by_peer(self) -> bool:
        """True if the server has closed its end."""
        try:
            return self.sock.recv(1) == b""
        except socket.timeout:
            return False
        except OSError:
            return True

    def close(self):
        self.rfile.close()
        self.sock.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class HTTPClient:
    """Opens connections to a running server."""

    def __init__(self, port: int):
        self.port = port

    def connect(self) -> RawConnection:
        return RawConnection(self.port)

    def request(self, path: str, method: str = "GET", headers=None, version="HTTP/1.1") -> RawResponse:
        """One request on a fresh connection that asks to be closed."""
        headers = dict(headers or {})
        headers.setdefault("Connection", "close")
        with self.connect() as conn:
            return conn.request(path, method=method, headers=headers, version=version)


@pytest.fixture
def client(server: StaticFileServer) -> HTTPClient:
    """Raw-socket client for the running server."""
    return HTTPClient(server.port)
