"""
=============================================================================
HTTP REQUEST PARSER
=============================================================================

Parses raw HTTP/1.x request bytes into HTTPRequest objects.
Implements the parts of RFC 7230 a static file server needs.

=============================================================================
HTTP REQUEST ANATOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     HTTP REQUEST STRUCTURE                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │  GET /docs/My%20File.pdf?dl=1 HTTP/1.1\r\n     ← request line      │
    │  Host: example.com\r\n                                              │
    │  Range: bytes=0-1023\r\n                        ← we care about     │
    │  If-Modified-Since: Wed, 15 Jun 2024 ...\r\n    ← these two         │
    │  \r\n                                           ← end of headers   │
    │  <body, read and thrown away>                                       │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
RAW PATH VS DECODED PATH
=============================================================================

We keep BOTH forms of the path:

    raw_path  = "/docs/My%20File.pdf"    exactly as sent
    path      = "/docs/My File.pdf"      percent-decoded

The resolver checks the raw segments for ".." before anything is
decoded, then checks the decoded ones too (so "%2e%2e" cannot sneak
through). Unlike a general-purpose parser we do NOT reject ".." here:
traversal is a 403 decided by the resolver, not a 400 syntax error.

=============================================================================
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict
from urllib.parse import urlparse, unquote
import re

from .conditional import parse_http_date


class HTTPParseError(Exception):
    """
    Raised when HTTP request parsing fails.

    Carries the status code to send back:

        400 Bad Request                - Malformed request syntax
        413 Payload Too Large          - Request exceeds size limit
        505 HTTP Version Not Supported - Not HTTP/1.0 or HTTP/1.1
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HTTPRequest:
    """
    Represents a parsed HTTP request.

    =========================================================================
    ATTRIBUTES
    =========================================================================

        method:         GET, HEAD, ... (anything else is served like GET)
        path:           Percent-decoded path, no query string
        raw_path:       Path exactly as it appeared on the request line
        version:        "HTTP/1.0" or "HTTP/1.1"
        headers:        Header dict with LOWERCASE keys
        query_string:   Raw query string (ignored for file serving)
        body:           Request body bytes (drained, never used)
        client_address: (ip, port) of the peer

    =========================================================================
    """

    method: str
    path: str
    raw_path: str = ""
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_string: str = ""
    body: bytes = b""

    client_address: tuple[str, int] = ("", 0)

    def __post_init__(self):
        if not self.raw_path:
            self.raw_path = self.path

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def protocol_version(self) -> str:
        """Version tag without the "HTTP/" prefix: "1.0" or "1.1"."""
        return self.version.partition("/")[2]

    @property
    def is_head(self) -> bool:
        """True for HEAD requests (headers only, no body)."""
        return self.method == "HEAD"

    @property
    def if_modified_since(self) -> Optional[datetime]:
        """
        Parsed If-Modified-Since header.

        None when absent or malformed; both mean "not fresh".
        """
        return parse_http_date(self.headers.get("if-modified-since"))

    @property
    def range(self) -> Optional[str]:
        """Raw Range header value, or None."""
        return self.headers.get("range")

    @property
    def content_length(self) -> int:
        """Content-Length as int, 0 if missing or invalid."""
        try:
            return int(self.headers.get("content-length", 0))
        except ValueError:
            return 0

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_keep_alive(self) -> bool:
        """
        Check if this connection should be kept alive.

        HTTP/1.1: keep alive unless "Connection: close"
        HTTP/1.0: close unless "Connection: keep-alive"
        """
        connection = self.headers.get("connection", "").lower()

        if self.version == "HTTP/1.1":
            return connection != "close"
        else:
            return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Get a header value (case-insensitive lookup)."""
        return self.headers.get(name.lower(), default)


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    ==========================================================================
    PARSER STEPS
    ==========================================================================

        1. Size check            → 413 if over max_request_size
        2. Find \\r\\n\\r\\n        → 400 if missing
        3. Parse request line    → 400 malformed / 505 bad version
        4. Parse headers         → lowercase names, duplicates joined
        5. Slice body by Content-Length

    ==========================================================================
    """

    # Any RFC 7230 token is accepted as a method; dispatch only
    # distinguishes HEAD from everything else.
    REQUEST_LINE_PATTERN = re.compile(r"^([!#$%&'*+.^_`|~0-9A-Za-z-]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    SUPPORTED_VERSIONS = ("HTTP/1.0", "HTTP/1.1")

    def __init__(self, max_request_size: int = 10 * 1024 * 1024):
        """
        Initialize the request parser.

        Args:
            max_request_size: Maximum allowed request size in bytes.
        """
        self.max_request_size = max_request_size

    def parse(
        self,
        data: bytes,
        client_address: tuple[str, int] = ("", 0)
    ) -> HTTPRequest:
        """
        Parse raw HTTP request data into an HTTPRequest object.

        Args:
            data: Raw HTTP request bytes from socket.
            client_address: Client's (ip, port) tuple for logging.

        Returns:
            Parsed HTTPRequest object.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(
                f"Request too large: {len(data)} bytes",
                status_code=413
            )

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        if not lines or not lines[0]:
            raise HTTPParseError("Empty request")

        method, raw_path, query_string, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        # The connection layer already read exactly Content-Length bytes;
        # anything beyond belongs to the next pipelined request.
        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")

        return HTTPRequest(
            method=method,
            path=unquote(raw_path) or "/",
            raw_path=raw_path,
            version=version,
            headers=headers,
            query_string=query_string,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple[str, str, str, str]:
        """
        Parse "METHOD SP REQUEST-URI SP HTTP-VERSION".

        Returns:
            Tuple of (method, raw_path, query_string, version)

        Raises:
            HTTPParseError: If line is malformed or the version unsupported.
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line!r}")

        method, uri, version = match.groups()

        if version not in self.SUPPORTED_VERSIONS:
            raise HTTPParseError(
                f"Unsupported HTTP version: {version}",
                status_code=505
            )

        # Handles both origin-form (/a/b) and absolute-form (http://h/a/b)
        parsed = urlparse(uri)
        raw_path = parsed.path or "/"

        return method.upper(), raw_path, parsed.query, version

    def _parse_headers(self, lines: list[str]) -> Dict[str, str]:
        """
        Parse header lines into a dict with lowercase names.

        Repeated headers are joined with ", " (RFC 7230 section 3.2.2).
        Obsolete line folding (leading whitespace) continues the previous
        header. Malformed lines are skipped.
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
                continue

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
    max_size: int = 10 * 1024 * 1024
) -> HTTPRequest:
    """
    Convenience function to parse an HTTP request in one call.
    """
    parser = RequestParser(max_request_size=max_size)
    return parser.parse(data, client_address)
