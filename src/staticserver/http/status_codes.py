"""
=============================================================================
HTTP STATUS CODES (RFC 7231)
=============================================================================

The status codes a static file server actually emits, with reason phrases.

=============================================================================
WHICH CODES DOES A FILE SERVER NEED?
=============================================================================

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  Code  │ When we send it                                           │
    ├────────┼───────────────────────────────────────────────────────────┤
    │  200   │ Full file, HEAD, or a directory listing                   │
    │  206   │ A single byte range of a file                             │
    │  304   │ If-Modified-Since says the client copy is still fresh     │
    │  400   │ Request line or headers could not be parsed               │
    │  403   │ Path tried to climb out of the document root              │
    │  404   │ Nothing at that path, or the file vanished mid-request    │
    │  408   │ Client connected but never finished sending the request   │
    │  413   │ Request (headers + body) exceeded max_request_size        │
    │  500   │ Unexpected failure inside the handler                     │
    │  503   │ Worker queue full                                         │
    │  505   │ Anything other than HTTP/1.0 or HTTP/1.1                  │
    └────────┴───────────────────────────────────────────────────────────┘

Note there is no 416 Range Not Satisfiable: a range we cannot satisfy
is treated as "no range" and the whole file is sent with 200.

=============================================================================
"""

from enum import IntEnum


class HTTPStatus(IntEnum):
    """
    HTTP status codes used by the server.

    IntEnum lets the values compare and format as plain integers:

        >>> HTTPStatus.NOT_FOUND == 404
        True
        >>> f"{HTTPStatus.OK}"
        '200'
    """

    OK = 200                        # Full content
    PARTIAL_CONTENT = 206           # Single byte range

    NOT_MODIFIED = 304              # Cached copy is still valid

    BAD_REQUEST = 400               # Malformed request syntax
    FORBIDDEN = 403                 # Traversal attempt
    NOT_FOUND = 404                 # Nothing at that path
    REQUEST_TIMEOUT = 408           # Client too slow to send request
    PAYLOAD_TOO_LARGE = 413         # Request exceeds size limit

    INTERNAL_SERVER_ERROR = 500     # Unexpected handler failure
    SERVICE_UNAVAILABLE = 503       # Worker queue full
    HTTP_VERSION_NOT_SUPPORTED = 505

    def __str__(self) -> str:
        return str(self.value)

    def __format__(self, format_spec: str) -> str:
        return format(self.value, format_spec)

    @property
    def phrase(self) -> str:
        """
        Get the reason phrase for this status code.

            HTTP/1.1 206 Partial Content
                     ─── ───────────────
                      │         │
                      │         └── Reason phrase
                      └──────────── Status code
        """
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        """Check if this is a 2xx (success) status code."""
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        """Check if this is an error status code (4xx or 5xx)."""
        return self >= 400

    @property
    def allows_body(self) -> bool:
        """
        Check whether a response with this status may carry a body.

        RFC 7230 section 3.3.3: 1xx, 204 and 304 responses never have one,
        so they must not get Content-Length or chunked framing either.
        """
        return not (self < 200 or self in (204, 304))


_STATUS_PHRASES = {
    HTTPStatus.OK: "OK",
    HTTPStatus.PARTIAL_CONTENT: "Partial Content",
    HTTPStatus.NOT_MODIFIED: "Not Modified",
    HTTPStatus.BAD_REQUEST: "Bad Request",
    HTTPStatus.FORBIDDEN: "Forbidden",
    HTTPStatus.NOT_FOUND: "Not Found",
    HTTPStatus.REQUEST_TIMEOUT: "Request Timeout",
    HTTPStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HTTPStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
    HTTPStatus.SERVICE_UNAVAILABLE: "Service Unavailable",
    HTTPStatus.HTTP_VERSION_NOT_SUPPORTED: "HTTP Version Not Supported",
}
