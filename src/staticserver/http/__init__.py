"""
=============================================================================
HTTP PROTOCOL MODULE
=============================================================================

The protocol-level building blocks of the static file server:

    request.py       → HTTPRequest, RequestParser, HTTPParseError
    response.py      → HTTPResponse, ResponseBuilder, FileStream, ListingStream
    status_codes.py  → HTTPStatus
    mime_types.py    → MimeRegistry
    ranges.py        → parse_range, ByteRange
    conditional.py   → is_fresh, parse_http_date

None of these touch sockets; they are pure data in, data out, which
keeps them easy to unit test.

=============================================================================
"""

from .request import HTTPRequest, RequestParser, HTTPParseError, parse_request
from .response import (
    HTTPResponse,
    ResponseBuilder,
    BodyKind,
    FileStream,
    ListingStream,
    format_http_date,
    empty_response,
    not_modified,
    forbidden,
    not_found,
    internal_error,
)
from .status_codes import HTTPStatus
from .mime_types import MimeRegistry, DEFAULT_MIME_TYPES
from .ranges import ByteRange, parse_range
from .conditional import is_fresh, parse_http_date, last_modified_of

__all__ = [
    # Request parsing
    "HTTPRequest",
    "RequestParser",
    "HTTPParseError",
    "parse_request",

    # Responses
    "HTTPResponse",
    "ResponseBuilder",
    "BodyKind",
    "FileStream",
    "ListingStream",
    "format_http_date",
    "empty_response",
    "not_modified",
    "forbidden",
    "not_found",
    "internal_error",

    # Status codes
    "HTTPStatus",

    # MIME types
    "MimeRegistry",
    "DEFAULT_MIME_TYPES",

    # Ranges and conditional requests
    "ByteRange",
    "parse_range",
    "is_fresh",
    "parse_http_date",
    "last_modified_of",
]
