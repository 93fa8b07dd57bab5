"""
=============================================================================
STATICSERVER
=============================================================================

A multi-threaded HTTP/1.1 static file server on raw sockets.

    from staticserver import StaticFileServer

    server = StaticFileServer("./public", port=8080)
    server.add_mime_types({"webmanifest": "application/manifest+json"})
    server.run()

Features:
    - Directory index (index.html) or a streamed HTML listing
    - Byte ranges (206 Partial Content, suffix ranges)
    - Last-Modified / If-Modified-Since (304 Not Modified)
    - Path traversal guard (403), both ".." segments and symlink escapes
    - Streaming with backpressure: one 64 KiB chunk in memory per transfer
    - Keep-alive, chunked transfer coding for HTTP/1.1

=============================================================================
"""

__version__ = "1.0.0"

from .server import StaticFileServer, create_server
from .config import ServerConfig, ConfigurationError
from .http import MimeRegistry, DEFAULT_MIME_TYPES
from .resolver import ForbiddenPathError

__all__ = [
    "StaticFileServer",
    "create_server",
    "ServerConfig",
    "ConfigurationError",
    "MimeRegistry",
    "DEFAULT_MIME_TYPES",
    "ForbiddenPathError",
    "__version__",
]
