"""
Request handlers.

    static.py → StaticFileHandler: resolve, guard, list or stream a file

    handler = serve_static("/var/www")
    response = handler.handle(request)
"""

from .static import StaticFileHandler, serve_static

__all__ = [
    "StaticFileHandler",
    "serve_static",
]
