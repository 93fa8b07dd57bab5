"""
Middleware around the static file handler.

    base.py     → Middleware, MiddlewarePipeline, function_middleware
    logging.py  → LoggingMiddleware (access log, X-Request-ID)
"""

from .base import (
    Middleware,
    MiddlewarePipeline,
    FunctionMiddleware,
    function_middleware,
    NextHandler,
)
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "FunctionMiddleware",
    "function_middleware",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
