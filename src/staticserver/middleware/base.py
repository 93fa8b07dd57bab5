"""
=============================================================================
MIDDLEWARE INTERFACE
=============================================================================

Middleware wraps the request handler: it sees every request on the way
in and every response on the way out (Chain of Responsibility).

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   Request ──► LoggingMiddleware ──► ... ──► StaticFileHandler       │
    │                    │                               │                 │
    │   Response ◄── [after: log,        ◄───────────────┘                 │
    │                 X-Request-ID]                                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

The response coming back may still hold an unread stream (an open file,
a lazy directory listing). Middleware may add headers, but must not
consume the stream: the server writes it after the chain returns.

=============================================================================
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Optional
import logging

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)

# The next middleware in the chain, or the final handler
NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

        class ServerTiming(Middleware):
            def __call__(self, request, next):
                start = time.time()
                response = next(request)
                response.set_header("Server-Timing", f"dispatch;dur={...}")
                return response

    Returning without calling next() short-circuits the chain.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """
        Process the request.

        Args:
            request: The incoming HTTP request
            next: The rest of the chain

        Returns:
            HTTP response, from next() or produced here
        """

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    Ordered middleware around a final handler. First added is outermost.

        pipeline = MiddlewarePipeline()
        pipeline.add(LoggingMiddleware())
        dispatch = pipeline.wrap(static_handler.handle)
        response = dispatch(request)
    """

    def __init__(self):
        self._middleware: List[Middleware] = []

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        """Append middleware; returns self for chaining."""
        self._middleware.append(middleware)
        logger.debug(f"Added middleware: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        """Append several middleware at once."""
        for mw in middleware:
            self.add(mw)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Build the chain around handler.

        Wrapping happens in reverse so that [A, B] produces A(B(handler)).
        """
        current = handler
        for middleware in reversed(self._middleware):
            current = self._bind(middleware, current)
        return current

    @staticmethod
    def _bind(middleware: Middleware, next_handler: NextHandler) -> NextHandler:
        def wrapped(request: HTTPRequest) -> HTTPResponse:
            return middleware(request, next_handler)
        return wrapped

    def __len__(self) -> int:
        return len(self._middleware)

    def __iter__(self):
        return iter(self._middleware)


class FunctionMiddleware(Middleware):
    """
    Adapts a plain (request, next) -> response function to Middleware.

        @function_middleware
        def no_sniff(request, next):
            response = next(request)
            response.set_header("X-Content-Type-Options", "nosniff")
            return response
    """

    def __init__(
        self,
        func: Callable[[HTTPRequest, NextHandler], HTTPResponse],
        name: Optional[str] = None
    ):
        self._func = func
        self._name = name or func.__name__

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        return self._func(request, next)

    @property
    def name(self) -> str:
        return self._name


def function_middleware(
    func: Callable[[HTTPRequest, NextHandler], HTTPResponse]
) -> FunctionMiddleware:
    """Decorator form of FunctionMiddleware."""
    return FunctionMiddleware(func)
