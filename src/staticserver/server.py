"""
=============================================================================
STATIC FILE SERVER
=============================================================================

Ties the pieces together:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   SocketServer ── accept ──► ThreadPool ── worker ──►                │
    │                                                                      │
    │      Connection.read_request()      drain head + body               │
    │      RequestParser.parse()          400 / 413 / 505 on bad input    │
    │      pipeline(request)              LoggingMiddleware               │
    │        └─► StaticFileHandler.handle()   403 / 404 / 304 / 206 / 200 │
    │      response.finalize()            Content-Length or chunked       │
    │      Connection.stream_response()   head, then body chunk by chunk  │
    │      response.close()               file handle released            │
    │                                                                      │
    │      keep-alive? ── yes ──► next request on the same connection     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Two ways to run it:

    # Embedded (tests, other programs): returns once bound
    server = StaticFileServer("./public", port=0)
    server.start()
    ...
    server.stop()

    # Blocking, with signal handling (the CLI)
    StaticFileServer("./public", port=8080).run()

=============================================================================
"""

import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Callable, Mapping, Optional, Union

from .config import ServerConfig
from .core import SocketServer, Connection, ThreadPool, RequestTooLargeError
from .http import (
    HTTPRequest, RequestParser, HTTPParseError,
    HTTPResponse, HTTPStatus, MimeRegistry,
    empty_response, internal_error,
)
from .handlers import StaticFileHandler
from .middleware import MiddlewarePipeline, Middleware, LoggingMiddleware


logger = logging.getLogger(__name__)


class StaticFileServer:
    """
    HTTP/1.1 static file server.

    =========================================================================
    USAGE
    =========================================================================

        server = StaticFileServer("/var/www", port=0)
        server.add_mime_types({"webmanifest": "application/manifest+json"})
        server.start()
        print(f"Serving on http://127.0.0.1:{server.port}/")
        ...
        server.stop()

    =========================================================================
    """

    def __init__(
        self,
        document_root: Optional[Union[str, Path]] = None,
        port: Optional[int] = None,
        host: Optional[str] = None,
        config: Optional[ServerConfig] = None,
    ):
        """
        Initialize the server. Nothing is bound until start() or run().

        Args:
            document_root: Directory to serve. Defaults to config.root.
            port: Port to listen on (0 = any free port). Defaults to
                  config.port (8080).
            host: Address to bind. Defaults to config.host (0.0.0.0).
            config: Remaining settings. Not modified.

        Raises:
            ConfigurationError: On an invalid port or setting, or a root
                                that is not an existing directory.
        """
        overrides = {
            name: value
            for name, value in (("root", document_root), ("port", port), ("host", host))
            if value is not None
        }
        self.config = replace(config or ServerConfig(), **overrides)
        self.config.root = str(self.config.root)
        self.config.validate()

        self.mime_types = MimeRegistry()
        self._static = StaticFileHandler(
            self.config.root,
            mime_types=self.mime_types,
            index_file=self.config.index_file,
            chunk_size=self.config.chunk_size,
        )

        self._socket_server = SocketServer(self.config)
        self._thread_pool = ThreadPool(
            min_workers=self.config.min_workers,
            max_workers=self.config.max_workers,
        )
        self._parser = RequestParser(max_request_size=self.config.max_request_size)

        self._middleware = MiddlewarePipeline()
        self._middleware.add(LoggingMiddleware(log_format=self.config.log_format))
        self._handler: Optional[Callable[[HTTPRequest], HTTPResponse]] = None

        self._running = False
        self._port: Optional[int] = None
        self._started = threading.Event()
        self._accept_thread: Optional[threading.Thread] = None

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    @property
    def root(self) -> Path:
        """Canonical document root."""
        return self._static.root_dir

    @property
    def port(self) -> int:
        """The bound port once started, otherwise the configured one."""
        return self._port if self._port is not None else self.config.port

    @property
    def is_running(self) -> bool:
        return self._running

    def add_mime_types(self, mapping: Mapping[str, str]) -> None:
        """
        Add or override extension → Content-Type mappings.

        Safe while serving; later requests see the new types.
        """
        self.mime_types.merge(mapping)

    def use(self, middleware: Middleware) -> "StaticFileServer":
        """Add middleware inside the access logger. Call before start()."""
        self._middleware.add(middleware)
        return self

    def start(self) -> threading.Event:
        """
        Bind and listen in this thread, then accept on a background thread.

        Returns:
            An Event that is set (already, on return) once the listener
            is bound.

        Raises:
            OSError: If the address cannot be bound.
        """
        if self._started.is_set():
            return self._started

        self._bind()

        self._accept_thread = threading.Thread(
            target=self._socket_server.serve,
            args=(self._handle_connection,),
            name="staticserver-accept",
            daemon=True,
        )
        self._accept_thread.start()
        return self._started

    def wait_until_started(self, timeout: Optional[float] = None) -> bool:
        """Block until the listener is bound. False on timeout."""
        return self._started.wait(timeout)

    def stop(self, timeout: float = 5.0) -> None:
        """
        Close the listener and stop the workers.

        Requests already being served get up to `timeout` seconds to
        finish. Idempotent.
        """
        if not self._running:
            return

        logger.info("Shutting down server...")
        self._running = False
        self._socket_server.shutdown()

        if self._accept_thread is not None and self._accept_thread is not threading.current_thread():
            self._accept_thread.join(timeout=timeout)
        self._socket_server.close()

        self._thread_pool.shutdown(wait=True, timeout=timeout)
        self._started.clear()
        logger.info("Server stopped")

    def run(self) -> None:
        """
        Serve until SIGINT/SIGTERM (blocking). Configures logging.

        Must be called from the main thread.
        """
        self._setup_logging()
        self._bind()
        self._socket_server.install_signal_handlers()
        self._log_startup()

        try:
            self._socket_server.serve(self._handle_connection)
        except KeyboardInterrupt:
            logger.info("Received keyboard interrupt")
        finally:
            self.stop()

    def __enter__(self) -> "StaticFileServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    # =========================================================================
    # LIFECYCLE HELPERS
    # =========================================================================

    def _bind(self):
        self._socket_server.bind()
        self._port = self._socket_server.port
        self._handler = self._middleware.wrap(self._static.handle)
        self._thread_pool.start()
        self._running = True
        self._started.set()

    def _setup_logging(self):
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        logging.basicConfig(
            level=level,
            format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        logging.getLogger("staticserver").setLevel(level)

    def _log_startup(self):
        logger.info(f"Serving {self.root} on http://{self.config.host}:{self.port}/")
        logger.info(
            f"Workers: {self.config.min_workers}-{self.config.max_workers} threads, "
            f"{len(self.mime_types)} MIME types. Press Ctrl+C to stop"
        )

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    def _handle_connection(self, conn: Connection):
        """Hand a new connection to the pool (accept thread)."""
        try:
            submitted = self._thread_pool.submit(
                self._process_connection,
                args=(conn,),
                block=False,
            )
        except RuntimeError:
            submitted = False  # pool already shutting down

        if not submitted:
            logger.warning(f"[{conn.id}] Thread pool full, rejecting connection")
            self._send_error(conn, HTTPStatus.SERVICE_UNAVAILABLE)
            conn.close()

    def _process_connection(self, conn: Connection):
        """
        Serve requests on one connection until it closes (worker thread).
        """
        with conn:
            while self._running:
                try:
                    raw_request = conn.read_request()
                except TimeoutError:
                    self._send_error(conn, HTTPStatus.REQUEST_TIMEOUT)
                    break
                except RequestTooLargeError as e:
                    logger.warning(f"[{conn.id}] {e}")
                    self._send_error(conn, HTTPStatus.PAYLOAD_TOO_LARGE)
                    break

                if raw_request is None:
                    break

                try:
                    request = self._parser.parse(raw_request, conn.address)
                except HTTPParseError as e:
                    logger.info(f"[{conn.id}] Bad request from {conn.client_ip}: {e}")
                    self._send_error(conn, HTTPStatus(e.status_code))
                    break

                try:
                    keep_open = self._respond(conn, request)
                except Exception as e:
                    logger.exception(f"[{conn.id}] Connection error: {e}")
                    break

                if not keep_open:
                    break
                conn.set_keep_alive()

    def _respond(self, conn: Connection, request: HTTPRequest) -> bool:
        """
        Dispatch one request and write the response.

        Returns:
            True if the connection can carry another request.
        """
        try:
            response = self._handler(request)
        except Exception as e:
            logger.exception(f"[{conn.id}] Handler error: {e}")
            response = internal_error()

        try:
            response.finalize(request.version, head=request.is_head)

            keep_alive = (
                self.config.keep_alive
                and request.is_keep_alive
                and not response.close_after
            )
            if keep_alive:
                response.headers.setdefault("Connection", "keep-alive")
                response.headers.setdefault(
                    "Keep-Alive", f"timeout={int(self.config.keep_alive_timeout)}"
                )
            else:
                response.headers["Connection"] = "close"

            pieces = response.iter_bytes(
                self.config.server_name,
                send_body=not request.is_head,
            )
            try:
                sent = conn.stream_response(pieces)
            except OSError as e:
                logger.error(f"[{conn.id}] Transfer of {request.path} aborted: {e}")
                return False

            if not sent:
                logger.warning(
                    f"[{conn.id}] Client {conn.client_ip} disconnected during {request.path}"
                )
                return False

            return keep_alive
        finally:
            response.close()

    def _send_error(self, conn: Connection, status: HTTPStatus):
        """Send a bodyless error and mark the connection for closing."""
        response = empty_response(status)
        response.headers["Connection"] = "close"
        response.finalize()
        conn.send_response(response.to_bytes(self.config.server_name))


def create_server(document_root: Union[str, Path], **kwargs) -> StaticFileServer:
    """
    Create a static file server.

    Example:
        server = create_server("./public", port=3000)
        server.run()
    """
    return StaticFileServer(document_root, **kwargs)
