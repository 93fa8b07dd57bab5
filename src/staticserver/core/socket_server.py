"""
=============================================================================
TCP LISTENER
=============================================================================

Owns the listening socket: bind, listen, accept, hand each client to a
callback, close on shutdown.

=============================================================================
LIFECYCLE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   bind()     socket() + setsockopt() + bind() + listen()            │
    │              Runs in the caller's thread. Errors (port in use,      │
    │              permission denied) raise here, synchronously.          │
    │                                                                      │
    │   serve(cb)  accept() loop; each client becomes a Connection and    │
    │              is passed to cb. Blocks until shutdown().              │
    │                                                                      │
    │   shutdown() Flag the loop to stop. accept() has a 1 s timeout,    │
    │              so the loop notices within a second and closes the     │
    │              listener.                                               │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Splitting bind() from serve() lets a caller bind on the main thread
(so port 0 and bind errors are known immediately) and run the accept
loop on a background thread.

Signal handlers can only be installed from the main thread. They are
installed only on request, by the blocking run() path.

=============================================================================
"""

import socket
import signal
import logging
import threading
from typing import Optional, Callable, Tuple

from ..config import ServerConfig
from .connection import Connection


logger = logging.getLogger(__name__)


class SocketServer:
    """
    Listening socket plus accept loop.

    Example:
        server = SocketServer(config)
        server.bind()
        print(server.port)            # real port, even when config.port == 0
        server.serve(handle_connection)   # blocks until shutdown()
    """

    def __init__(self, config: ServerConfig):
        self.config = config

        self._socket: Optional[socket.socket] = None
        self._running = False
        self._serving = False
        self._shutdown_event = threading.Event()
        self._original_handlers: dict = {}

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_bound(self) -> bool:
        return self._socket is not None

    @property
    def port(self) -> int:
        """The bound port, or the configured one before bind()."""
        if self._socket is not None:
            return self._socket.getsockname()[1]
        return self.config.port

    @property
    def address(self) -> Tuple[str, int]:
        return (self.config.host, self.port)

    def _create_socket(self) -> socket.socket:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)

        # Rebind straight away after a restart (skip TIME_WAIT)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        # Small response heads go out without waiting for more data
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        # accept() wakes up every second to check the running flag
        sock.settimeout(1.0)
        return sock

    def bind(self):
        """
        Create, bind and listen.

        Raises:
            OSError: If the address cannot be bound.
        """
        if self._socket is not None:
            return

        sock = self._create_socket()
        try:
            sock.bind((self.config.host, self.config.port))
            sock.listen(self.config.backlog)
        except OSError as e:
            sock.close()
            logger.error(f"Failed to bind to {self.config.host}:{self.config.port}: {e}")
            raise

        self._socket = sock
        self._running = True
        self._shutdown_event.clear()
        logger.info(f"Server listening on {self.config.host}:{self.port}")

    def serve(self, connection_handler: Callable[[Connection], None]):
        """
        Run the accept loop until shutdown(). bind() must come first.

        Args:
            connection_handler: Called with each accepted Connection.
        """
        if self._socket is None:
            raise RuntimeError("serve() called before bind()")

        self._serving = True
        try:
            self._accept_loop(connection_handler)
        finally:
            self._serving = False
            self._cleanup()

    def install_signal_handlers(self):
        """
        Route SIGINT and SIGTERM to shutdown(). Main thread only.

        The previous handlers are restored when the accept loop ends.
        """
        def shutdown_handler(signum, frame):
            logger.info(f"Received {signal.Signals(signum).name}, initiating shutdown...")
            self.shutdown()

        self._original_handlers[signal.SIGTERM] = signal.signal(signal.SIGTERM, shutdown_handler)
        self._original_handlers[signal.SIGINT] = signal.signal(signal.SIGINT, shutdown_handler)

    def _restore_signals(self):
        for sig, handler in self._original_handlers.items():
            signal.signal(sig, handler)
        self._original_handlers.clear()

    def _accept_loop(self, connection_handler: Callable[[Connection], None]):
        while self._running:
            try:
                client_socket, client_address = self._socket.accept()
            except socket.timeout:
                continue
            except OSError as e:
                if self._running:
                    logger.error(f"Accept error: {e}")
                break

            logger.debug(f"Accepted connection from {client_address[0]}:{client_address[1]}")

            conn = Connection(
                socket=client_socket,
                address=client_address,
                buffer_size=self.config.buffer_size,
                timeout=self.config.timeout,
                keep_alive_timeout=self.config.keep_alive_timeout,
                max_request_size=self.config.max_request_size,
            )
            connection_handler(conn)

    def shutdown(self):
        """Ask the accept loop to stop. Idempotent, callable from any thread."""
        if self._running:
            logger.info("Shutting down socket server...")
        self._running = False
        self._shutdown_event.set()

    def _cleanup(self):
        if threading.current_thread() is threading.main_thread():
            self._restore_signals()

        if self._socket is not None:
            try:
                self._socket.close()
            except OSError:
                pass
            self._socket = None

        self._running = False
        logger.info("Socket server stopped")

    def close(self):
        """Close a listener that was bound but never served."""
        self.shutdown()
        if self._socket is not None and not self._serving:
            self._cleanup()

    def wait_for_shutdown(self, timeout: Optional[float] = None) -> bool:
        """Block until shutdown() is called. False on timeout."""
        return self._shutdown_event.wait(timeout)
