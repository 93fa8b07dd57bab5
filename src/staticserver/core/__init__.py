"""
Networking core: listener, per-client connection, worker pool.

    socket_server.py  → SocketServer (bind / accept loop / shutdown)
    connection.py     → Connection (read one request, stream a response)
    thread_pool.py    → ThreadPool (one task per connection)
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState, RequestTooLargeError
from .thread_pool import ThreadPool, Worker, Task, WorkerState

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "RequestTooLargeError",
    "ThreadPool",
    "Worker",
    "Task",
    "WorkerState",
]
