"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the static file server.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m staticserver ./public --port 3000               │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── STATIC_PORT=3000 python -m staticserver ./public          │
    │                                                                      │
    │   3. Defaults in this dataclass                                     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
FAIL FAST
=============================================================================

Bad configuration is caught at construction, before anything is bound:
an out-of-range port or a root that isn't a directory raises
ConfigurationError and the process never starts serving.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


class ConfigurationError(ValueError):
    """Invalid server configuration (fatal at startup)."""


@dataclass
class ServerConfig:
    """
    Configuration for the static file server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    CONTENT
    - root, index_file, chunk_size

    NETWORK SETTINGS
    - host, port, backlog, buffer_size, timeout

    HTTP SETTINGS
    - keep_alive, keep_alive_timeout, max_request_size

    THREADING SETTINGS
    - min_workers, max_workers

    LOGGING
    - log_level, log_format

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    root: str = "."
    """Document root. Must exist and be a directory."""

    index_file: str = "index.html"
    """File served in place of a directory listing when present."""

    chunk_size: int = 64 * 1024
    """Bytes read from disk per write when streaming a file."""

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "0.0.0.0"
    """
    The IP address to bind to.

    - "0.0.0.0" - All network interfaces (default)
    - "127.0.0.1" - Localhost only
    """

    port: int = 8080
    """
    The port number to listen on (0-65535).

    0 asks the OS for any free port; read the real one from server.port.
    """

    backlog: int = 128
    """Maximum number of queued connections."""

    buffer_size: int = 8192
    """Size of each recv() call in bytes."""

    timeout: Optional[float] = 30.0
    """
    Socket timeout while reading the first request, in seconds.

    Does not apply to response streaming.
    """

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    """Allow several requests per TCP connection."""

    keep_alive_timeout: float = 5.0
    """Idle time before a kept-alive connection is closed."""

    max_request_size: int = 1024 * 1024
    """
    Maximum request size (headers + drained body) in bytes.

    A file server never uses the body, so this stays small.
    """

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4
    """Worker threads created at startup."""

    max_workers: int = 16
    """
    Upper bound on worker threads.

    A worker is busy for the whole transfer of a file, so this is also
    the number of concurrent downloads.
    """

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."""

    log_format: str = "text"
    """Access log format: 'json' or 'text'."""

    # ─────────────────────────────────────────────────────────────────────
    # SERVER IDENTITY
    # ─────────────────────────────────────────────────────────────────────

    server_name: str = "PyStaticServer/1.0"
    """Value of the Server response header."""

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        STATIC_ROOT       Document root        (default: .)
        STATIC_HOST       Bind address         (default: 0.0.0.0)
        STATIC_PORT       Port                 (default: 8080)
        STATIC_WORKERS    Max worker threads   (default: 16)
        STATIC_LOG_LEVEL  Logging level        (default: INFO)

        =====================================================================

        Args:
            **overrides: Explicit values that win over the environment.

        Raises:
            ConfigurationError: If a numeric variable is not a number.
        """
        try:
            values = dict(
                root=os.getenv("STATIC_ROOT", "."),
                host=os.getenv("STATIC_HOST", "0.0.0.0"),
                port=int(os.getenv("STATIC_PORT", "8080")),
                max_workers=int(os.getenv("STATIC_WORKERS", "16")),
                log_level=os.getenv("STATIC_LOG_LEVEL", "INFO"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment setting: {e}") from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: On the first invalid value.
        """
        if not isinstance(self.port, int) or not 0 <= self.port <= 65535:
            raise ConfigurationError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.min_workers < 1:
            raise ConfigurationError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ConfigurationError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ConfigurationError("buffer_size must be >= 1024")

        if self.chunk_size < 1:
            raise ConfigurationError("chunk_size must be > 0")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be > 0")

        if self.log_format not in ("text", "json"):
            raise ConfigurationError(f"Invalid log_format: {self.log_format}")

        if not self.index_file or "/" in self.index_file:
            raise ConfigurationError(f"Invalid index_file: {self.index_file!r}")
