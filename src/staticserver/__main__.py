"""
=============================================================================
STATIC SERVER CLI ENTRY POINT
=============================================================================

    # Serve the current directory on 0.0.0.0:8080
    python -m staticserver

    # Serve ./public on localhost:3000
    python -m staticserver ./public --host 127.0.0.1 --port 3000

    # Extra content types
    python -m staticserver ./site --mime webmanifest=application/manifest+json

Anything not given on the command line falls back to the STATIC_*
environment variables (see ServerConfig.from_env), then to defaults.

=============================================================================
"""

import argparse
import sys

from . import __version__
from .config import ServerConfig, ConfigurationError
from .server import StaticFileServer


def parse_mime_mapping(value: str) -> tuple[str, str]:
    """argparse type for EXT=TYPE."""
    extension, sep, content_type = value.partition("=")
    if not sep or not extension.strip() or not content_type.strip():
        raise argparse.ArgumentTypeError(f"expected EXT=TYPE, got {value!r}")
    return extension.strip(), content_type.strip()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="staticserver",
        description="Serve a directory over HTTP/1.1 (ranges, conditional GET, listings)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m staticserver                          # Serve . on 0.0.0.0:8080
  python -m staticserver ./public -p 3000         # Custom root and port
  python -m staticserver ./public -H 127.0.0.1    # Localhost only
  python -m staticserver ./media -w 32            # Up to 32 concurrent transfers
  python -m staticserver . --mime md=text/markdown --mime log=text/plain
        """
    )

    # ─────────────────────────────────────────────────────────────────────
    # CONTENT
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "root",
        nargs="?",
        default=None,
        help="Directory to serve (default: $STATIC_ROOT or .)"
    )

    parser.add_argument(
        "--mime", "-m",
        dest="mime_types",
        metavar="EXT=TYPE",
        type=parse_mime_mapping,
        action="append",
        default=[],
        help="Add or override a content type; repeatable"
    )

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--host", "-H",
        default=None,
        help="Address to bind (default: $STATIC_HOST or 0.0.0.0)"
    )

    parser.add_argument(
        "--port", "-p",
        type=int,
        default=None,
        help="Port to listen on, 0 for any (default: $STATIC_PORT or 8080)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # PERFORMANCE / LOGGING
    # ─────────────────────────────────────────────────────────────────────

    parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Max worker threads, i.e. concurrent connections (default: $STATIC_WORKERS or 16)"
    )

    parser.add_argument(
        "--log-level", "-l",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Logging level (default: $STATIC_LOG_LEVEL or INFO)"
    )

    parser.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Access log format (default: text)"
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"staticserver {__version__}"
    )

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = ServerConfig.from_env(
            root=args.root,
            host=args.host,
            port=args.port,
            max_workers=args.workers,
            log_level=args.log_level,
            log_format=args.log_format,
        )
        config.min_workers = min(config.min_workers, config.max_workers)

        server = StaticFileServer(config=config)
        if args.mime_types:
            server.add_mime_types(dict(args.mime_types))
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
