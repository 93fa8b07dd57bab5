"""
=============================================================================
STATIC FILE HANDLER
=============================================================================

The request dispatcher: decides, for one request, what the server sends.

=============================================================================
DISPATCH STATE MACHINE
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                                                                      │
    │   GUARD ── ".." / outside root ───────────────────────► 403          │
    │     │ ──── nothing there ─────────────────────────────► 404          │
    │     ▼                                                                │
    │   CLASSIFY                                                           │
    │     │ ──── directory, no index.html ──────────────────► 200 listing  │
    │     │      (directory with index.html → serve that file)             │
    │     │ ──── index.html links outside root ─────────────► 403          │
    │     │ ──── directory not searchable ──────────────────► 404          │
    │     ▼                                                                │
    │   SERVE FILE                                                         │
    │     │ stat() fails ───────────────────────────────────► 404          │
    │     │ If-Modified-Since fresh ────────────────────────► 304          │
    │     │ set Accept-Ranges, Last-Modified, Content-Type                 │
    │     │ HEAD ───────────────────────────────────────────► 200 no body  │
    │     │ open() fails ───────────────────────────────────► 404          │
    │     │ valid Range ────────────────────────────────────► 206 slice    │
    │     └ otherwise ──────────────────────────────────────► 200 file     │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Each request walks this once, top to bottom, in its worker thread.

=============================================================================
CACHING: LAST-MODIFIED
=============================================================================

    Response:  Last-Modified: Wed, 15 Jun 2024 10:00:00 GMT
    Request:   If-Modified-Since: Wed, 15 Jun 2024 10:00:00 GMT
    Response:  304 Not Modified (no body, no Content-Type)

Metadata is re-read from disk on every request; nothing is cached, so
an edited file is picked up immediately.

=============================================================================
"""

import html
import os
import logging
import posixpath
from pathlib import Path
from typing import Iterator, Optional, Union
from urllib.parse import quote

from ..http.request import HTTPRequest
from ..http.response import (
    HTTPResponse, ResponseBuilder, HTTPStatus,
    FileStream, ListingStream, DEFAULT_CHUNK_SIZE,
    format_http_date, not_found, forbidden, not_modified,
)
from ..http.mime_types import MimeRegistry
from ..http.ranges import parse_range
from ..http.conditional import is_fresh, last_modified_of
from ..resolver import ForbiddenPathError, TargetKind, classify, resolve, served_root


logger = logging.getLogger(__name__)


class StaticFileHandler:
    """
    Serves files and directory listings from a document root.

    =========================================================================
    USAGE
    =========================================================================

        handler = StaticFileHandler("/var/www", mime_types=MimeRegistry())
        response = handler.handle(request)
        try:
            for piece in response.iter_bytes():
                sock.sendall(piece)
        finally:
            response.close()      # ALWAYS: releases the file handle

    =========================================================================
    """

    def __init__(
        self,
        root_dir: Union[str, Path],
        mime_types: Optional[MimeRegistry] = None,
        index_file: str = "index.html",
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        """
        Initialize the handler.

        Args:
            root_dir: Directory to serve. Canonicalized here.
            mime_types: Registry used for Content-Type. A fresh default
                        registry is created if omitted.
            index_file: File served instead of a listing when present.
            chunk_size: Bytes per read when streaming files.

        Raises:
            ConfigurationError: If root_dir is not an existing directory.
        """
        self.root_dir = served_root(root_dir)
        self.mime_types = mime_types if mime_types is not None else MimeRegistry()
        self.index_file = index_file
        self.chunk_size = chunk_size

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Dispatch one request.

        The caller must close() the returned response once it has been
        written (or abandoned).
        """
        # ─────────────────────────────────────────────────────────────────
        # GUARD
        # ─────────────────────────────────────────────────────────────────
        try:
            target = resolve(self.root_dir, request.path, request.raw_path)
        except ForbiddenPathError:
            logger.warning(
                f"Traversal attempt from {request.client_address[0]}: {request.raw_path}"
            )
            return forbidden()

        if target.is_missing:
            logger.info(f"Not found: {request.path}")
            return not_found()

        # ─────────────────────────────────────────────────────────────────
        # CLASSIFY
        # ─────────────────────────────────────────────────────────────────
        if target.is_directory:
            try:
                index_path = self._find_index(target.path, request)
            except ForbiddenPathError:
                logger.warning(
                    f"Index of {request.raw_path} points outside the root"
                )
                return forbidden()
            except OSError as e:
                logger.error(f"Could not check index in {target.path}: {e}")
                return not_found()

            if index_path is not None:
                return self._serve_file(index_path, request)
            return self._directory_listing(target.path, request.path)

        return self._serve_file(target.path, request)

    def _find_index(self, directory: Path, request: HTTPRequest) -> Optional[Path]:
        """
        Locate the index file of a directory.

        The index goes through the same containment gate as a direct
        request, so a symlinked index cannot reach outside the root.

        Returns:
            Path of the index, or None if there is no usable one.

        Raises:
            ForbiddenPathError: If the index resolves outside the root.
            OSError: If the directory cannot be searched.
        """
        candidate = directory / self.index_file
        try:
            os.lstat(candidate)
        except FileNotFoundError:
            return None

        try:
            resolved = candidate.resolve()
        except RuntimeError:
            return None  # symlink loop
        try:
            resolved.relative_to(self.root_dir)
        except ValueError:
            raise ForbiddenPathError(posixpath.join(request.raw_path, self.index_file))

        if classify(resolved) is not TargetKind.FILE:
            return None
        return candidate

    def _serve_file(self, path: Path, request: HTTPRequest) -> HTTPResponse:
        """Serve a regular file: 304, HEAD, 206 or 200."""
        try:
            stat = path.stat()
        except OSError as e:
            logger.error(f"Could not stat {path}: {e}")
            return not_found()

        length = stat.st_size
        last_modified = last_modified_of(stat.st_mtime)

        # ─────────────────────────────────────────────────────────────────
        # CONDITIONAL GET
        # ─────────────────────────────────────────────────────────────────
        if is_fresh(request.if_modified_since, last_modified):
            return not_modified()

        builder = (ResponseBuilder()
            .header("Accept-Ranges", "bytes")
            .header("Last-Modified", format_http_date(last_modified))
            .content_type(self.mime_types.for_path(path)))

        # ─────────────────────────────────────────────────────────────────
        # HEAD: headers only
        # ─────────────────────────────────────────────────────────────────
        if request.is_head:
            return builder.header("Content-Length", str(length)).build()

        byte_range = parse_range(request.range, length)

        try:
            fileobj = open(path, "rb")
        except OSError as e:
            logger.error(f"Could not open {path}: {e}")
            return not_found()

        # ─────────────────────────────────────────────────────────────────
        # 206 PARTIAL CONTENT
        # ─────────────────────────────────────────────────────────────────
        if byte_range is not None:
            return (builder
                .status(HTTPStatus.PARTIAL_CONTENT)
                .header("Content-Range", byte_range.content_range(length))
                .header("Content-Length", str(byte_range.length))
                .stream(FileStream(fileobj, byte_range.start, byte_range.end, self.chunk_size))
                .build())

        # ─────────────────────────────────────────────────────────────────
        # 200 FULL CONTENT
        # ─────────────────────────────────────────────────────────────────
        # HTTP/1.0 has no chunked coding, so announce the length.
        # HTTP/1.1 streams chunked.
        if request.protocol_version == "1.0":
            builder.header("Content-Length", str(length))

        return builder.stream(FileStream(fileobj, 0, length, self.chunk_size)).build()

    def _directory_listing(self, path: Path, url_path: str) -> HTTPResponse:
        """
        Build a streamed HTML listing of a directory's immediate children.

        Every child gets one <li><a href="{url_path}/{name}">name</a></li>.
        Entries are produced while the directory is enumerated, so a
        huge directory never has to be held in memory.
        """
        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .content_type("text/html; charset=utf-8")
            .stream(ListingStream(self._listing_markup(path, url_path)))
            .build())

    def _listing_markup(self, path: Path, url_path: str) -> Iterator[str]:
        title = html.escape(url_path)
        yield (
            f"<html><head><title>{title}</title></head><body>"
            f"<h1>Contents of {title}</h1><ul>"
        )

        # Enumeration errors propagate to the server, which logs them
        # and drops the connection mid-body.
        with os.scandir(path) as entries:
            for entry in entries:
                href = quote(posixpath.join(url_path, entry.name))
                name = html.escape(entry.name)
                yield f"<li><a href='{href}'>{name}</a></li>"

        yield "</ul></body></html>"


def serve_static(root_dir: Union[str, Path], **kwargs) -> StaticFileHandler:
    """
    Create a static file handler.

    Example:
        handler = serve_static("/var/www", index_file="default.htm")
    """
    return StaticFileHandler(root_dir, **kwargs)
