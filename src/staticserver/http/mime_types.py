"""
=============================================================================
MIME TYPE REGISTRY
=============================================================================

Maps file extensions to Content-Type values for served files.

=============================================================================
HOW LOOKUP WORKS
=============================================================================

    ┌────────────────────────────────────────────────────────────────────┐
    │                    EXTENSION → CONTENT-TYPE                        │
    ├────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   "photo.JPG"        → suffixes ["jpg"]          → image/jpeg       │
    │   "backup.tar.gz"    → suffixes ["tar.gz", "gz"] → application/x-tar│
    │   "README"           → no suffix                 → None             │
    │   "data.xyz"         → suffixes ["xyz"]          → None             │
    │                                                                     │
    └────────────────────────────────────────────────────────────────────┘

Keys are stored lower-case WITHOUT the leading dot, so ".JPG", "JPG"
and "jpg" all hit the same entry.

When nothing matches we return None and the response goes out without
a Content-Type header. We deliberately do NOT fall back to
application/octet-stream: leaving the header off lets the client sniff.

=============================================================================
CONCURRENCY: COPY-ON-WRITE
=============================================================================

Every worker thread reads the registry on every file request, but it
only changes when someone calls merge() (usually at startup, possibly
while serving). So we optimise for readers:

    Reader threads                      merge() caller
    ──────────────                      ──────────────
    table = self._table  ──┐            with self._lock:
    table.get(ext)         │                new = dict(self._table)
                           │                new.update(entries)
                           └──────────      self._table = new   ← one
                                                                 reference
                                                                 swap

Readers grab the current dict reference and never see a half-updated
table. Writers serialise on a lock so two concurrent merges cannot lose
each other's entries.

=============================================================================
"""

import threading
from pathlib import PurePath
from typing import Dict, Mapping, Optional, Union


# =============================================================================
# DEFAULT TABLE
# =============================================================================
#
# Extension (lower-case, no dot) → Content-Type.
# Text types carry an explicit charset: we assume UTF-8 files on disk.
#
# =============================================================================

DEFAULT_MIME_TYPES: Dict[str, str] = {
    # -------------------------------------------------------------------------
    # TEXT
    # -------------------------------------------------------------------------
    "html": "text/html; charset=utf-8",
    "htm": "text/html; charset=utf-8",
    "css": "text/css; charset=utf-8",
    "txt": "text/plain; charset=utf-8",
    "md": "text/markdown; charset=utf-8",
    "csv": "text/csv; charset=utf-8",
    "xml": "application/xml",
    "json": "application/json",
    "js": "application/javascript",
    "mjs": "application/javascript",
    "dart": "application/dart",

    # -------------------------------------------------------------------------
    # IMAGES
    # -------------------------------------------------------------------------
    "gif": "image/gif",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "svg": "image/svg+xml",
    "ico": "image/x-icon",

    # -------------------------------------------------------------------------
    # AUDIO / VIDEO
    # -------------------------------------------------------------------------
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "mp4": "video/mp4",
    "webm": "video/webm",

    # -------------------------------------------------------------------------
    # FONTS
    # -------------------------------------------------------------------------
    "woff": "font/woff",
    "woff2": "font/woff2",
    "ttf": "font/ttf",
    "otf": "font/otf",

    # -------------------------------------------------------------------------
    # DOCUMENTS / BINARIES
    # -------------------------------------------------------------------------
    "pdf": "application/pdf",
    "exe": "application/octet-stream",
    "wasm": "application/wasm",

    # -------------------------------------------------------------------------
    # ARCHIVES
    # -------------------------------------------------------------------------
    # "tar.gz" is a compound suffix: for_path() tries it before "gz".
    "bz": "application/x-bzip",
    "bz2": "application/x-bzip2",
    "gz": "application/x-gzip",
    "tar": "application/x-tar",
    "tar.gz": "application/x-tar",
    "tgz": "application/x-tar",
    "zip": "application/zip",
    "7z": "application/x-7z-compressed",
}


def normalize_extension(extension: str) -> str:
    """
    Normalize an extension key: strip whitespace and leading dots, lower-case.

    Examples:
        >>> normalize_extension(".JPG")
        'jpg'
        >>> normalize_extension("Tar.GZ")
        'tar.gz'
    """
    return extension.strip().lstrip(".").lower()


class MimeRegistry:
    """
    Thread-safe extension → Content-Type registry.

    =========================================================================
    USAGE
    =========================================================================

        registry = MimeRegistry()
        registry.lookup("jpg")               # 'image/jpeg'
        registry.lookup(".JPG")              # 'image/jpeg'
        registry.for_path("a/b/clip.WebM")   # 'video/webm'

        registry.merge({"m3u8": "application/vnd.apple.mpegurl"})
        registry.lookup("m3u8")              # visible immediately

    =========================================================================
    """

    def __init__(self, types: Optional[Mapping[str, str]] = None):
        """
        Initialize the registry.

        Args:
            types: Initial table. Defaults to DEFAULT_MIME_TYPES.
                   Keys are normalized on the way in.
        """
        seed = DEFAULT_MIME_TYPES if types is None else types
        self._table: Dict[str, str] = {
            normalize_extension(ext): content_type
            for ext, content_type in seed.items()
        }
        self._lock = threading.Lock()  # Serializes writers only

    def lookup(self, extension: str) -> Optional[str]:
        """
        Look up the Content-Type for a single extension.

        Args:
            extension: Extension with or without leading dot, any case.

        Returns:
            The Content-Type string, or None if unknown.
        """
        return self._table.get(normalize_extension(extension))

    def for_path(self, path: Union[str, PurePath]) -> Optional[str]:
        """
        Look up the Content-Type for a file path.

        Compound suffixes are tried longest first, so "site.tar.gz"
        matches "tar.gz" before falling back to "gz".

        Args:
            path: File path or bare file name.

        Returns:
            The Content-Type string, or None if no suffix is known.
        """
        suffixes = PurePath(path).suffixes
        table = self._table  # One snapshot for the whole lookup
        for i in range(len(suffixes)):
            key = normalize_extension("".join(suffixes[i:]))
            if key in table:
                return table[key]
        return None

    def merge(self, types: Mapping[str, str]) -> None:
        """
        Add or overwrite entries.

        Visible to every lookup that starts after this returns.

        Args:
            types: Mapping of extension → Content-Type.
        """
        entries = {
            normalize_extension(ext): content_type
            for ext, content_type in types.items()
        }
        with self._lock:
            table = dict(self._table)
            table.update(entries)
            self._table = table

    def as_dict(self) -> Dict[str, str]:
        """Return a copy of the current table."""
        return dict(self._table)

    def __contains__(self, extension: str) -> bool:
        return normalize_extension(extension) in self._table

    def __len__(self) -> int:
        return len(self._table)
