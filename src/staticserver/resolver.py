"""
=============================================================================
PATH RESOLVER & TRAVERSAL GUARD
=============================================================================

Turns a request path into a filesystem path under the document root,
and refuses anything that tries to climb out of it.

=============================================================================
SECURITY: PATH TRAVERSAL
=============================================================================

    ATTACK ATTEMPT:
    ┌─────────────────────────────────────────────────────────────────────┐
    │  GET /../../../etc/passwd HTTP/1.1                                  │
    │  GET /img/%2e%2e/%2e%2e/etc/passwd HTTP/1.1                         │
    │                                                                      │
    │  Unprotected: /var/www/../../../etc/passwd → /etc/passwd            │
    └─────────────────────────────────────────────────────────────────────┘

We use two independent gates:

    1. SEGMENT CHECK (before touching the filesystem)
       Any path segment that is exactly ".." → 403.
       Checked on the raw path AND on the percent-decoded path.
       "/a/b..c" is fine: only whole segments count.

    2. CONTAINMENT CHECK (after canonicalization)
       resolve() follows symlinks and collapses "." and "//".
       The result must still be inside the root:

           full_path.relative_to(root)   # raises ValueError if outside

The segment check alone misses symlinks pointing outside the root.
Canonicalization alone depends on every filesystem quirk being handled
correctly. Together they are conservative.

=============================================================================
CLASSIFICATION
=============================================================================

    ┌──────────────┬───────────────────────────────────────────────────┐
    │ FILE         │ Regular file (after following symlinks)           │
    │ DIRECTORY    │ Directory                                         │
    │ MISSING      │ Doesn't exist, can't be stat'ed, or is something  │
    │              │ else (socket, FIFO, device node)                  │
    └──────────────┴───────────────────────────────────────────────────┘

=============================================================================
"""

import os
import re
import stat
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote

from .config import ConfigurationError


logger = logging.getLogger(__name__)

# Backslash counts as a separator too: harmless on POSIX, essential on Windows.
_SEGMENT_SPLIT = re.compile(r"[/\\]")


class ForbiddenPathError(Exception):
    """Raised when a request path tries to escape the document root."""

    def __init__(self, request_path: str):
        super().__init__(f"Path escapes document root: {request_path!r}")
        self.request_path = request_path


class TargetKind(Enum):
    """What a resolved path points at."""

    MISSING = "missing"
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class ResolvedTarget:
    """Absolute filesystem path plus what lives there."""

    path: Path
    kind: TargetKind

    @property
    def is_file(self) -> bool:
        return self.kind is TargetKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is TargetKind.DIRECTORY

    @property
    def is_missing(self) -> bool:
        return self.kind is TargetKind.MISSING


def served_root(document_root: Union[str, Path]) -> Path:
    """
    Canonicalize and validate the document root.

    Args:
        document_root: Directory to serve.

    Returns:
        Absolute, symlink-free path to the root.

    Raises:
        ConfigurationError: If the path does not exist or is not a directory.
    """
    root = Path(document_root).expanduser().resolve()
    if not root.is_dir():
        raise ConfigurationError(
            f"Root path does not exist or is not a directory: {document_root}"
        )
    return root


def has_parent_segment(path: str) -> bool:
    """
    Check whether any segment of the path is exactly "..".

    Examples:
        >>> has_parent_segment("/a/../b")
        True
        >>> has_parent_segment("/a/b..c/d")
        False
    """
    return ".." in _SEGMENT_SPLIT.split(path)


def classify(path: Path) -> TargetKind:
    """Stat the path (following symlinks) and classify it."""
    try:
        mode = os.stat(path).st_mode
    except (OSError, ValueError):
        # ValueError: embedded NUL byte in the path
        return TargetKind.MISSING

    if stat.S_ISREG(mode):
        return TargetKind.FILE
    if stat.S_ISDIR(mode):
        return TargetKind.DIRECTORY
    return TargetKind.MISSING


def resolve(
    root: Path,
    request_path: str,
    raw_path: Optional[str] = None,
) -> ResolvedTarget:
    """
    Resolve a request path against the document root.

    Args:
        root: Canonical document root (from served_root()).
        request_path: Request path. Percent-decoded here when raw_path
                      is not given, otherwise taken as already decoded.
        raw_path: The path exactly as it appeared on the request line.

    Returns:
        ResolvedTarget with the canonical path and its kind.

    Raises:
        ForbiddenPathError: On a ".." segment or a path that leaves root.
    """
    if raw_path is None:
        raw_path = request_path
        request_path = unquote(request_path)

    # ─────────────────────────────────────────────────────────────────
    # GATE 1: REJECT ".." SEGMENTS
    # ─────────────────────────────────────────────────────────────────
    if has_parent_segment(raw_path) or has_parent_segment(request_path):
        raise ForbiddenPathError(raw_path)

    # ─────────────────────────────────────────────────────────────────
    # CANONICALIZE
    # ─────────────────────────────────────────────────────────────────
    relative = request_path.lstrip("/\\")
    try:
        full_path = (root / relative).resolve()
    except (OSError, ValueError, RuntimeError) as e:
        # RuntimeError: symlink loop on older Pythons
        logger.debug(f"Could not canonicalize {request_path!r}: {e}")
        return ResolvedTarget(root / relative, TargetKind.MISSING)

    # ─────────────────────────────────────────────────────────────────
    # GATE 2: CONTAINMENT
    # ─────────────────────────────────────────────────────────────────
    try:
        full_path.relative_to(root)
    except ValueError:
        raise ForbiddenPathError(raw_path)

    return ResolvedTarget(full_path, classify(full_path))
