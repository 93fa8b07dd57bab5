"""
=============================================================================
CONDITIONAL GET (If-Modified-Since)
=============================================================================

Decides whether a client's cached copy is still good.

    ┌─────────────────────────────────────────────────────────────────────┐
    │  First visit:                                                       │
    │      GET /logo.png                                                  │
    │      ← 200 OK, Last-Modified: Wed, 15 Jun 2024 10:00:00 GMT         │
    │                                                                      │
    │  Later visit:                                                       │
    │      GET /logo.png                                                  │
    │      If-Modified-Since: Wed, 15 Jun 2024 10:00:00 GMT               │
    │      ← 304 Not Modified   (no body, client reuses its copy)         │
    └─────────────────────────────────────────────────────────────────────┘

HTTP dates only have one-second precision, while filesystem mtimes have
sub-second precision. If we compared the raw mtime, a file modified at
10:00:00.7 would look "newer" than the 10:00:00 we told the client
in Last-Modified, and the client would never get a 304. So the mtime is
truncated to whole seconds before comparing.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Optional


def parse_http_date(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an HTTP-date header value into an aware UTC datetime.

    Accepts the three formats RFC 7231 requires recipients to handle:

        Sun, 06 Nov 1994 08:49:37 GMT     (IMF-fixdate, preferred)
        Sunday, 06-Nov-94 08:49:37 GMT    (obsolete RFC 850)
        Sun Nov  6 08:49:37 1994          (obsolete asctime)

    Returns:
        The datetime, or None if the value is missing or unparseable.
        A malformed If-Modified-Since is ignored, per RFC 7232.
    """
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        # asctime carries no zone; HTTP dates are always GMT
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def last_modified_of(mtime: float) -> datetime:
    """Convert a stat() mtime to a whole-second UTC datetime."""
    return datetime.fromtimestamp(int(mtime), tz=timezone.utc)


def is_fresh(
    if_modified_since: Optional[datetime],
    last_modified: datetime,
) -> bool:
    """
    Check whether the client's cached representation is still fresh.

    Fresh means the header is present and the entity has NOT changed
    after it (equal counts as fresh).

    Args:
        if_modified_since: Parsed If-Modified-Since value, or None.
        last_modified: Entity modification time.

    Returns:
        True if a 304 Not Modified should be sent.
    """
    if if_modified_since is None:
        return False
    return last_modified.replace(microsecond=0) <= if_modified_since
