"""
Unit tests for If-Modified-Since handling.
"""

from datetime import datetime, timedelta, timezone

from staticserver.http.conditional import is_fresh, last_modified_of, parse_http_date


MODIFIED = datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)


class TestParseHttpDate:
    """Tests for parse_http_date()."""

    def test_imf_fixdate(self):
        """Test the preferred RFC 7231 format."""
        assert parse_http_date("Tue, 14 Nov 2023 22:13:20 GMT") == MODIFIED

    def test_rfc850(self):
        """Test the obsolete RFC 850 format."""
        assert parse_http_date("Tuesday, 14-Nov-23 22:13:20 GMT") == MODIFIED

    def test_asctime(self):
        """Test the obsolete asctime format (no zone means GMT)."""
        assert parse_http_date("Tue Nov 14 22:13:20 2023") == MODIFIED

    def test_result_is_utc(self):
        """Test offsets are normalized to UTC."""
        parsed = parse_http_date("Tue, 14 Nov 2023 23:13:20 +0100")
        assert parsed == MODIFIED
        assert parsed.tzinfo == timezone.utc

    def test_garbage(self):
        """Test unparseable values give None."""
        assert parse_http_date("yesterday") is None
        assert parse_http_date("") is None
        assert parse_http_date(None) is None


class TestIsFresh:
    """Tests for is_fresh()."""

    def test_missing_header_is_stale(self):
        """Test no If-Modified-Since never yields 304."""
        assert is_fresh(None, MODIFIED) is False

    def test_equal_is_fresh(self):
        """Test equal timestamps are fresh."""
        assert is_fresh(MODIFIED, MODIFIED) is True

    def test_later_is_fresh(self):
        """Test a later If-Modified-Since is fresh."""
        assert is_fresh(MODIFIED + timedelta(days=1), MODIFIED) is True

    def test_earlier_is_stale(self):
        """Test a modification after the client's copy is stale."""
        assert is_fresh(MODIFIED - timedelta(seconds=1), MODIFIED) is False

    def test_subsecond_mtime_ignored(self):
        """Test comparison happens at one-second granularity."""
        precise = MODIFIED + timedelta(microseconds=750_000)
        assert is_fresh(MODIFIED, precise) is True


class TestLastModifiedOf:
    """Tests for last_modified_of()."""

    def test_truncates_to_seconds(self):
        """Test fractional mtimes are truncated."""
        assert last_modified_of(1_700_000_000.9) == MODIFIED

    def test_is_aware_utc(self):
        """Test the result carries a UTC zone."""
        assert last_modified_of(0).tzinfo == timezone.utc
