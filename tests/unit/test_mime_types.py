"""
Unit tests for the MIME type registry.
"""

import threading

import pytest

from staticserver.http.mime_types import (
    MimeRegistry,
    DEFAULT_MIME_TYPES,
    normalize_extension,
)


class TestNormalizeExtension:
    """Tests for extension key normalization."""

    @pytest.mark.parametrize("raw, expected", [
        ("jpg", "jpg"),
        (".jpg", "jpg"),
        ("JPG", "jpg"),
        (" .Tar.GZ ", "tar.gz"),
    ])
    def test_normalize(self, raw, expected):
        """Test dots, case and whitespace are stripped."""
        assert normalize_extension(raw) == expected


class TestDefaults:
    """Tests for the built-in table."""

    def test_text_types_carry_charset(self):
        """Test html and txt declare UTF-8."""
        assert DEFAULT_MIME_TYPES["html"] == "text/html; charset=utf-8"
        assert DEFAULT_MIME_TYPES["txt"] == "text/plain; charset=utf-8"

    def test_common_types(self):
        """Test a sample of well-known entries."""
        registry = MimeRegistry()
        assert registry.lookup("js") == "application/javascript"
        assert registry.lookup("json") == "application/json"
        assert registry.lookup("png") == "image/png"
        assert registry.lookup("pdf") == "application/pdf"
        assert registry.lookup("mp4") == "video/mp4"

    def test_custom_seed_replaces_defaults(self):
        """Test a registry built from an explicit table has only that table."""
        registry = MimeRegistry({".X": "application/x-test"})
        assert registry.lookup("x") == "application/x-test"
        assert registry.lookup("html") is None
        assert len(registry) == 1


class TestLookup:
    """Tests for lookup() and for_path()."""

    def test_lookup_is_case_insensitive(self):
        """Test .JPG and .jpg resolve to the same type."""
        registry = MimeRegistry()
        assert registry.lookup("JPG") == registry.lookup("jpg") == "image/jpeg"
        assert registry.for_path("Photo.JPG") == registry.for_path("photo.jpg")

    def test_unknown_extension(self):
        """Test unknown extensions give None."""
        registry = MimeRegistry()
        assert registry.lookup("nope") is None
        assert registry.for_path("file.nope") is None

    def test_no_extension(self):
        """Test files without a suffix give None."""
        registry = MimeRegistry()
        assert registry.for_path("Makefile") is None
        assert registry.for_path(".bashrc") is None

    def test_compound_suffix_wins(self):
        """Test tar.gz is matched before gz."""
        registry = MimeRegistry()
        assert registry.for_path("release.tar.gz") == "application/x-tar"
        assert registry.for_path("notes.gz") == "application/x-gzip"

    def test_falls_back_to_last_suffix(self):
        """Test dotted names fall back to the final suffix."""
        registry = MimeRegistry()
        assert registry.for_path("/srv/v1.2.3/app.min.js") == "application/javascript"

    def test_contains(self):
        """Test membership uses normalized keys."""
        registry = MimeRegistry()
        assert ".HTML" in registry
        assert "zzz" not in registry


class TestMerge:
    """Tests for merge()."""

    def test_merge_adds_and_overrides(self):
        """Test merged entries are visible to later lookups."""
        registry = MimeRegistry()
        registry.merge({"webmanifest": "application/manifest+json", ".TXT": "text/x-custom"})

        assert registry.lookup("webmanifest") == "application/manifest+json"
        assert registry.lookup("txt") == "text/x-custom"
        assert registry.lookup("html") == "text/html; charset=utf-8"

    def test_merge_does_not_touch_other_registries(self):
        """Test registries do not share state."""
        first, second = MimeRegistry(), MimeRegistry()
        first.merge({"abc": "application/x-abc"})
        assert second.lookup("abc") is None

    def test_as_dict_is_a_copy(self):
        """Test mutating the exported dict leaves the registry alone."""
        registry = MimeRegistry()
        exported = registry.as_dict()
        exported["html"] = "broken"
        assert registry.lookup("html") == "text/html; charset=utf-8"

    def test_concurrent_merge_and_lookup(self):
        """Test merges from many threads all land, lookups never fail."""
        registry = MimeRegistry()
        errors = []

        def writer(n):
            for i in range(50):
                registry.merge({f"w{n}x{i}": f"application/x-{n}-{i}"})

        def reader():
            for _ in range(500):
                if registry.lookup("html") != "text/html; charset=utf-8":
                    errors.append("lost default")

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        threads += [threading.Thread(target=reader) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        assert all(registry.lookup(f"w{n}x49") for n in range(4))
        assert len(registry) == len(DEFAULT_MIME_TYPES) + 200
