"""
Unit tests for object key derivation.

Keys are pure functions of the local path, the upload root and the prefix,
so these tests need no fixtures beyond plain strings.
"""

import pytest

from media_offload.core.offload.keys import (
    derive_key,
    normalize_prefix,
    relative_upload_path,
    variant_key,
)


ROOT = "/var/www/uploads"
LOCAL_PATH = "/var/www/uploads/2026/02/test-image.jpg"

PREFIXES = ["", "production", "staging/", "/development", "site-1/uploads", "/test-env/", "   "]
MALFORMED_PREFIXES = ["site//uploads", "//site///uploads//"]


class TestNormalizePrefix:
    """Tests for prefix trimming."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("production", "production"),
            ("staging/", "staging"),
            ("/development", "development"),
            ("/test-env/", "test-env"),
            ("site-1/uploads", "site-1/uploads"),
            ("  /padded/  ", "padded"),
            ("   ", ""),
            ("", ""),
            ("/", ""),
            ("site//uploads", "site/uploads"),
            ("//site///uploads//", "site/uploads"),
        ],
    )
    def test_trims_slashes_and_whitespace(self, raw, expected):
        assert normalize_prefix(raw) == expected

    def test_none_is_no_prefix(self):
        assert normalize_prefix(None) == ""


class TestDeriveKey:
    """Tests for deriving an object key from a local path."""

    def test_without_prefix_key_is_relative_path(self):
        assert derive_key(LOCAL_PATH, ROOT) == "2026/02/test-image.jpg"

    def test_prefix_is_prepended(self):
        assert derive_key(LOCAL_PATH, ROOT, "production") == "production/2026/02/test-image.jpg"

    def test_multi_segment_prefix(self):
        key = derive_key(LOCAL_PATH, ROOT, "site-1/uploads")
        assert key == "site-1/uploads/2026/02/test-image.jpg"

    @pytest.mark.parametrize("prefix", PREFIXES + MALFORMED_PREFIXES)
    def test_no_double_slashes(self, prefix):
        assert "//" not in derive_key(LOCAL_PATH, ROOT, prefix)

    @pytest.mark.parametrize("prefix", PREFIXES + MALFORMED_PREFIXES)
    def test_never_starts_with_slash(self, prefix):
        assert not derive_key(LOCAL_PATH, ROOT, prefix).startswith("/")

    @pytest.mark.parametrize("prefix", [p for p in PREFIXES if p.strip()])
    def test_starts_with_trimmed_prefix(self, prefix):
        key = derive_key(LOCAL_PATH, ROOT, prefix)
        assert key.startswith(prefix.strip("/") + "/")

    @pytest.mark.parametrize("prefix", MALFORMED_PREFIXES)
    def test_repeated_slashes_inside_prefix_are_collapsed(self, prefix):
        assert derive_key(LOCAL_PATH, ROOT, prefix) == "site/uploads/2026/02/test-image.jpg"

    def test_whitespace_prefix_means_no_prefix(self):
        assert derive_key(LOCAL_PATH, ROOT, "   ") == "2026/02/test-image.jpg"

    def test_root_with_trailing_slash(self):
        assert derive_key(LOCAL_PATH, ROOT + "/") == "2026/02/test-image.jpg"

    def test_doubled_slashes_in_path_are_collapsed(self):
        key = derive_key("/var/www/uploads/2026//02/test-image.jpg", ROOT, "production")
        assert key == "production/2026/02/test-image.jpg"

    def test_derivation_is_deterministic(self):
        """Keys are recomputed on demand, so the same input must give the same key."""
        assert derive_key(LOCAL_PATH, ROOT, "p") == derive_key(LOCAL_PATH, ROOT, "p")


class TestRelativeUploadPath:
    """Only a leading upload root is stripped."""

    def test_strips_leading_root(self):
        assert relative_upload_path(LOCAL_PATH, ROOT) == "2026/02/test-image.jpg"

    def test_path_outside_root_is_unchanged(self):
        assert relative_upload_path("/tmp/other.jpg", ROOT) == "/tmp/other.jpg"

    def test_root_elsewhere_in_path_is_not_stripped(self):
        path = "/backup/var/www/uploads/a.jpg"
        assert relative_upload_path(path, ROOT) == path

    def test_sibling_directory_sharing_a_name_prefix(self):
        """/var/www/uploads-old is not under /var/www/uploads."""
        path = "/var/www/uploads-old/a.jpg"
        assert relative_upload_path(path, ROOT) == path


class TestVariantKey:
    """Variants share the primary object's directory."""

    def test_variant_in_primary_directory(self):
        key = variant_key("production/2026/02/test-image.jpg", "test-image-150x150.jpg")
        assert key == "production/2026/02/test-image-150x150.jpg"

    def test_primary_at_bucket_root(self):
        assert variant_key("test-image.jpg", "test-image-150x150.jpg") == "test-image-150x150.jpg"
