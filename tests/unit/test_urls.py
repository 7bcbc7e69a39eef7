"""
Unit tests for public URL construction and URL rewriting.

The rewriter reads configuration through OffloadOptions and looks assets up
in the in-memory media library, both real objects. Nothing here contacts
object storage.
"""

import pytest

from media_offload.core.offload.models import Asset, StorageConfig, UploadLocation, Variant
from media_offload.core.offload.urls import (
    URLRewriter,
    base_url,
    bucket_url,
    build_base_url,
    object_url,
)
from media_offload.infrastructure.options.store import InMemoryOptionStore, OffloadOptions


REMOTE_BASE = "http://localstack:4566/test-bucket"
LOCAL_URL = "http://example.com/uploads/2026/02/test-image.jpg"


# ---------------------------------------------------------------------------
# Base URLs
# ---------------------------------------------------------------------------

class TestBuildBaseUrl:
    """Tests for the bucket base URL in each addressing mode."""

    def test_path_style_with_endpoint(self):
        url = build_base_url("test-bucket", "http://localstack:4566", "us-east-1", True)
        assert url == "http://localstack:4566/test-bucket"

    def test_virtual_hosted_with_endpoint(self):
        url = build_base_url("test-bucket", "http://localstack:4566", "us-east-1", False)
        assert url == "http://test-bucket.localstack:4566"

    def test_aws_default(self):
        url = build_base_url("test-bucket", "", "us-east-1", False)
        assert url == "https://test-bucket.s3.us-east-1.amazonaws.com"

    def test_path_style_ignored_without_endpoint(self):
        url = build_base_url("test-bucket", "", "eu-west-1", True)
        assert url == "https://test-bucket.s3.eu-west-1.amazonaws.com"

    @pytest.mark.parametrize(
        "endpoint, path_style, prefix",
        [
            ("http://localstack:4566", True, "production"),
            ("", False, ""),
            ("https://minio.local", False, "site-1"),
        ],
    )
    def test_empty_bucket_means_not_configured(self, endpoint, path_style, prefix):
        assert build_base_url("", endpoint, "us-east-1", path_style, prefix) == ""

    def test_https_scheme_and_trailing_slash_are_stripped(self):
        url = build_base_url("media", "https://minio.local:9000/", "us-east-1", True)
        assert url == "http://minio.local:9000/media"

    @pytest.mark.parametrize(
        "endpoint, path_style, expected",
        [
            ("http://localstack:4566", True, "http://localstack:4566/test-bucket/production"),
            ("http://localstack:4566", False, "http://test-bucket.localstack:4566/production"),
            ("", False, "https://test-bucket.s3.us-east-1.amazonaws.com/production"),
        ],
    )
    def test_prefix_is_appended_in_every_mode(self, endpoint, path_style, expected):
        url = build_base_url("test-bucket", endpoint, "us-east-1", path_style, "/production/")
        assert url == expected

    @pytest.mark.parametrize("prefix", ["site//uploads", "//site///uploads//"])
    def test_repeated_slashes_in_prefix_are_collapsed(self, prefix):
        url = build_base_url("test-bucket", "", "us-east-1", False, prefix)
        assert url == "https://test-bucket.s3.us-east-1.amazonaws.com/site/uploads"


class TestObjectUrl:
    """Object URLs must agree with rewriting the local URL."""

    def test_object_url_without_prefix(self):
        config = StorageConfig(
            bucket="test-bucket",
            endpoint="http://localstack:4566",
            use_path_style=True,
        )
        assert object_url(config, "2026/02/a.jpg") == "http://localstack:4566/test-bucket/2026/02/a.jpg"

    def test_prefix_is_not_doubled(self):
        """The key already carries the prefix; the bucket URL must not add it again."""
        config = StorageConfig(
            bucket="test-bucket",
            endpoint="http://localstack:4566",
            use_path_style=True,
            key_prefix="production",
        )
        url = object_url(config, "production/2026/02/a.jpg")
        assert url == "http://localstack:4566/test-bucket/production/2026/02/a.jpg"
        assert url.startswith(base_url(config))
        assert bucket_url(config) == REMOTE_BASE

    def test_empty_bucket_gives_empty_url(self):
        assert object_url(StorageConfig(), "a.jpg") == ""


# ---------------------------------------------------------------------------
# Rewriter
# ---------------------------------------------------------------------------

@pytest.fixture
def local_location(tmp_path):
    return UploadLocation(root=str(tmp_path), base_url="http://example.com/uploads")


@pytest.fixture
def offloaded(local_location):
    return Asset(
        id="asset-1",
        local_path=f"{local_location.root}/2026/02/test-image.jpg",
        mime_type="image/jpeg",
        width=1200,
        height=800,
        variants={
            "thumbnail": Variant("thumbnail", "test-image-150x150.jpg", "image/jpeg", 150, 150),
            "medium": Variant("medium", "test-image-300x200.jpg", "image/jpeg", 300, 200),
        },
        remote_url=f"{REMOTE_BASE}/2026/02/test-image.jpg",
    )


@pytest.fixture
def local_only(local_location):
    return Asset(
        id="asset-2",
        local_path=f"{local_location.root}/2026/02/other.jpg",
        mime_type="image/jpeg",
    )


class FakeLookup:
    def __init__(self, *assets):
        self._assets = assets

    def find_by_path(self, path):
        for asset in self._assets:
            if asset.local_path == path:
                return asset
            for variant in asset.variants.values():
                if asset.variant_path(variant) == path:
                    return asset
        return None


@pytest.fixture
def rewriter(options, local_location, offloaded, local_only):
    return URLRewriter(options, local_location, FakeLookup(offloaded, local_only))


class TestResolveAssetUrl:
    """Tests for the single-URL rewrite rule."""

    def test_offloaded_asset_is_rewritten(self, rewriter, offloaded):
        assert rewriter.resolve_asset_url(LOCAL_URL, offloaded) == f"{REMOTE_BASE}/2026/02/test-image.jpg"

    def test_rewritten_url_matches_recorded_remote_url(self, rewriter, offloaded):
        assert rewriter.resolve_asset_url(LOCAL_URL, offloaded) == offloaded.remote_url

    @pytest.mark.parametrize(
        "url",
        [
            LOCAL_URL,
            "http://example.com/uploads/2026/02/test-image-150x150.jpg",
            "http://elsewhere.test/picture.png",
            "",
        ],
    )
    def test_local_only_asset_is_never_rewritten(self, rewriter, local_only, url):
        assert rewriter.resolve_asset_url(url, local_only) == url

    @pytest.mark.parametrize(
        "url",
        [
            LOCAL_URL,
            "http://example.com/uploads/2026/02/test-image-150x150.jpg",
            "http://elsewhere.test/picture.png",
        ],
    )
    def test_idempotent(self, rewriter, offloaded, url):
        once = rewriter.resolve_asset_url(url, offloaded)
        assert rewriter.resolve_asset_url(once, offloaded) == once

    def test_unconfigured_bucket_leaves_url_alone(self, local_location, offloaded):
        rewriter = URLRewriter(OffloadOptions(InMemoryOptionStore()), local_location)
        assert rewriter.resolve_asset_url(LOCAL_URL, offloaded) == LOCAL_URL

    def test_prefix_is_applied(self, options, local_location, offloaded):
        options.set_base_prefix("/production/")
        rewriter = URLRewriter(options, local_location)
        assert rewriter.resolve_asset_url(LOCAL_URL, offloaded) == (
            f"{REMOTE_BASE}/production/2026/02/test-image.jpg"
        )

    @pytest.mark.parametrize("endpoint", ["http://localstack:4566", ""])
    @pytest.mark.parametrize(
        "prefix",
        ["", "production", "/test-env/", "site-1/uploads", "site//uploads", "//site///uploads//"],
    )
    def test_rewrite_agrees_with_upload_for_every_prefix(
        self, options, location, library, orchestrator, make_file, endpoint, prefix
    ):
        options.update(endpoint=endpoint, base_prefix=prefix)
        asset = library.add(make_file("2026/02/x.jpg"), "image/jpeg")

        assert orchestrator.upload(asset.id)

        rewriter = URLRewriter(options, location, library)
        assert rewriter.resolve_asset_url(rewriter.local_url(asset), asset) == asset.remote_url

    def test_prefix_stored_by_older_versions_is_read_collapsed(self, local_location, offloaded):
        store = InMemoryOptionStore({
            "access_key": "a",
            "secret_key": "b",
            "bucket": "test-bucket",
            "base_prefix": "site//uploads",
        })
        rewriter = URLRewriter(OffloadOptions(store), local_location)

        assert rewriter.resolve_asset_url(LOCAL_URL, offloaded) == (
            "https://test-bucket.s3.us-east-1.amazonaws.com/site/uploads/2026/02/test-image.jpg"
        )

    def test_follows_current_configuration(self, options, rewriter, offloaded):
        options.set_use_path_style(False)
        assert rewriter.resolve_asset_url(LOCAL_URL, offloaded) == (
            "http://test-bucket.localstack:4566/2026/02/test-image.jpg"
        )


class TestReadPaths:
    """Tests for each place the host emits asset URLs."""

    def test_local_url_for_primary_and_variant(self, rewriter, offloaded):
        assert rewriter.local_url(offloaded) == LOCAL_URL
        assert rewriter.local_url(offloaded, "thumbnail") == (
            "http://example.com/uploads/2026/02/test-image-150x150.jpg"
        )

    def test_attachment_url(self, rewriter, offloaded):
        assert rewriter.attachment_url(LOCAL_URL, offloaded).startswith(REMOTE_BASE)

    def test_image_src_rewrites_only_the_url(self, rewriter, offloaded):
        image = rewriter.image_src((LOCAL_URL, 1200, 800, False), offloaded)
        assert image == (f"{REMOTE_BASE}/2026/02/test-image.jpg", 1200, 800, False)

    def test_image_src_passes_empty_values_through(self, rewriter, offloaded):
        assert rewriter.image_src(None, offloaded) is None
        assert rewriter.image_src((), offloaded) == ()

    def test_image_srcset_rewrites_every_candidate(self, rewriter, offloaded):
        sources = {
            150: {"url": "http://example.com/uploads/2026/02/test-image-150x150.jpg", "descriptor": "w", "value": 150},
            1200: {"url": LOCAL_URL, "descriptor": "w", "value": 1200},
        }
        rewritten = rewriter.image_srcset(sources, offloaded)

        assert rewritten[150]["url"] == f"{REMOTE_BASE}/2026/02/test-image-150x150.jpg"
        assert rewritten[1200]["url"] == f"{REMOTE_BASE}/2026/02/test-image.jpg"
        assert rewritten[150]["value"] == 150
        # input is left untouched
        assert sources[1200]["url"] == LOCAL_URL

    def test_downsize_known_size(self, rewriter, offloaded):
        url, width, height, intermediate = rewriter.image_downsize(offloaded, "medium")
        assert url == f"{REMOTE_BASE}/2026/02/test-image-300x200.jpg"
        assert (width, height, intermediate) == (300, 200, True)

    def test_downsize_unknown_size_falls_back_to_full_size(self, rewriter, offloaded):
        url, width, height, intermediate = rewriter.image_downsize(offloaded, "huge")
        assert url == f"{REMOTE_BASE}/2026/02/test-image.jpg"
        assert (width, height, intermediate) == (1200, 800, False)

    def test_downsize_defers_for_local_assets(self, rewriter, local_only):
        assert rewriter.image_downsize(local_only, "thumbnail") is None

    def test_asset_payload_rewrites_url_and_sizes(self, rewriter, offloaded):
        payload = {
            "id": offloaded.id,
            "url": LOCAL_URL,
            "sizes": {
                "thumbnail": {
                    "url": "http://example.com/uploads/2026/02/test-image-150x150.jpg",
                    "width": 150,
                },
            },
        }
        rewritten = rewriter.asset_payload(payload, offloaded)

        assert rewritten["id"] == offloaded.id
        assert rewritten["url"] == f"{REMOTE_BASE}/2026/02/test-image.jpg"
        assert rewritten["sizes"]["thumbnail"]["url"] == f"{REMOTE_BASE}/2026/02/test-image-150x150.jpg"
        assert rewritten["sizes"]["thumbnail"]["width"] == 150

    def test_asset_payload_untouched_for_local_assets(self, rewriter, local_only):
        payload = {"url": "http://example.com/uploads/2026/02/other.jpg"}
        assert rewriter.asset_payload(payload, local_only) == payload


class TestRewriteContent:
    """Tests for rewriting URLs embedded in free text."""

    def test_offloaded_urls_are_rewritten(self, rewriter):
        html = f'<p><img src="{LOCAL_URL}" alt="pool"></p>'
        assert rewriter.rewrite_content(html) == (
            f'<p><img src="{REMOTE_BASE}/2026/02/test-image.jpg" alt="pool"></p>'
        )

    def test_variant_urls_are_rewritten(self, rewriter):
        html = "<img srcset='http://example.com/uploads/2026/02/test-image-150x150.jpg 150w'>"
        assert rewriter.rewrite_content(html) == (
            f"<img srcset='{REMOTE_BASE}/2026/02/test-image-150x150.jpg 150w'>"
        )

    def test_local_only_assets_are_left_alone(self, rewriter):
        html = '<img src="http://example.com/uploads/2026/02/other.jpg">'
        assert rewriter.rewrite_content(html) == html

    def test_unknown_files_are_left_alone(self, rewriter):
        html = '<a href="http://example.com/uploads/2026/02/report.pdf">report</a>'
        assert rewriter.rewrite_content(html) == html

    def test_mixed_content_only_changes_offloaded_urls(self, rewriter):
        html = (
            f'Intro <img src="{LOCAL_URL}"> and '
            '<img src="http://example.com/uploads/2026/02/other.jpg"> '
            "see http://elsewhere.test/x.jpg"
        )
        expected = (
            f'Intro <img src="{REMOTE_BASE}/2026/02/test-image.jpg"> and '
            '<img src="http://example.com/uploads/2026/02/other.jpg"> '
            "see http://elsewhere.test/x.jpg"
        )
        assert rewriter.rewrite_content(html) == expected

    def test_trailing_punctuation_is_kept(self, rewriter):
        text = f"Download it at {LOCAL_URL}."
        assert rewriter.rewrite_content(text) == f"Download it at {REMOTE_BASE}/2026/02/test-image.jpg."

    def test_query_string_is_preserved(self, rewriter):
        text = f'<img src="{LOCAL_URL}?v=2">'
        assert rewriter.rewrite_content(text) == f'<img src="{REMOTE_BASE}/2026/02/test-image.jpg?v=2">'

    def test_repeated_url_is_rewritten_everywhere(self, rewriter):
        text = f"{LOCAL_URL} {LOCAL_URL}"
        remote = f"{REMOTE_BASE}/2026/02/test-image.jpg"
        assert rewriter.rewrite_content(text) == f"{remote} {remote}"

    def test_text_without_urls_is_unchanged(self, rewriter):
        assert rewriter.rewrite_content("Nothing to see here.") == "Nothing to see here."
        assert rewriter.rewrite_content("") == ""

    def test_without_lookup_content_is_unchanged(self, options, local_location):
        rewriter = URLRewriter(options, local_location)
        html = f'<img src="{LOCAL_URL}">'
        assert rewriter.rewrite_content(html) == html
