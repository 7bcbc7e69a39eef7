"""
Public URL construction and local-to-remote URL rewriting.

Read paths never call the storage API. Whether an asset is served remotely is
decided from its recorded `remote_url`, and the remote address is recomputed
from the current configuration, so a URL produced here always matches the
one recorded at upload time.
"""

import logging
import re
from typing import Any, Optional, Protocol

from .keys import normalize_prefix
from .models import Asset, StorageConfig, UploadLocation

logger = logging.getLogger(__name__)

_SCHEME = re.compile(r"^https?://", re.IGNORECASE)

# Characters that terminate a URL embedded in HTML, CSS or srcset text.
# Trailing sentence punctuation is not part of the URL.
_URL_TAIL = r"""/[^\s"'<>()\[\]]*[^\s"'<>()\[\].,;:!?]"""


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ConfigSource(Protocol):
    """Anything that can produce a fresh StorageConfig snapshot."""

    def snapshot(self) -> StorageConfig:
        ...


class AssetLookup(Protocol):
    """Reverse lookup from a local file path to the asset that owns it."""

    def find_by_path(self, path: str) -> Optional[Asset]:
        ...


# ---------------------------------------------------------------------------
# Base URLs
# ---------------------------------------------------------------------------

def build_base_url(
    bucket: str,
    endpoint: str,
    region: str,
    use_path_style: bool,
    key_prefix: str = "",
) -> str:
    """
    Public base URL for a bucket, including the key prefix.

    Returns an empty string when no bucket is configured, which callers treat
    as "offloading not configured".
    """
    if not bucket:
        return ""

    if endpoint:
        host = _SCHEME.sub("", endpoint).rstrip("/")
        if use_path_style:
            base = f"http://{host}/{bucket}"
        else:
            base = f"http://{bucket}.{host}"
    else:
        base = f"https://{bucket}.s3.{region}.amazonaws.com"

    prefix = normalize_prefix(key_prefix)
    if prefix:
        base = f"{base}/{prefix}"
    return base


def bucket_url(config: StorageConfig) -> str:
    """Base URL of the bucket itself, without the key prefix."""
    return build_base_url(
        config.bucket,
        config.endpoint,
        config.region,
        config.use_path_style,
    )


def base_url(config: StorageConfig) -> str:
    """Base URL that local upload URLs are rewritten onto."""
    return build_base_url(
        config.bucket,
        config.endpoint,
        config.region,
        config.use_path_style,
        config.key_prefix,
    )


def object_url(config: StorageConfig, key: str) -> str:
    """
    Public URL of an object.

    Keys already carry the prefix, so this agrees with rewriting the
    object's local URL onto `base_url(config)`.
    """
    root = bucket_url(config)
    if not root:
        return ""
    return f"{root}/{key.lstrip('/')}"


# ---------------------------------------------------------------------------
# Rewriter
# ---------------------------------------------------------------------------

class URLRewriter:
    """
    Substitutes offloaded URLs at every point the host emits an asset URL.

    The host integration calls these methods directly: a single URL lookup,
    image source tuples, responsive source sets, size lookups, descriptor
    payloads and free text. Each applies the same rule through
    `resolve_asset_url`.
    """

    def __init__(
        self,
        config_source: ConfigSource,
        location: UploadLocation,
        assets: Optional[AssetLookup] = None,
    ) -> None:
        self._config_source = config_source
        self._location = location
        self._assets = assets
        self._local_url_pattern = re.compile(re.escape(location.base_url) + _URL_TAIL)

    @property
    def location(self) -> UploadLocation:
        return self._location

    def resolve_asset_url(self, local_url: str, asset: Asset) -> str:
        """Rewrite a local URL to remote storage if the asset is offloaded."""
        if not asset.remote_url:
            return local_url

        base = base_url(self._config_source.snapshot())
        if not base:
            return local_url

        if local_url.startswith(base):
            return local_url

        return local_url.replace(self._location.base_url, base)

    def local_url(self, asset: Asset, variant_name: Optional[str] = None) -> str:
        """The URL the host would serve the asset (or a variant) from locally."""
        if variant_name is None:
            return self._location.url_for(asset.local_path)
        variant = asset.variants[variant_name]
        return self._location.url_for(asset.variant_path(variant))

    def attachment_url(self, url: str, asset: Asset) -> str:
        return self.resolve_asset_url(url, asset)

    def image_src(self, image: Optional[tuple], asset: Asset) -> Optional[tuple]:
        """
        Rewrite an image source tuple: (url, width, height, is_intermediate).

        Empty or missing tuples are passed through.
        """
        if not image:
            return image
        return (self.resolve_asset_url(image[0], asset), *image[1:])

    def image_srcset(
        self,
        sources: Optional[dict[Any, dict[str, Any]]],
        asset: Asset,
    ) -> Optional[dict[Any, dict[str, Any]]]:
        """Rewrite every candidate URL of a responsive source set."""
        if not sources:
            return sources

        rewritten = {}
        for width, source in sources.items():
            entry = dict(source)
            if entry.get("url"):
                entry["url"] = self.resolve_asset_url(entry["url"], asset)
            rewritten[width] = entry
        return rewritten

    def image_downsize(self, asset: Asset, size: str) -> Optional[tuple]:
        """
        Resolve a named size to (url, width, height, is_intermediate).

        Returns None for assets that are not offloaded so the host keeps its
        own behavior. A remote-only file cannot be resized, so an unknown size
        falls back to the full-size image instead of failing.
        """
        if not asset.remote_url:
            return None

        variant = asset.variants.get(size)
        if variant is not None:
            url = self.resolve_asset_url(self.local_url(asset, size), asset)
            return (url, variant.width, variant.height, True)

        url = self.resolve_asset_url(self.local_url(asset), asset)
        return (url, asset.width, asset.height, False)

    def asset_payload(self, payload: dict[str, Any], asset: Asset) -> dict[str, Any]:
        """Rewrite the top-level URL and every size URL of a descriptor payload."""
        if not asset.remote_url:
            return payload

        rewritten = dict(payload)
        if rewritten.get("url"):
            rewritten["url"] = self.resolve_asset_url(rewritten["url"], asset)

        sizes = payload.get("sizes")
        if sizes:
            rewritten["sizes"] = {}
            for name, size in sizes.items():
                entry = dict(size)
                if entry.get("url"):
                    entry["url"] = self.resolve_asset_url(entry["url"], asset)
                rewritten["sizes"][name] = entry
        return rewritten

    def rewrite_content(self, content: str) -> str:
        """
        Rewrite offloaded asset URLs embedded in free text.

        Every substring rooted at the local upload base URL is mapped back to
        its asset; only offloaded assets are rewritten, and everything else in
        the text is left byte-for-byte intact.
        """
        if not content or self._assets is None:
            return content

        replacements: dict[str, str] = {}
        for match in self._local_url_pattern.finditer(content):
            url = match.group(0)
            if url in replacements:
                continue

            path = self._location.path_for(url)
            asset = self._assets.find_by_path(path) if path else None
            if asset is None or not asset.remote_url:
                continue

            resolved = self.resolve_asset_url(url, asset)
            if resolved != url:
                replacements[url] = resolved

        if not replacements:
            return content

        logger.debug(
            "Rewriting asset URLs in content",
            extra={"count": len(replacements)}
        )

        # Substitute per match so a URL never clobbers a longer one it prefixes.
        return self._local_url_pattern.sub(
            lambda m: replacements.get(m.group(0), m.group(0)),
            content,
        )
