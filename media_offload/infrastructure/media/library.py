"""
In-memory media library.

Stands in for the host application's attachment records: which files exist,
their variants, and the remote URL recorded once they are offloaded. The API
and the operator script use it as their asset store; a real host would
provide its own implementation of the same methods.
"""

import logging
import mimetypes
import os
import re
import threading
from typing import Optional
from uuid import uuid4

from ...core.offload.models import Asset, Variant

logger = logging.getLogger(__name__)

# photo-300x200.jpg is the 300x200 rendition of photo.jpg
_SIZED_VARIANT = re.compile(r"^(?P<stem>.+)-(?P<width>\d+)x(?P<height>\d+)(?P<ext>\.[^.]+)$")


def _guess_mime_type(filename: str) -> str:
    return mimetypes.guess_type(filename)[0] or "application/octet-stream"


class AssetNotFoundError(Exception):
    """Raised when a requested asset doesn't exist."""
    pass


class InMemoryMediaLibrary:
    """
    Asset records keyed by id, in insertion order.

    Each method corresponds to something the offloader needs from the host:
    - find/get: load an asset by id
    - set_remote_url: record a successful offload
    - list_unoffloaded: pick assets for a batch sync
    - find_by_path: map a local file (primary or variant) back to its asset
    """

    def __init__(self) -> None:
        self._assets: dict[str, Asset] = {}
        self._lock = threading.Lock()

    def add(
        self,
        local_path: str,
        mime_type: str,
        variants: Optional[dict[str, Variant]] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
        asset_id: Optional[str] = None,
    ) -> Asset:
        asset = Asset(
            id=asset_id or str(uuid4()),
            local_path=os.path.normpath(local_path),
            mime_type=mime_type,
            variants=dict(variants or {}),
            width=width,
            height=height,
        )
        with self._lock:
            self._assets[asset.id] = asset

        logger.debug(
            "Registered asset",
            extra={"asset_id": asset.id, "path": asset.local_path}
        )
        return asset

    def find(self, asset_id: str) -> Optional[Asset]:
        with self._lock:
            return self._assets.get(asset_id)

    def get(self, asset_id: str) -> Asset:
        asset = self.find(asset_id)
        if asset is None:
            raise AssetNotFoundError(f"Asset not found: {asset_id}")
        return asset

    def delete(self, asset_id: str) -> None:
        with self._lock:
            self._assets.pop(asset_id, None)

    def count(self) -> int:
        with self._lock:
            return len(self._assets)

    def all(self) -> list[Asset]:
        with self._lock:
            return list(self._assets.values())

    def set_remote_url(self, asset_id: str, remote_url: str) -> None:
        with self._lock:
            asset = self._assets.get(asset_id)
            if asset is None:
                raise AssetNotFoundError(f"Asset not found: {asset_id}")
            asset.remote_url = remote_url

    def list_unoffloaded(self) -> list[Asset]:
        with self._lock:
            return [a for a in self._assets.values() if not a.remote_url]

    def scan(self, root: str) -> int:
        """
        Register every file under `root` that isn't known yet.

        Files named like `photo-300x200.jpg` next to `photo.jpg` become
        variants of it rather than assets of their own. Returns the number of
        assets added.
        """
        added = 0
        for directory, _, filenames in os.walk(root):
            filenames = [f for f in filenames if not f.startswith(".")]
            names = set(filenames)
            variants_of: dict[str, dict[str, Variant]] = {}

            for filename in sorted(filenames):
                match = _SIZED_VARIANT.match(filename)
                if not match:
                    continue
                parent = match.group("stem") + match.group("ext")
                if parent not in names:
                    continue
                width, height = int(match.group("width")), int(match.group("height"))
                name = f"{width}x{height}"
                variants_of.setdefault(parent, {})[name] = Variant(
                    name=name,
                    filename=filename,
                    mime_type=_guess_mime_type(filename),
                    width=width,
                    height=height,
                )

            variant_files = {
                v.filename for variants in variants_of.values() for v in variants.values()
            }
            for filename in sorted(filenames):
                if filename in variant_files:
                    continue
                path = os.path.join(directory, filename)
                if self.find_by_path(path) is not None:
                    continue
                self.add(path, _guess_mime_type(filename), variants=variants_of.get(filename))
                added += 1

        logger.info("Scanned upload directory", extra={"root": root, "added": added})
        return added

    def find_by_path(self, path: str) -> Optional[Asset]:
        """Find the asset whose primary file or any variant lives at `path`."""
        path = os.path.normpath(path)
        with self._lock:
            for asset in self._assets.values():
                if asset.local_path == path:
                    return asset
                for variant in asset.variants.values():
                    if asset.variant_path(variant) == path:
                        return asset
        return None
