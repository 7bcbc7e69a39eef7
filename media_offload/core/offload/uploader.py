"""
Upload orchestration for offloaded media.

Given an asset id, the orchestrator uploads the primary file and every known
variant, records the primary's remote URL and optionally removes the local
copies. Only the primary upload decides the outcome; variants are best
effort.

States per asset, in order:
    precondition check -> client acquisition -> local file check
    -> primary upload -> record remote URL -> variant uploads -> cleanup

Every early exit is reported as an UploadResult carrying an UploadFailure,
never raised, so one asset can never take down a batch or a request.
"""

import logging
import os
from typing import Any, Optional, Protocol

from .keys import derive_key, variant_key
from .models import (
    Asset,
    StorageConfig,
    UploadFailure,
    UploadLocation,
    UploadResult,
    VariantOutcome,
)
from .urls import ConfigSource, object_url

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a storage client cannot be built or a request fails."""
    pass


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ObjectStore(Protocol):
    """
    The S3-protocol operations the orchestrator relies on.

    Implementations raise StorageError for any transport, protocol or
    authentication failure.
    """

    def put_file(self, bucket: str, key: str, path: str, content_type: str) -> None:
        """Upload a local file as a publicly readable object."""
        ...

    def delete_object(self, bucket: str, key: str) -> None:
        """Remove an object."""
        ...


class StorageClientProvider(Protocol):
    """Hands out a storage client for a configuration snapshot."""

    def get_client(self, config: StorageConfig) -> ObjectStore:
        ...

    def invalidate(self) -> None:
        ...


class AssetRepository(Protocol):
    """The host's record of media assets."""

    def find(self, asset_id: str) -> Optional[Asset]:
        ...

    def set_remote_url(self, asset_id: str, remote_url: str) -> None:
        ...


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class UploadOrchestrator:
    """
    Uploads assets and their variants to object storage.

    Calling `upload` on an asset that is already offloaded uploads it again
    and overwrites its remote URL, which is how a resync works.
    """

    def __init__(
        self,
        config_source: ConfigSource,
        clients: StorageClientProvider,
        assets: AssetRepository,
        location: UploadLocation,
    ) -> None:
        self._config_source = config_source
        self._clients = clients
        self._assets = assets
        self._location = location

    def handle_metadata_generated(self, metadata: Any, asset_id: str) -> Any:
        """
        Host trigger fired once an asset's variants have been generated.

        Runs a full upload and hands the metadata back untouched.
        """
        self.upload(asset_id)
        return metadata

    def upload(self, asset_id: str) -> UploadResult:
        """Upload an asset, returning a result whose truth value is the verdict."""
        try:
            config = self._config_source.snapshot()
        except (OSError, ValueError) as e:
            logger.error(
                "Failed to read storage settings",
                extra={"asset_id": asset_id, "error": str(e)}
            )
            return UploadResult(asset_id, failure=UploadFailure.CONFIG_INVALID, error=str(e))

        if not config.has_credentials:
            logger.warning(
                "Storage credentials are not set",
                extra={"asset_id": asset_id}
            )
            return UploadResult(asset_id, failure=UploadFailure.MISSING_CREDENTIALS)

        if not config.bucket:
            logger.warning(
                "Storage bucket is not set",
                extra={"asset_id": asset_id}
            )
            return UploadResult(asset_id, failure=UploadFailure.MISSING_BUCKET)

        try:
            client = self._clients.get_client(config)
        except StorageError as e:
            logger.error(
                "Failed to initialize storage client",
                extra={"asset_id": asset_id, "error": str(e)}
            )
            return UploadResult(asset_id, failure=UploadFailure.CONFIG_INVALID, error=str(e))

        asset = self._assets.find(asset_id)
        if asset is None:
            logger.warning("Asset not found", extra={"asset_id": asset_id})
            return UploadResult(asset_id, failure=UploadFailure.ASSET_NOT_FOUND)

        if not os.path.isfile(asset.local_path):
            logger.warning(
                "File does not exist for asset",
                extra={"asset_id": asset_id, "path": asset.local_path}
            )
            return UploadResult(asset_id, failure=UploadFailure.LOCAL_FILE_MISSING)

        key = derive_key(asset.local_path, self._location.root, config.key_prefix)

        try:
            client.put_file(config.bucket, key, asset.local_path, asset.mime_type)
        except StorageError as e:
            logger.error(
                "Failed to upload main file",
                extra={"asset_id": asset_id, "key": key, "error": str(e)}
            )
            return UploadResult(
                asset_id,
                failure=UploadFailure.UPLOAD_ERROR,
                key=key,
                error=str(e),
            )

        remote_url = object_url(config, key)
        self._assets.set_remote_url(asset_id, remote_url)

        variants = self._upload_variants(client, config, asset, key)

        if config.delete_local_after_upload:
            self._delete_local(asset.local_path)

        logger.info(
            "Offloaded asset",
            extra={
                "asset_id": asset_id,
                "key": key,
                "variants": len(variants),
                "failed_variants": sum(1 for v in variants if not v.uploaded),
            }
        )

        return UploadResult(asset_id, key=key, remote_url=remote_url, variants=variants)

    def _upload_variants(
        self,
        client: ObjectStore,
        config: StorageConfig,
        asset: Asset,
        main_key: str,
    ) -> list[VariantOutcome]:
        """
        Upload each variant independently.

        A failed variant is logged and recorded, then skipped. Its local file
        is kept even when local deletion is enabled.
        """
        outcomes = []

        for name, variant in asset.variants.items():
            path = asset.variant_path(variant)
            key = variant_key(main_key, variant.filename)

            if not os.path.isfile(path):
                logger.warning(
                    "Variant file does not exist",
                    extra={"asset_id": asset.id, "variant": name, "path": path}
                )
                outcomes.append(VariantOutcome(name, key, uploaded=False, error="local file missing"))
                continue

            try:
                client.put_file(config.bucket, key, path, variant.mime_type or asset.mime_type)
            except StorageError as e:
                logger.warning(
                    "Failed to upload variant",
                    extra={"asset_id": asset.id, "variant": name, "key": key, "error": str(e)}
                )
                outcomes.append(VariantOutcome(name, key, uploaded=False, error=str(e)))
                continue

            deleted = False
            if config.delete_local_after_upload:
                deleted = self._delete_local(path)

            logger.debug(
                "Uploaded variant",
                extra={"asset_id": asset.id, "variant": name, "key": key}
            )
            outcomes.append(VariantOutcome(name, key, uploaded=True, local_deleted=deleted))

        return outcomes

    def _delete_local(self, path: str) -> bool:
        """Remove a local copy. Failures are logged, never raised."""
        try:
            os.remove(path)
        except OSError as e:
            logger.warning(
                "Failed to delete local file",
                extra={"path": path, "error": str(e)}
            )
            return False
        return True
