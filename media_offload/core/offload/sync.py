"""
Operations built on top of the orchestrator: batch sync of assets that were
never offloaded, and an end-to-end connectivity check.
"""

import logging
import os
import time
from datetime import datetime
from typing import Callable, Optional, Protocol

from .models import (
    Asset,
    ConnectionCheckResult,
    SyncReport,
    UploadLocation,
    UploadResult,
    Variant,
)
from .uploader import StorageClientProvider, StorageError, UploadOrchestrator
from .urls import ConfigSource

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100

ProgressCallback = Callable[[str, bool], None]


class MediaCatalog(Protocol):
    """The parts of the host's asset store that sync and probing need."""

    def add(
        self,
        local_path: str,
        mime_type: str,
        variants: Optional[dict[str, Variant]] = None,
        width: Optional[int] = None,
        height: Optional[int] = None,
    ) -> Asset:
        ...

    def delete(self, asset_id: str) -> None:
        ...

    def list_unoffloaded(self) -> list[Asset]:
        ...


class BatchSync:
    """
    Offloads every asset that has no remote URL yet.

    Assets are processed one at a time. A failing asset is counted and
    skipped; it never stops the batch.
    """

    def __init__(self, orchestrator: UploadOrchestrator, catalog: MediaCatalog) -> None:
        self._orchestrator = orchestrator
        self._catalog = catalog

    def run(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        progress: Optional[ProgressCallback] = None,
    ) -> SyncReport:
        """
        Sync all pending assets.

        `batch_size` is advisory: the whole pending set is processed in a
        single pass and the value is only echoed back in the report.
        """
        pending = self._catalog.list_unoffloaded()

        logger.info(
            "Starting sync",
            extra={"found": len(pending), "batch_size": batch_size}
        )

        succeeded = 0
        failed = 0

        for asset in pending:
            ok = self._sync_one(asset.id)
            if ok:
                succeeded += 1
            else:
                failed += 1
            if progress is not None:
                progress(asset.id, ok)

        report = SyncReport(
            found=len(pending),
            succeeded=succeeded,
            failed=failed,
            batch_size=batch_size,
        )
        logger.info(report.summary)
        return report

    def _sync_one(self, asset_id: str) -> bool:
        try:
            return bool(self._orchestrator.upload(asset_id))
        except Exception as e:
            logger.error(
                "Unexpected error syncing asset",
                extra={"asset_id": asset_id, "error": str(e)},
                exc_info=e,
            )
            return False


class ConnectionTester:
    """
    Verifies the storage settings by offloading a throwaway file.

    The test file goes through the same orchestrator as real uploads, so a pass
    means real uploads will work too. The host-side asset and the local file
    are removed whatever the outcome.
    """

    TEST_FILE_CONTENT = b"Media offload connection test file"

    def __init__(
        self,
        orchestrator: UploadOrchestrator,
        catalog: MediaCatalog,
        location: UploadLocation,
        config_source: ConfigSource,
        clients: StorageClientProvider,
    ) -> None:
        self._orchestrator = orchestrator
        self._catalog = catalog
        self._location = location
        self._config_source = config_source
        self._clients = clients

    def check(self) -> ConnectionCheckResult:
        try:
            test_path = self._write_test_file()
        except OSError as e:
            logger.error("Failed to create test file", extra={"error": str(e)})
            return ConnectionCheckResult(False, f"Failed to create test file: {e}")

        asset = None
        try:
            asset = self._catalog.add(test_path, "text/plain")
            result = self._orchestrator.upload(asset.id)
            if result:
                self._remove_test_object(result)
        finally:
            if asset is not None:
                self._catalog.delete(asset.id)
            if os.path.exists(test_path):
                os.remove(test_path)

        if result:
            return ConnectionCheckResult(True, "Storage connection successful!")

        return ConnectionCheckResult(
            False,
            "Storage connection failed. Check your credentials and bucket settings.",
            failure=result.failure,
        )

    def _write_test_file(self) -> str:
        now = datetime.now()
        directory = os.path.join(self._location.root, f"{now:%Y}", f"{now:%m}")
        os.makedirs(directory, exist_ok=True)

        path = os.path.join(directory, f"s3-test-{int(time.time())}.txt")
        with open(path, "wb") as f:
            f.write(self.TEST_FILE_CONTENT)
        return path

    def _remove_test_object(self, result: UploadResult) -> None:
        try:
            config = self._config_source.snapshot()
            self._clients.get_client(config).delete_object(config.bucket, result.key)
        except (StorageError, OSError, ValueError) as e:
            logger.warning(
                "Failed to remove test object",
                extra={"key": result.key, "error": str(e)}
            )
