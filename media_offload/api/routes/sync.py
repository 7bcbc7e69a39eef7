"""
Bulk operations: sync existing media and test the storage connection.

Both run synchronously within the request. A sync over a large library can
take a while; the operator script runs the same code from a shell.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from ..dependencies import AuthenticatedUser, BatchSyncDep, ConnectionTesterDep, SettingsDep

logger = logging.getLogger(__name__)

router = APIRouter()


class SyncResponse(BaseModel):
    """Aggregate result of a sync run."""
    found: int = Field(description="Assets that had not been offloaded yet")
    succeeded: int
    failed: int
    batch_size: int = Field(description="Batch size hint the run was given (advisory)")
    message: str


class ConnectionResponse(BaseModel):
    success: bool
    message: str
    failure: Optional[str] = Field(None, description="Failure code when success is false")


@router.post(
    "",
    response_model=SyncResponse,
    status_code=status.HTTP_200_OK,
    summary="Sync existing media",
    description="Upload every asset that has not been offloaded yet.",
)
def sync_media(
    batch: Optional[int] = Query(None, ge=1, description="Number of files to process per batch"),
    api_key: AuthenticatedUser = None,
    settings: SettingsDep = None,
    batch_sync: BatchSyncDep = None,
) -> SyncResponse:
    batch_size = batch or settings.sync_batch_size
    report = batch_sync.run(batch_size=batch_size)

    message = report.summary if report.found else "No files to sync."
    return SyncResponse(
        found=report.found,
        succeeded=report.succeeded,
        failed=report.failed,
        batch_size=report.batch_size,
        message=message,
    )


@router.post(
    "/test-connection",
    response_model=ConnectionResponse,
    status_code=status.HTTP_200_OK,
    summary="Test storage connection",
    description="Uploads a throwaway file with the current settings and cleans it up.",
)
def check_connection(
    api_key: AuthenticatedUser = None,
    tester: ConnectionTesterDep = None,
) -> ConnectionResponse:
    result = tester.check()

    if not result.success:
        logger.warning("Connection test failed", extra={"failure": result.failure})

    return ConnectionResponse(
        success=result.success,
        message=result.message,
        failure=result.failure.value if result.failure else None,
    )
