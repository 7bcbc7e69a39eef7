"""
Offload settings endpoints.

Read and update the storage settings at runtime. Saving settings drops the
cached storage client, so the next upload uses the new values.

The secret key is write-only: reads only report whether one is set.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ...core.offload.urls import base_url
from ...infrastructure.options.store import OffloadOptions
from ..dependencies import AuthenticatedUser, OptionsDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class SettingsResponse(BaseModel):
    """Current offload settings."""
    access_key: Optional[str] = Field(None, description="Storage access key")
    secret_key_set: bool = Field(description="Whether a secret key is saved")
    bucket: Optional[str] = Field(None, description="Bucket name")
    region: str = Field(description="Bucket region")
    endpoint: str = Field(description="Custom S3-compatible endpoint, empty for AWS S3")
    use_path_style: bool = Field(description="Address the bucket as a path segment")
    base_prefix: str = Field(description="Prefix prepended to every object key")
    delete_local: bool = Field(description="Delete local files after upload")
    storage_base_url: str = Field(description="Base URL assets are served from once offloaded")


class SettingsUpdate(BaseModel):
    """
    Partial settings update.

    Omitted fields are left alone. An empty string unsets a text setting
    (region and endpoint fall back to their defaults).
    """
    access_key: Optional[str] = Field(None, description="Storage access key")
    secret_key: Optional[str] = Field(None, description="Storage secret key")
    bucket: Optional[str] = Field(None, description="Bucket name")
    region: Optional[str] = Field(None, description="Bucket region, e.g. us-east-1, eu-west-1")
    endpoint: Optional[str] = Field(
        None,
        description="For LocalStack use: http://localstack:4566 (leave empty for AWS S3)"
    )
    use_path_style: Optional[bool] = Field(
        None,
        description="Enable for LocalStack and some S3-compatible services"
    )
    base_prefix: Optional[str] = Field(
        None,
        description='Optional key prefix (e.g. "production", "site-1/uploads")'
    )
    delete_local: Optional[bool] = Field(None, description="Delete local files after uploading")


def _to_response(options: OffloadOptions) -> SettingsResponse:
    return SettingsResponse(
        access_key=options.get_access_key(),
        secret_key_set=options.get_secret_key() is not None,
        bucket=options.get_bucket(),
        region=options.get_region(),
        endpoint=options.get_endpoint(),
        use_path_style=options.get_use_path_style(),
        base_prefix=options.get_base_prefix(),
        delete_local=options.get_delete_local(),
        storage_base_url=base_url(options.snapshot()),
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=SettingsResponse,
    status_code=status.HTTP_200_OK,
    summary="Get offload settings",
)
def get_offload_settings(
    api_key: AuthenticatedUser = None,
    options: OptionsDep = None,
) -> SettingsResponse:
    return _to_response(options)


@router.put(
    "",
    response_model=SettingsResponse,
    status_code=status.HTTP_200_OK,
    summary="Update offload settings",
    description="Save some or all offload settings. Takes effect on the next upload.",
)
def update_offload_settings(
    update: SettingsUpdate,
    api_key: AuthenticatedUser = None,
    options: OptionsDep = None,
) -> SettingsResponse:
    values = update.model_dump(exclude_unset=True)

    # null means "not provided", same as omitting the field
    values = {name: value for name, value in values.items() if value is not None}

    if not values:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No settings provided"
        )

    options.update(**values)

    logger.info("Settings saved", extra={"options": sorted(values)})

    return _to_response(options)
