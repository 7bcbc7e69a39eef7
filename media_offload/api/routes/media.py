"""
Media asset endpoints.

This is where the host application talks to the offloader:
1. Host registers an asset once its variants exist → upload fires
2. Host asks for URLs (single, source set, named size, descriptor)
   → offloaded assets come back pointing at object storage
3. Host can force a re-upload of a single asset

Every URL returned here goes through URLRewriter, so local-only assets keep
their local URLs.
"""

import logging
import os
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from ...core.offload.models import Asset, UploadResult, Variant
from ...core.offload.urls import URLRewriter
from ...infrastructure.media.library import AssetNotFoundError, InMemoryMediaLibrary
from ..dependencies import AuthenticatedUser, LibraryDep, OrchestratorDep, RewriterDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class VariantIn(BaseModel):
    """A derived rendition, stored next to the primary file."""
    file: str = Field(description="Filename of the variant, in the primary file's directory")
    mime_type: str = Field("", description="Variant MIME type (defaults to the asset's)")
    width: Optional[int] = Field(None, description="Width in pixels")
    height: Optional[int] = Field(None, description="Height in pixels")


class AssetCreateRequest(BaseModel):
    """Register an asset whose files already exist under the upload root."""
    path: str = Field(description="Path of the primary file relative to the upload root")
    mime_type: str = Field(description="MIME type of the primary file")
    width: Optional[int] = Field(None, description="Width in pixels")
    height: Optional[int] = Field(None, description="Height in pixels")
    variants: dict[str, VariantIn] = Field(
        default_factory=dict,
        description="Variants keyed by size name, e.g. thumbnail, medium"
    )


class SizeOut(BaseModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    mime_type: str


class AssetResponse(BaseModel):
    """Asset descriptor with URLs resolved for serving."""
    id: str
    url: str = Field(description="URL of the primary file")
    mime_type: str
    width: Optional[int] = None
    height: Optional[int] = None
    offloaded: bool = Field(description="Whether the primary file is served from object storage")
    remote_url: Optional[str] = None
    sizes: dict[str, SizeOut] = Field(default_factory=dict)


class UrlResponse(BaseModel):
    url: str


class DownsizeResponse(BaseModel):
    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    is_intermediate: bool = Field(description="False when the full-size image is returned")


class SrcsetCandidate(BaseModel):
    url: str
    descriptor: str
    value: int


class VariantOutcomeOut(BaseModel):
    name: str
    key: str
    uploaded: bool
    local_deleted: bool
    error: Optional[str] = None


class UploadResultResponse(BaseModel):
    """Outcome of an upload. `success` reflects the primary file only."""
    asset_id: str
    success: bool
    failure: Optional[str] = Field(None, description="Failure code when success is false")
    key: Optional[str] = None
    remote_url: Optional[str] = None
    variants: list[VariantOutcomeOut] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_asset(library: InMemoryMediaLibrary, asset_id: str) -> Asset:
    try:
        return library.get(asset_id)
    except AssetNotFoundError:
        logger.warning("Asset not found", extra={"asset_id": asset_id})
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Asset not found"
        )


def _local_payload(asset: Asset, rewriter: URLRewriter) -> dict[str, Any]:
    """The descriptor the host would build for a local-only asset."""
    return {
        "url": rewriter.local_url(asset),
        "sizes": {
            name: {
                "url": rewriter.local_url(asset, name),
                "width": variant.width,
                "height": variant.height,
                "mime_type": variant.mime_type or asset.mime_type,
            }
            for name, variant in asset.variants.items()
        },
    }


def _to_response(asset: Asset, rewriter: URLRewriter) -> AssetResponse:
    payload = rewriter.asset_payload(_local_payload(asset, rewriter), asset)
    return AssetResponse(
        id=asset.id,
        url=payload["url"],
        mime_type=asset.mime_type,
        width=asset.width,
        height=asset.height,
        offloaded=asset.is_offloaded,
        remote_url=asset.remote_url,
        sizes={name: SizeOut(**size) for name, size in payload["sizes"].items()},
    )


def _result_response(result: UploadResult) -> UploadResultResponse:
    return UploadResultResponse(
        asset_id=result.asset_id,
        success=result.success,
        failure=result.failure.value if result.failure else None,
        key=result.key,
        remote_url=result.remote_url,
        variants=[
            VariantOutcomeOut(
                name=v.name,
                key=v.key,
                uploaded=v.uploaded,
                local_deleted=v.local_deleted,
                error=v.error,
            )
            for v in result.variants
        ],
    )


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=AssetResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register an asset",
    description="Register a finished asset and its variants. Triggers an upload when storage is configured.",
)
def register_asset(
    request: AssetCreateRequest,
    api_key: AuthenticatedUser = None,
    library: LibraryDep = None,
    orchestrator: OrchestratorDep = None,
    rewriter: RewriterDep = None,
) -> AssetResponse:
    """
    Register an asset and offload it.

    The upload outcome doesn't fail the request: an asset that could not be
    offloaded is still registered and keeps being served locally.
    """
    root = rewriter.location.root
    local_path = os.path.normpath(os.path.join(root, request.path))
    if local_path == root or os.path.commonpath([root, local_path]) != root:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Path must stay inside the upload root"
        )

    variants = {}
    for name, variant in request.variants.items():
        if os.path.basename(variant.file) != variant.file:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Variant '{name}' must be a bare filename"
            )
        variants[name] = Variant(
            name=name,
            filename=variant.file,
            mime_type=variant.mime_type,
            width=variant.width,
            height=variant.height,
        )

    asset = library.add(
        local_path,
        request.mime_type,
        variants=variants,
        width=request.width,
        height=request.height,
    )

    logger.info(
        "Asset registered",
        extra={"asset_id": asset.id, "path": request.path, "variants": len(variants)}
    )

    orchestrator.handle_metadata_generated(request.model_dump(), asset.id)

    return _to_response(asset, rewriter)


@router.get(
    "/{asset_id}",
    response_model=AssetResponse,
    summary="Get asset descriptor",
)
def get_asset(
    asset_id: str,
    api_key: AuthenticatedUser = None,
    library: LibraryDep = None,
    rewriter: RewriterDep = None,
) -> AssetResponse:
    asset = _load_asset(library, asset_id)
    return _to_response(asset, rewriter)


@router.get(
    "/{asset_id}/url",
    response_model=UrlResponse,
    summary="Get asset URL",
)
def get_asset_url(
    asset_id: str,
    api_key: AuthenticatedUser = None,
    library: LibraryDep = None,
    rewriter: RewriterDep = None,
) -> UrlResponse:
    asset = _load_asset(library, asset_id)
    return UrlResponse(url=rewriter.attachment_url(rewriter.local_url(asset), asset))


@router.get(
    "/{asset_id}/srcset",
    response_model=list[SrcsetCandidate],
    summary="Get responsive image sources",
    description="Width-described candidates for every variant with a known width",
)
def get_asset_srcset(
    asset_id: str,
    api_key: AuthenticatedUser = None,
    library: LibraryDep = None,
    rewriter: RewriterDep = None,
) -> list[SrcsetCandidate]:
    asset = _load_asset(library, asset_id)

    sources: dict[int, dict[str, Any]] = {}
    for name, variant in asset.variants.items():
        if variant.width:
            sources[variant.width] = {
                "url": rewriter.local_url(asset, name),
                "descriptor": "w",
                "value": variant.width,
            }
    if asset.width:
        sources[asset.width] = {
            "url": rewriter.local_url(asset),
            "descriptor": "w",
            "value": asset.width,
        }

    sources = rewriter.image_srcset(sources, asset) or {}
    return [SrcsetCandidate(**sources[width]) for width in sorted(sources)]


@router.get(
    "/{asset_id}/downsize/{size}",
    response_model=DownsizeResponse,
    summary="Get a named size",
    description="Offloaded assets fall back to the full-size image when the size doesn't exist",
)
def get_asset_size(
    asset_id: str,
    size: str,
    api_key: AuthenticatedUser = None,
    library: LibraryDep = None,
    rewriter: RewriterDep = None,
) -> DownsizeResponse:
    asset = _load_asset(library, asset_id)

    image = rewriter.image_downsize(asset, size)
    if image is None:
        # Not offloaded: serve what exists locally.
        if size in asset.variants:
            variant = asset.variants[size]
            image = (rewriter.local_url(asset, size), variant.width, variant.height, True)
        else:
            image = (rewriter.local_url(asset), asset.width, asset.height, False)

    image = rewriter.image_src(image, asset)
    url, width, height, is_intermediate = image
    return DownsizeResponse(url=url, width=width, height=height, is_intermediate=is_intermediate)


@router.post(
    "/{asset_id}/offload",
    response_model=UploadResultResponse,
    summary="Upload an asset now",
    description="Uploads (or re-uploads) the asset and its variants, overwriting the recorded remote URL.",
)
def offload_asset(
    asset_id: str,
    api_key: AuthenticatedUser = None,
    library: LibraryDep = None,
    orchestrator: OrchestratorDep = None,
) -> UploadResultResponse:
    _load_asset(library, asset_id)
    result = orchestrator.upload(asset_id)
    return _result_response(result)
