"""
Media offloading logic.

Contains the domain models, key derivation, URL rewriting and the upload
orchestrator.
"""

from .keys import derive_key, normalize_prefix, variant_key
from .models import (
    Asset,
    ConnectionCheckResult,
    StorageConfig,
    SyncReport,
    UploadFailure,
    UploadLocation,
    UploadResult,
    Variant,
    VariantOutcome,
)
from .sync import BatchSync, ConnectionTester
from .uploader import StorageError, UploadOrchestrator
from .urls import URLRewriter, base_url, build_base_url, object_url

__all__ = [
    "Asset",
    "ConnectionCheckResult",
    "StorageConfig",
    "SyncReport",
    "UploadFailure",
    "UploadLocation",
    "UploadResult",
    "Variant",
    "VariantOutcome",
    "BatchSync",
    "ConnectionTester",
    "StorageError",
    "UploadOrchestrator",
    "URLRewriter",
    "base_url",
    "build_base_url",
    "derive_key",
    "normalize_prefix",
    "object_url",
    "variant_key",
]
