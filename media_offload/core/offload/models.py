"""
Domain models for media offloading.

These models describe what the offloader knows about: the storage settings
in effect for one operation, the host application's media assets, and the
outcomes of uploading them. Nothing here touches boto3, FastAPI or the
filesystem beyond path arithmetic.
"""

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


DEFAULT_REGION = "us-east-1"


@dataclass(frozen=True)
class StorageConfig:
    """
    Snapshot of the offload settings for a single operation.

    Frozen because a snapshot must not change underneath an upload that is
    already running. Empty strings mean "not configured".
    """
    access_key: str = ""
    secret_key: str = ""
    bucket: str = ""
    region: str = DEFAULT_REGION
    endpoint: str = ""
    use_path_style: bool = False
    key_prefix: str = ""
    delete_local_after_upload: bool = False

    @property
    def has_credentials(self) -> bool:
        return bool(self.access_key) and bool(self.secret_key)

    @property
    def is_configured(self) -> bool:
        """Credentials and bucket are both present."""
        return self.has_credentials and bool(self.bucket)


@dataclass(frozen=True)
class Variant:
    """
    A derived rendition of an asset (e.g. a resized thumbnail).

    Variants live in the same directory as the primary file, so only the
    bare filename is tracked.
    """
    name: str
    filename: str
    mime_type: str
    width: Optional[int] = None
    height: Optional[int] = None


@dataclass
class Asset:
    """
    One media object owned by the host application.

    `remote_url` is the single source of truth for "has this been
    offloaded?". It is set on every successful primary upload and never
    cleared implicitly.
    """
    id: str
    local_path: str
    mime_type: str
    variants: dict[str, Variant] = field(default_factory=dict)
    width: Optional[int] = None
    height: Optional[int] = None
    remote_url: Optional[str] = None

    @property
    def is_offloaded(self) -> bool:
        return bool(self.remote_url)

    @property
    def directory(self) -> str:
        return os.path.dirname(self.local_path)

    def variant_path(self, variant: Variant) -> str:
        """Local path of a variant file, next to the primary file."""
        return os.path.join(self.directory, variant.filename)


@dataclass(frozen=True)
class UploadLocation:
    """
    Where the host keeps uploads locally and the URL that serves them.

    e.g. root="/var/www/uploads", base_url="https://example.com/uploads"
    """
    root: str
    base_url: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "root", os.path.normpath(self.root))
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    def url_for(self, path: str) -> str:
        """Public local URL for a file under the upload root."""
        prefix = self.root.rstrip("/") + "/"
        relative = path[len(prefix):] if path.startswith(prefix) else path.lstrip("/")
        return f"{self.base_url}/{relative}"

    def path_for(self, url: str) -> Optional[str]:
        """
        Map a local upload URL back to a filesystem path.

        Query strings and fragments are ignored. Returns None when the URL is
        not rooted at the local upload base URL.
        """
        prefix = self.base_url + "/"
        if not url.startswith(prefix):
            return None
        relative = url[len(prefix):].split("?", 1)[0].split("#", 1)[0]
        if not relative:
            return None
        return f"{self.root.rstrip('/')}/{relative}"


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------

class UploadFailure(Enum):
    """Why an upload did not happen. All of these are recoverable."""
    MISSING_CREDENTIALS = "missing_credentials"
    MISSING_BUCKET = "missing_bucket"
    CONFIG_INVALID = "config_invalid"
    ASSET_NOT_FOUND = "asset_not_found"
    LOCAL_FILE_MISSING = "local_file_missing"
    UPLOAD_ERROR = "upload_error"


@dataclass(frozen=True)
class VariantOutcome:
    """What happened to one variant during an upload."""
    name: str
    key: str
    uploaded: bool
    local_deleted: bool = False
    error: Optional[str] = None


@dataclass
class UploadResult:
    """
    Outcome of uploading one asset.

    Truthiness follows the primary file only; variant outcomes are kept for
    callers that want them but never change the verdict.
    """
    asset_id: str
    failure: Optional[UploadFailure] = None
    key: Optional[str] = None
    remote_url: Optional[str] = None
    error: Optional[str] = None
    variants: list[VariantOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failure is None

    def __bool__(self) -> bool:
        return self.success

    @property
    def failed_variants(self) -> list[VariantOutcome]:
        return [v for v in self.variants if not v.uploaded]


@dataclass(frozen=True)
class SyncReport:
    """Aggregate counts from a batch sync."""
    found: int
    succeeded: int
    failed: int
    batch_size: int

    @property
    def summary(self) -> str:
        return f"Sync complete. Success: {self.succeeded}, Failed: {self.failed}"


@dataclass(frozen=True)
class ConnectionCheckResult:
    """Outcome of a storage connectivity check."""
    success: bool
    message: str
    failure: Optional[UploadFailure] = None
