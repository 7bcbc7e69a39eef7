"""
Object storage client for offloaded media.

Talks to AWS S3 or any S3-compatible service (LocalStack, MinIO, R2) through
boto3. A mock mode keeps objects in memory, enabling API testing without
provisioning actual object storage.

Clients are handed out by StorageClientFactory, which keeps one client per
configuration snapshot and drops it whenever the settings change.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from ...core.offload.models import StorageConfig
from ...core.offload.uploader import ObjectStore, StorageError

logger = logging.getLogger(__name__)

PUBLIC_READ_ACL = "public-read"


class S3ObjectStore:
    """
    S3-protocol object storage client.

    A custom endpoint switches to an S3-compatible service; path-style
    addressing is only requested when the settings ask for it.
    """

    def __init__(self, config: StorageConfig) -> None:
        """
        Initialize the boto3 client.

        boto3 is imported here (not at module level) because mock mode
        doesn't need it.
        """
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for S3 storage. Install with: pip install boto3"
            )

        self._config = config

        boto_config = Config(
            signature_version="s3v4",
            s3={"addressing_style": "path" if config.use_path_style else "auto"},
        )

        try:
            self._s3_client = boto3.client(
                "s3",
                endpoint_url=config.endpoint or None,
                aws_access_key_id=config.access_key,
                aws_secret_access_key=config.secret_key,
                region_name=config.region,
                config=boto_config,
            )
        except Exception as e:
            logger.error(
                "Failed to initialize storage client",
                extra={"endpoint": config.endpoint, "error": str(e)}
            )
            raise StorageError(f"Client initialization failed: {e}")

        logger.info(
            "Initialized S3 storage client",
            extra={
                "bucket": config.bucket,
                "region": config.region,
                "endpoint": config.endpoint or "aws",
                "path_style": config.use_path_style,
            }
        )

    def put_file(self, bucket: str, key: str, path: str, content_type: str) -> None:
        """Upload a local file as a publicly readable object."""
        try:
            with open(path, "rb") as body:
                self._s3_client.put_object(
                    Bucket=bucket,
                    Key=key,
                    Body=body,
                    ACL=PUBLIC_READ_ACL,
                    ContentType=content_type,
                )
        except Exception as e:
            logger.error(
                "Failed to upload file",
                extra={"bucket": bucket, "key": key, "path": path, "error": str(e)}
            )
            raise StorageError(f"Upload failed: {e}")

        logger.debug(
            "Uploaded file",
            extra={"bucket": bucket, "key": key, "content_type": content_type}
        )

    def delete_object(self, bucket: str, key: str) -> None:
        try:
            self._s3_client.delete_object(Bucket=bucket, Key=key)
        except Exception as e:
            logger.error(
                "Failed to delete object",
                extra={"bucket": bucket, "key": key, "error": str(e)}
            )
            raise StorageError(f"Delete failed: {e}")


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StoredObject:
    body: bytes
    content_type: str
    acl: str


class MockObjectStore:
    """
    In-memory storage for local development.

    Objects are kept in a dictionary keyed by (bucket, key). Not suitable for
    production, but enough to run the whole offload flow end to end.
    """

    def __init__(self) -> None:
        self._objects: dict[tuple[str, str], StoredObject] = {}
        logger.info("Initialized mock storage client (in-memory)")

    def put_file(self, bucket: str, key: str, path: str, content_type: str) -> None:
        try:
            with open(path, "rb") as f:
                body = f.read()
        except OSError as e:
            raise StorageError(f"Upload failed: {e}")

        self._objects[(bucket, key)] = StoredObject(body, content_type, PUBLIC_READ_ACL)

        logger.debug(
            "Stored object in mock storage",
            extra={"bucket": bucket, "key": key, "size_bytes": len(body)}
        )

    def delete_object(self, bucket: str, key: str) -> None:
        self._objects.pop((bucket, key), None)

    def get_object(self, bucket: str, key: str) -> StoredObject:
        if (bucket, key) not in self._objects:
            raise StorageError(f"Object not found: {bucket}/{key}")
        return self._objects[(bucket, key)]

    def keys(self, bucket: str) -> list[str]:
        return sorted(k for b, k in self._objects if b == bucket)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
) -> ObjectStore:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (required if not mock_mode)
        mock_mode: If True, return mock client for testing

    Returns:
        ObjectStore implementation (S3 or Mock)
    """
    if mock_mode:
        return MockObjectStore()

    if config is None:
        raise ValueError("config is required when not in mock mode")

    return S3ObjectStore(config)


class StorageClientFactory:
    """
    Owns the storage client shared by uploads.

    One client is built per configuration snapshot and reused until the
    snapshot changes or `invalidate` is called. The cache is guarded by a
    lock because sync route handlers run on a thread pool.

    In mock mode a single in-memory store lives as long as the factory, so
    uploaded objects survive configuration changes.
    """

    def __init__(self, mock_mode: bool = False) -> None:
        self._mock_mode = mock_mode
        self._lock = threading.Lock()
        self._client: Optional[ObjectStore] = None
        self._config: Optional[StorageConfig] = None
        self._mock_store: Optional[MockObjectStore] = None

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def get_client(self, config: StorageConfig) -> ObjectStore:
        with self._lock:
            if self._client is not None and self._config == config:
                return self._client

            if self._mock_mode:
                if self._mock_store is None:
                    self._mock_store = MockObjectStore()
                client = self._mock_store
            else:
                client = create_storage_client(config=config)

            self._client = client
            self._config = config
            return client

    def invalidate(self) -> None:
        """Forget the cached client; the next upload builds a fresh one."""
        with self._lock:
            if self._client is not None:
                logger.info("Invalidated cached storage client")
            self._client = None
            self._config = None
