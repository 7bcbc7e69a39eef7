"""
Object storage integration for offloaded media.

Supports AWS S3 and S3-compatible services via boto3.
Includes mock mode for local development without credentials.
"""

from .client import (
    MockObjectStore,
    S3ObjectStore,
    StorageClientFactory,
    create_storage_client,
)

__all__ = [
    "MockObjectStore",
    "S3ObjectStore",
    "StorageClientFactory",
    "create_storage_client",
]
