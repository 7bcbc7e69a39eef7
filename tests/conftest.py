"""
Shared fixtures for the offloader tests.

Storage is faked with a recording object store so tests can assert on
exactly what would have been sent to S3. Files live under pytest's
tmp_path; nothing touches the network.
"""

import os

import pytest

from media_offload.core.offload.models import UploadLocation
from media_offload.core.offload.uploader import StorageError, UploadOrchestrator
from media_offload.infrastructure.media.library import InMemoryMediaLibrary
from media_offload.infrastructure.options.store import InMemoryOptionStore, OffloadOptions


LOCAL_BASE_URL = "http://example.com/uploads"


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class RecordingObjectStore:
    """Object store that remembers every call and can fail chosen keys."""

    def __init__(self, fail_keys=()):
        self.puts = []
        self.deletes = []
        self.fail_keys = set(fail_keys)

    def put_file(self, bucket, key, path, content_type):
        if key in self.fail_keys:
            raise StorageError(f"Upload failed: {key}")
        with open(path, "rb") as f:
            body = f.read()
        self.puts.append((bucket, key, body, content_type))

    def delete_object(self, bucket, key):
        self.deletes.append((bucket, key))

    @property
    def uploaded_keys(self):
        return [key for _, key, _, _ in self.puts]


class FakeClientProvider:
    """Hands out one store and counts how often it was asked."""

    def __init__(self, store=None, error=None):
        self.store = store or RecordingObjectStore()
        self.error = error
        self.requests = 0
        self.invalidations = 0

    def get_client(self, config):
        self.requests += 1
        if self.error is not None:
            raise self.error
        return self.store

    def invalidate(self):
        self.invalidations += 1


def write_file(root, relative, content=b"image-bytes"):
    """Create a file under the upload root and return its absolute path."""
    path = os.path.join(str(root), relative)
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(content)
    return path


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def upload_root(tmp_path):
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture
def location(upload_root):
    return UploadLocation(root=str(upload_root), base_url=LOCAL_BASE_URL)


@pytest.fixture
def options():
    """Settings pointing at a LocalStack-style endpoint with path-style URLs."""
    opts = OffloadOptions(InMemoryOptionStore())
    opts.update(
        access_key="test-access-key",
        secret_key="test-secret-key",
        bucket="test-bucket",
        region="us-east-1",
        endpoint="http://localstack:4566",
        use_path_style=True,
        delete_local=False,
    )
    return opts


@pytest.fixture
def store():
    return RecordingObjectStore()


@pytest.fixture
def clients(store):
    return FakeClientProvider(store)


@pytest.fixture
def library():
    return InMemoryMediaLibrary()


@pytest.fixture
def orchestrator(options, clients, library, location):
    return UploadOrchestrator(options, clients, library, location)


@pytest.fixture
def make_file(upload_root):
    """Factory writing files under the upload root."""
    def _make(relative, content=b"image-bytes"):
        return write_file(upload_root, relative, content)
    return _make
