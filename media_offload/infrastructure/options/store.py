"""
Persisted offload settings.

Settings are plain key-value pairs in an OptionStore. OffloadOptions layers
the offloader's rules on top: empty strings unset a value, defaults fill the
gaps, the key prefix is normalized on write, and every read for an operation
goes through a single immutable StorageConfig snapshot.
"""

import fcntl
import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, Protocol

from ...core.offload.keys import normalize_prefix
from ...core.offload.models import DEFAULT_REGION, StorageConfig

logger = logging.getLogger(__name__)

OPTION_ACCESS_KEY = "access_key"
OPTION_SECRET_KEY = "secret_key"
OPTION_BUCKET = "bucket"
OPTION_REGION = "region"
OPTION_ENDPOINT = "endpoint"
OPTION_USE_PATH_STYLE = "use_path_style"
OPTION_DELETE_LOCAL = "delete_local"
OPTION_BASE_PREFIX = "base_prefix"

ALL_OPTIONS = (
    OPTION_ACCESS_KEY,
    OPTION_SECRET_KEY,
    OPTION_BUCKET,
    OPTION_REGION,
    OPTION_ENDPOINT,
    OPTION_USE_PATH_STYLE,
    OPTION_DELETE_LOCAL,
    OPTION_BASE_PREFIX,
)

# Older writers stored flags as the string "true" or as 1/"1".
_LEGACY_TRUTHY = {"true", "1"}


def as_flag(value: Any) -> bool:
    """
    Decode a stored flag.

    The canonical form is a JSON boolean. True, "true", 1 and "1" written by
    older versions still read as true; anything else is false.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in _LEGACY_TRUTHY
    return False


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

class OptionStore(Protocol):
    """Raw key-value persistence for settings."""

    def load(self) -> dict[str, Any]:
        """Return every stored value in one read."""
        ...

    def get(self, name: str) -> Any:
        """Return the stored value, or None when unset."""
        ...

    def set(self, name: str, value: Any) -> None:
        ...

    def delete(self, name: str) -> None:
        ...


class InMemoryOptionStore:
    """Options held in a dictionary. Lost on restart."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._values: dict[str, Any] = dict(initial or {})

    def load(self) -> dict[str, Any]:
        return dict(self._values)

    def get(self, name: str) -> Any:
        return self._values.get(name)

    def set(self, name: str, value: Any) -> None:
        self._values[name] = value

    def delete(self, name: str) -> None:
        self._values.pop(name, None)


class JsonFileOptionStore:
    """
    Options persisted to a JSON file.

    The file is re-read on every access, so processes sharing it see each
    other's writes. Every read and read-modify-write holds an exclusive
    flock on a sidecar `<path>.lock` file, which serializes workers on the
    same host. Writes go to a uniquely named temporary file in the same
    directory and are renamed over the original, so readers never see a
    partial document.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._lock_path = f"{path}.lock"
        self._lock = threading.Lock()

    def load(self) -> dict[str, Any]:
        with self._locked():
            return self._load()

    def get(self, name: str) -> Any:
        return self.load().get(name)

    def set(self, name: str, value: Any) -> None:
        with self._locked():
            values = self._load()
            values[name] = value
            self._save(values)

    def delete(self, name: str) -> None:
        with self._locked():
            values = self._load()
            if name in values:
                del values[name]
                self._save(values)

    @contextmanager
    def _locked(self) -> Iterator[None]:
        directory = os.path.dirname(self._path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with self._lock, open(self._lock_path, "a") as lock_file:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)

    def _load(self) -> dict[str, Any]:
        if not os.path.exists(self._path):
            return {}
        with open(self._path, "r", encoding="utf-8") as f:
            content = f.read()
        if not content.strip():
            return {}
        values = json.loads(content)
        if not isinstance(values, dict):
            raise ValueError(f"Options file {self._path} must contain a JSON object")
        return values

    def _save(self, values: dict[str, Any]) -> None:
        directory = os.path.dirname(self._path) or "."

        tmp = tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=directory,
            prefix=f"{os.path.basename(self._path)}.",
            suffix=".tmp",
            delete=False,
        )
        try:
            with tmp:
                json.dump(values, tmp, indent=2, sort_keys=True)
            os.replace(tmp.name, self._path)
        except BaseException:
            if os.path.exists(tmp.name):
                os.unlink(tmp.name)
            raise


# ---------------------------------------------------------------------------
# Typed access
# ---------------------------------------------------------------------------

def _text(values: dict[str, Any], name: str) -> Optional[str]:
    value = values.get(name)
    if value is None or value == "":
        return None
    return str(value)


def _region(values: dict[str, Any]) -> str:
    return _text(values, OPTION_REGION) or DEFAULT_REGION


def _endpoint(values: dict[str, Any]) -> str:
    return _text(values, OPTION_ENDPOINT) or ""


def _base_prefix(values: dict[str, Any]) -> str:
    return normalize_prefix(_text(values, OPTION_BASE_PREFIX) or "")


class OffloadOptions:
    """
    Typed getters and setters for the offload settings.

    Listeners registered with `subscribe` run after every write; the storage
    client factory uses this to drop a client built from stale settings.
    """

    def __init__(self, store: OptionStore) -> None:
        self._store = store
        self._listeners: list[Callable[[], None]] = []

    def subscribe(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            listener()

    def _set_text(self, name: str, value: Optional[str]) -> None:
        value = (value or "").strip()
        if value:
            self._store.set(name, value)
        else:
            self._store.delete(name)
        self._changed()

    def _set_flag(self, name: str, value: Any) -> None:
        self._store.set(name, as_flag(value))
        self._changed()

    # Credentials -----------------------------------------------------------

    def get_access_key(self) -> Optional[str]:
        return _text(self._store.load(), OPTION_ACCESS_KEY)

    def set_access_key(self, value: Optional[str]) -> None:
        self._set_text(OPTION_ACCESS_KEY, value)

    def get_secret_key(self) -> Optional[str]:
        return _text(self._store.load(), OPTION_SECRET_KEY)

    def set_secret_key(self, value: Optional[str]) -> None:
        self._set_text(OPTION_SECRET_KEY, value)

    # Location --------------------------------------------------------------

    def get_bucket(self) -> Optional[str]:
        return _text(self._store.load(), OPTION_BUCKET)

    def set_bucket(self, value: Optional[str]) -> None:
        self._set_text(OPTION_BUCKET, value)

    def get_region(self) -> str:
        return _region(self._store.load())

    def set_region(self, value: Optional[str]) -> None:
        self._set_text(OPTION_REGION, value)

    def get_endpoint(self) -> str:
        return _endpoint(self._store.load())

    def set_endpoint(self, value: Optional[str]) -> None:
        self._set_text(OPTION_ENDPOINT, value)

    def get_use_path_style(self) -> bool:
        return as_flag(self._store.get(OPTION_USE_PATH_STYLE))

    def set_use_path_style(self, value: Any) -> None:
        self._set_flag(OPTION_USE_PATH_STYLE, value)

    def get_base_prefix(self) -> str:
        return _base_prefix(self._store.load())

    def set_base_prefix(self, value: Optional[str]) -> None:
        self._set_text(OPTION_BASE_PREFIX, normalize_prefix(value or ""))

    # Behavior --------------------------------------------------------------

    def get_delete_local(self) -> bool:
        return as_flag(self._store.get(OPTION_DELETE_LOCAL))

    def set_delete_local(self, value: Any) -> None:
        self._set_flag(OPTION_DELETE_LOCAL, value)

    # Bulk ------------------------------------------------------------------

    def update(self, **values: Any) -> None:
        """
        Apply several settings at once.

        Only the names given are touched; unknown names raise KeyError.
        """
        setters = {
            OPTION_ACCESS_KEY: self.set_access_key,
            OPTION_SECRET_KEY: self.set_secret_key,
            OPTION_BUCKET: self.set_bucket,
            OPTION_REGION: self.set_region,
            OPTION_ENDPOINT: self.set_endpoint,
            OPTION_USE_PATH_STYLE: self.set_use_path_style,
            OPTION_DELETE_LOCAL: self.set_delete_local,
            OPTION_BASE_PREFIX: self.set_base_prefix,
        }
        for name, value in values.items():
            if name not in setters:
                raise KeyError(f"Unknown option: {name}")
            setters[name](value)

        logger.info("Offload settings updated", extra={"options": sorted(values)})

    def seed(self, **values: Any) -> list[str]:
        """
        Fill in options that are currently unset. Returns the names written.

        Used to bootstrap an empty store from environment settings without
        overriding anything saved later.
        """
        seeded = []
        for name, value in values.items():
            if name not in ALL_OPTIONS:
                raise KeyError(f"Unknown option: {name}")
            if value in (None, "") or self._store.get(name) is not None:
                continue
            self.update(**{name: value})
            seeded.append(name)
        return seeded

    def snapshot(self) -> StorageConfig:
        """
        Read every setting into an immutable StorageConfig.

        The store is loaded once, so a concurrent write can never leave the
        snapshot with half old and half new values.
        """
        values = self._store.load()
        return StorageConfig(
            access_key=_text(values, OPTION_ACCESS_KEY) or "",
            secret_key=_text(values, OPTION_SECRET_KEY) or "",
            bucket=_text(values, OPTION_BUCKET) or "",
            region=_region(values),
            endpoint=_endpoint(values),
            use_path_style=as_flag(values.get(OPTION_USE_PATH_STYLE)),
            key_prefix=_base_prefix(values),
            delete_local_after_upload=as_flag(values.get(OPTION_DELETE_LOCAL)),
        )
