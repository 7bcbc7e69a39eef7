"""
Object key derivation.

An object's key is its path relative to the local upload root, optionally
namespaced under a prefix. Keys are recomputed on demand rather than stored,
so re-deriving them is always safe.
"""

import posixpath
import re

_REPEATED_SLASHES = re.compile(r"/{2,}")


def normalize_prefix(prefix: str) -> str:
    """
    Trim whitespace and surrounding slashes, and collapse repeated slashes.

    Blank means no prefix. Keys, base URLs and the stored option all use
    this form, so they never disagree about where an object lives.
    """
    if not prefix:
        return ""
    return _REPEATED_SLASHES.sub("/", prefix.strip().strip("/").strip())


def relative_upload_path(local_path: str, upload_root: str) -> str:
    """
    Path of `local_path` relative to `upload_root`.

    Only a leading `upload_root + "/"` is stripped. A path outside the root
    comes back unchanged, so callers must make sure files live under it.
    """
    root = upload_root.rstrip("/") + "/"
    if local_path.startswith(root):
        return local_path[len(root):]
    return local_path


def derive_key(local_path: str, upload_root: str, key_prefix: str = "") -> str:
    """
    Compute the object key for a local file.

        >>> derive_key("/srv/uploads/2026/02/a.jpg", "/srv/uploads", "/site-1/")
        'site-1/2026/02/a.jpg'
    """
    relative = relative_upload_path(local_path, upload_root).lstrip("/")
    prefix = normalize_prefix(key_prefix)
    key = f"{prefix}/{relative}" if prefix else relative

    while "//" in key:
        key = key.replace("//", "/")
    return key


def variant_key(main_key: str, filename: str) -> str:
    """Variants share the directory of the primary object's key."""
    directory = posixpath.dirname(main_key)
    if not directory:
        return filename
    return f"{directory}/{filename}"
