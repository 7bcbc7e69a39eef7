"""
Host-side asset records used by the service and the operator script.
"""

from .library import AssetNotFoundError, InMemoryMediaLibrary

__all__ = ["AssetNotFoundError", "InMemoryMediaLibrary"]
