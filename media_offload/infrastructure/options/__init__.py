"""
Offload settings persistence: raw option stores and typed access.
"""

from .store import (
    InMemoryOptionStore,
    JsonFileOptionStore,
    OffloadOptions,
    OptionStore,
)

__all__ = [
    "InMemoryOptionStore",
    "JsonFileOptionStore",
    "OffloadOptions",
    "OptionStore",
]
