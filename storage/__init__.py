"""Persistence backends for jobs, reviews and cached annotations.

Provides:
    - KeyValueStore: Abstract get/set/delete/list contract
    - MemoryStore: Process-local store (tests, ephemeral runs)
    - FileStore: Directory-backed store, one file per key
    - StorageError: Raised by stores on backend failures
"""

from .base import KeyValueStore, StorageError
from .file_store import FileStore
from .memory_store import MemoryStore

__all__ = [
    "FileStore",
    "KeyValueStore",
    "MemoryStore",
    "StorageError",
]
