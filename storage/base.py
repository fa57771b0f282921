"""Abstract key/value persistence contract."""

import json
from abc import ABC, abstractmethod
from typing import Any


class StorageError(Exception):
    """Raised when a persistence backend cannot complete an operation."""


class KeyValueStore(ABC):
    """Byte-oriented key/value store.

    Keys are slash-separated strings such as ``batches/<id>``; ``list``
    takes a prefix of such keys. Implementations must be safe to call from
    several threads.

    Example:
        class MyStore(KeyValueStore):
            def get(self, key): ...
            def set(self, key, value): ...
            def delete(self, key): ...
            def list(self, prefix=""): ...
    """

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the stored bytes, or None if the key is absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: bytes) -> None:
        """Store bytes under key, replacing any previous value."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove key. Deleting an absent key is not an error."""
        ...

    @abstractmethod
    def list(self, prefix: str = "") -> list[str]:
        """Return all keys starting with prefix, sorted."""
        ...

    def get_json(self, key: str) -> Any | None:
        """Decode a JSON document stored under key."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise StorageError(f"Corrupt JSON under key '{key}': {e}") from e

    def set_json(self, key: str, payload: Any) -> None:
        """Encode payload as JSON and store it under key."""
        text = json.dumps(payload, ensure_ascii=False, sort_keys=True, default=str)
        self.set(key, text.encode("utf-8"))
