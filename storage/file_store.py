"""Directory-backed key/value store.

Each key maps to one file below the base directory; slash-separated key
segments become subdirectories (``batches/<id>`` ->
``<base>/batches/<id>.json``). Writes go to a temporary file first and are
moved into place, so a failed write never leaves a truncated value behind.
"""

import logging
import os
import re
import tempfile
import threading
from pathlib import Path

from .base import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

_SEGMENT_RE = re.compile(r"^[A-Za-z0-9._:-]+$")


class FileStore(KeyValueStore):
    """Key/value store persisting one file per key.

    Attributes:
        base_dir: Root directory for stored files.
        suffix: File suffix appended to every key.
    """

    def __init__(self, base_dir: str | Path, suffix: str = ".json") -> None:
        """Initialize the store, creating base_dir if needed.

        Args:
            base_dir: Root directory for stored files.
            suffix: File suffix appended to every key.
        """
        self.base_dir = Path(base_dir)
        self.suffix = suffix
        self._lock = threading.Lock()
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create store directory {self.base_dir}: {e}") from e

    def _path_for(self, key: str) -> Path:
        segments = key.split("/")
        for segment in segments:
            if not _SEGMENT_RE.match(segment) or segment in (".", ".."):
                raise StorageError(f"Invalid key segment {segment!r} in key '{key}'")
        return self.base_dir.joinpath(*segments[:-1], segments[-1] + self.suffix)

    def get(self, key: str) -> bytes | None:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e

    def set(self, key: str, value: bytes) -> None:
        path = self._path_for(key)
        with self._lock:
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-")
                try:
                    with os.fdopen(fd, "wb") as f:
                        f.write(value)
                    os.replace(tmp_name, path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError as e:
                raise StorageError(f"Cannot write {path}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        with self._lock:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                raise StorageError(f"Cannot delete {path}: {e}") from e

    def list(self, prefix: str = "") -> list[str]:
        keys = []
        for path in self.base_dir.rglob(f"*{self.suffix}"):
            if path.name.startswith(".tmp-"):
                continue
            relative = path.relative_to(self.base_dir).as_posix()
            key = relative[: -len(self.suffix)] if self.suffix else relative
            if key.startswith(prefix):
                keys.append(key)
        return sorted(keys)
