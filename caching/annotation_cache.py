"""TTL cache for provider responses with optional write-through persistence.

Keys are deterministic digests of (model, input, namespace), so the same
annotation request always lands on the same entry regardless of dict key
order. Expired entries are dropped lazily on access and by a periodic
background sweep.
"""

import hashlib
import json
import logging
import threading
import time
from collections.abc import Callable
from typing import Any

from core.config import CACHE_KEY_LENGTH, CACHE_SWEEP_INTERVAL, DEFAULT_CACHE_TTL
from core.types import CacheEntry
from storage.base import KeyValueStore, StorageError

logger = logging.getLogger(__name__)

_MISSING = object()
_KEY_PREFIX = "cache/"


def stable_json_dumps(payload: object) -> str:
    """Dump JSON with stable ordering for hashing."""
    return json.dumps(
        payload,
        ensure_ascii=True,
        sort_keys=True,
        separators=(",", ":"),
        default=str,
    )


def generate_key(model: str, input: Any, namespace: str | None = None) -> str:
    """Create a deterministic cache key.

    Args:
        model: Model identifier.
        input: Annotation input (any JSON-serializable value).
        namespace: Key partition, usually the batch operation kind.

    Returns:
        Truncated sha256 hex digest of the canonical JSON of the triple.
    """
    data = stable_json_dumps({"model": model, "input": input, "ns": namespace or "default"})
    return hashlib.sha256(data.encode("utf-8")).hexdigest()[:CACHE_KEY_LENGTH]


class AnnotationCache:
    """In-memory TTL cache with optional persistence.

    Thread-safe: a single lock guards the in-memory map and is never held
    while talking to the backing store.

    Attributes:
        default_ttl: TTL in seconds when neither caller nor namespace set one.
        namespace_ttls: Per-namespace TTL overrides in seconds.
        sweep_interval: Seconds between background sweeps.
        persistent: Write every set through to the store by default.

    Example:
        cache = AnnotationCache(store=FileStore("./data/ai_cache"), persistent=True)
        cache.start()
        key = cache.generate_key("gemini-3-flash-preview", {"text": "..."}, "annotate")
        if (hit := cache.get(key)) is None:
            cache.set(key, call_model(), ttl=cache.ttl_for("annotate"))
        cache.close()
    """

    def __init__(
        self,
        store: KeyValueStore | None = None,
        default_ttl: float = DEFAULT_CACHE_TTL,
        namespace_ttls: dict[str, float] | None = None,
        sweep_interval: float = CACHE_SWEEP_INTERVAL,
        persistent: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Optional backing store for write-through persistence.
            default_ttl: Default TTL in seconds.
            namespace_ttls: Per-namespace TTL overrides in seconds.
            sweep_interval: Seconds between background sweeps.
            persistent: Persist every set unless the call overrides it.
            clock: Time source returning epoch seconds (injectable for tests).
        """
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl}")
        self.store = store
        self.default_ttl = default_ttl
        self.namespace_ttls = dict(namespace_ttls or {})
        self.sweep_interval = sweep_interval
        self.persistent = persistent
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._stop = threading.Event()
        self._sweeper: threading.Thread | None = None

    # ------------------------------------------------------------------
    # Keys
    # ------------------------------------------------------------------

    @staticmethod
    def generate_key(model: str, input: Any, namespace: str | None = None) -> str:
        """Create a deterministic cache key (see module-level generate_key)."""
        return generate_key(model, input, namespace)

    def ttl_for(self, namespace: str | None) -> float:
        """TTL in seconds for a namespace."""
        if namespace is not None and namespace in self.namespace_ttls:
            return self.namespace_ttls[namespace]
        return self.default_ttl

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        persistent: bool | None = None,
    ) -> None:
        """Store a value, replacing any previous entry and its expiry.

        Args:
            key: Cache key.
            value: Value to store (JSON-serializable when persisted).
            ttl: TTL in seconds (default: default_ttl).
            persistent: Write through to the store (default: self.persistent).
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        now = self._clock()
        entry = CacheEntry(key=key, value=value, created_at=now, expires_at=now + ttl)

        with self._lock:
            self._entries[key] = entry

        if self._should_persist(persistent):
            self._persist(entry)

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value if present and not expired.

        Falls back to the backing store on an in-memory miss and re-hydrates
        memory when the persisted entry is still valid.
        """
        entry = self._lookup(key)
        if entry is None:
            with self._lock:
                self._misses += 1
            return default
        with self._lock:
            self._hits += 1
        return entry.value

    def has(self, key: str) -> bool:
        """True if get(key) would return a value. Does not count as a hit."""
        return self._lookup(key) is not None

    def delete(self, key: str) -> bool:
        """Remove a key from memory and the store.

        Returns:
            True if an in-memory entry was removed.
        """
        with self._lock:
            removed = self._entries.pop(key, None) is not None
        if self.store is not None:
            try:
                self.store.delete(_KEY_PREFIX + key)
            except StorageError as e:
                logger.warning(f"Could not delete persisted cache entry {key}: {e}")
        return removed

    def clear(self) -> None:
        """Drop every entry from memory and the store."""
        with self._lock:
            self._entries.clear()
        if self.store is None:
            return
        try:
            for store_key in self.store.list(_KEY_PREFIX):
                self.store.delete(store_key)
        except StorageError as e:
            logger.warning(f"Could not clear persisted cache: {e}")

    def cached(
        self,
        key: str,
        fn: Callable[[], Any],
        ttl: float | None = None,
        persistent: bool | None = None,
    ) -> Any:
        """Return the cached value for key, computing and storing it on a miss."""
        hit = self.get(key, default=_MISSING)
        if hit is not _MISSING:
            logger.debug(f"Cache hit: {key}")
            return hit
        value = fn()
        self.set(key, value, ttl=ttl, persistent=persistent)
        logger.debug(f"Cache miss, stored: {key}")
        return value

    # ------------------------------------------------------------------
    # Expiry
    # ------------------------------------------------------------------

    def sweep(self) -> int:
        """Remove every expired in-memory entry.

        Returns:
            Number of entries removed.
        """
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.info(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def start(self) -> None:
        """Start the background sweep thread (idempotent)."""
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._sweep_loop, name="annotation-cache-sweeper", daemon=True
        )
        self._sweeper.start()

    def close(self) -> None:
        """Stop the background sweep thread."""
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=5)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            try:
                self.sweep()
            except Exception as e:  # keep the sweeper alive
                logger.error(f"Cache sweep failed: {e}")

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def stats(self) -> dict[str, Any]:
        """Return entry count, hit/miss counters and the oldest entry age."""
        now = self._clock()
        with self._lock:
            created = [e.created_at for e in self._entries.values()]
            return {
                "entries": len(self._entries),
                "hits": self._hits,
                "misses": self._misses,
                "oldest_age_seconds": round(now - min(created), 3) if created else None,
                "persistent": self.store is not None and self.persistent,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __enter__(self) -> "AnnotationCache":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _lookup(self, key: str) -> CacheEntry | None:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None:
                if not entry.is_expired(now):
                    return entry
                del self._entries[key]

        if self.store is None:
            return None

        entry = self._load_persisted(key)
        if entry is None or entry.is_expired(now):
            return None
        with self._lock:
            self._entries[key] = entry
        return entry

    def _should_persist(self, persistent: bool | None) -> bool:
        if self.store is None:
            return False
        return self.persistent if persistent is None else persistent

    def _persist(self, entry: CacheEntry) -> None:
        try:
            self.store.set_json(_KEY_PREFIX + entry.key, entry.to_dict())
        except (StorageError, TypeError, ValueError) as e:
            logger.warning(f"Cache entry {entry.key} could not be persisted: {e}")

    def _load_persisted(self, key: str) -> CacheEntry | None:
        try:
            data = self.store.get_json(_KEY_PREFIX + key)
        except StorageError as e:
            logger.error(f"Error reading persisted cache entry {key}: {e}")
            return None
        if data is None:
            return None
        try:
            return CacheEntry(
                key=data["key"],
                value=data["value"],
                created_at=float(data["created_at"]),
                expires_at=float(data["expires_at"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed persisted cache entry {key}: {e}")
            return None
