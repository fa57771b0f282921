"""Tests for caching/annotation_cache.py."""

import pytest

from caching import AnnotationCache, generate_key, stable_json_dumps
from storage import MemoryStore


class FakeClock:
    """Manually advanced epoch-seconds clock."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestGenerateKey:
    """Tests for deterministic cache keys."""

    def test_ignores_dict_key_order(self):
        """Equal inputs with different key order should share a key."""
        a = generate_key("m", {"x": 1, "y": {"b": 2, "a": 1}}, "annotate")
        b = generate_key("m", {"y": {"a": 1, "b": 2}, "x": 1}, "annotate")
        assert a == b

    def test_length(self):
        """Keys should be 32 hex characters."""
        key = generate_key("m", "input")
        assert len(key) == 32
        int(key, 16)

    def test_namespace_partitions(self):
        """Different namespaces should give different keys."""
        assert generate_key("m", "x", "annotate") != generate_key("m", "x", "validate")

    def test_none_namespace_is_default(self):
        """A missing namespace should behave like 'default'."""
        assert generate_key("m", "x") == generate_key("m", "x", "default")

    def test_model_changes_key(self):
        """Different models should give different keys."""
        assert generate_key("m1", "x") != generate_key("m2", "x")

    def test_stable_json_dumps(self):
        """Canonical JSON should be compact and sorted."""
        assert stable_json_dumps({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'


class TestAnnotationCacheTTL:
    """Tests for TTL semantics."""

    def test_visible_before_expiry(self):
        """A value should be returned until its TTL elapses."""
        clock = FakeClock()
        cache = AnnotationCache(default_ttl=10, clock=clock)
        cache.set("k", {"v": 1})
        clock.advance(9.9)
        assert cache.get("k") == {"v": 1}

    def test_absent_after_expiry(self):
        """A value should be absent once its TTL elapses."""
        clock = FakeClock()
        cache = AnnotationCache(default_ttl=10, clock=clock)
        cache.set("k", {"v": 1})
        clock.advance(10)
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_explicit_ttl_overrides_default(self):
        """A per-call TTL should override the default."""
        clock = FakeClock()
        cache = AnnotationCache(default_ttl=10, clock=clock)
        cache.set("k", 1, ttl=100)
        clock.advance(50)
        assert cache.get("k") == 1

    def test_set_replaces_expiry(self):
        """Re-setting a key should restart its TTL."""
        clock = FakeClock()
        cache = AnnotationCache(default_ttl=10, clock=clock)
        cache.set("k", 1)
        clock.advance(8)
        cache.set("k", 2)
        clock.advance(8)
        assert cache.get("k") == 2

    def test_namespace_ttl(self):
        """ttl_for should use namespace overrides."""
        cache = AnnotationCache(default_ttl=300, namespace_ttls={"validate": 60})
        assert cache.ttl_for("validate") == 60
        assert cache.ttl_for("annotate") == 300
        assert cache.ttl_for(None) == 300

    def test_rejects_non_positive_ttl(self):
        """Zero or negative TTLs should raise."""
        cache = AnnotationCache()
        with pytest.raises(ValueError):
            cache.set("k", 1, ttl=0)
        with pytest.raises(ValueError):
            AnnotationCache(default_ttl=-1)

    def test_sweep_removes_expired(self):
        """sweep should remove only expired entries."""
        clock = FakeClock()
        cache = AnnotationCache(default_ttl=10, clock=clock)
        cache.set("old", 1)
        clock.advance(5)
        cache.set("new", 2)
        clock.advance(6)
        assert cache.sweep() == 1
        assert cache.has("new")
        assert not cache.has("old")


class TestAnnotationCacheOperations:
    """Tests for get/set/delete/cached/stats."""

    def test_get_default(self):
        """Missing keys should return the supplied default."""
        assert AnnotationCache().get("nope", default="d") == "d"

    def test_delete(self):
        """delete should report whether an entry was removed."""
        cache = AnnotationCache()
        cache.set("k", 1)
        assert cache.delete("k") is True
        assert cache.delete("k") is False

    def test_cached_computes_once(self):
        """cached should call fn only on a miss."""
        cache = AnnotationCache()
        calls = []

        def compute():
            calls.append(1)
            return {"value": 42}

        assert cache.cached("k", compute) == {"value": 42}
        assert cache.cached("k", compute) == {"value": 42}
        assert len(calls) == 1

    def test_stats_counts_hits_and_misses(self):
        """stats should report hits, misses and entry count."""
        clock = FakeClock()
        cache = AnnotationCache(clock=clock)
        cache.set("k", 1)
        cache.get("k")
        cache.get("missing")
        clock.advance(3)
        stats = cache.stats()
        assert stats["entries"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["oldest_age_seconds"] == 3

    def test_start_and_close(self):
        """The sweeper thread should start and stop cleanly."""
        cache = AnnotationCache(sweep_interval=0.01)
        cache.start()
        cache.start()
        cache.close()
        assert cache._sweeper is None


class TestAnnotationCachePersistence:
    """Tests for write-through persistence."""

    def test_persistent_entries_survive_new_instance(self):
        """A persisted entry should be readable by a fresh cache."""
        store = MemoryStore()
        clock = FakeClock()
        AnnotationCache(store=store, persistent=True, clock=clock).set("k", {"v": 1})

        fresh = AnnotationCache(store=store, clock=clock)
        assert fresh.get("k") == {"v": 1}
        assert len(fresh) == 1

    def test_non_persistent_not_written(self):
        """Without persistence nothing should reach the store."""
        store = MemoryStore()
        AnnotationCache(store=store).set("k", 1)
        assert store.list("cache/") == []

    def test_per_call_persistence_flag(self):
        """persistent=True on set should override the instance default."""
        store = MemoryStore()
        AnnotationCache(store=store).set("k", 1, persistent=True)
        assert store.list("cache/") == ["cache/k"]

    def test_expired_persisted_entry_is_miss(self):
        """Expired persisted entries should not be re-hydrated."""
        store = MemoryStore()
        clock = FakeClock()
        AnnotationCache(store=store, persistent=True, default_ttl=10, clock=clock).set("k", 1)
        clock.advance(20)
        assert AnnotationCache(store=store, clock=clock).get("k") is None

    def test_corrupt_store_degrades_to_miss(self):
        """Unreadable persisted data should be treated as a miss."""
        store = MemoryStore()
        store.set("cache/k", b"garbage")
        assert AnnotationCache(store=store).get("k") is None

    def test_clear_removes_persisted(self):
        """clear should empty memory and the store."""
        store = MemoryStore()
        cache = AnnotationCache(store=store, persistent=True)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.clear()
        assert len(cache) == 0
        assert store.list("cache/") == []
