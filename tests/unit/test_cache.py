"""
Unit tests for the TTL + version-invalidated cache.
"""

import pytest

from personalization.core.cache import VersionedTTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


class TestVersionedTTLCache:
    def test_hit_after_set(self, clock):
        cache = VersionedTTLCache(ttl_seconds=60, clock=clock)
        cache.set("k", ("a", "b"))

        assert cache.get("k") == ("a", "b")
        assert cache.stats.hits == 1

    def test_entry_expires_after_ttl(self, clock):
        cache = VersionedTTLCache(ttl_seconds=60, clock=clock)
        cache.set("k", 1)

        clock.now += 61

        assert cache.get("k") is None
        assert cache.stats.misses == 1

    def test_per_entry_ttl_override(self, clock):
        cache = VersionedTTLCache(ttl_seconds=60, clock=clock)
        cache.set("short", 1, ttl_seconds=5)
        cache.set("long", 2)

        clock.now += 10

        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_invalidate_makes_every_entry_stale(self, clock):
        cache = VersionedTTLCache(ttl_seconds=60, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)

        version = cache.invalidate()

        assert version == 1
        assert cache.get("a") is None
        assert cache.get("b") is None

    def test_entries_written_after_invalidate_are_fresh(self, clock):
        cache = VersionedTTLCache(ttl_seconds=60, clock=clock)
        cache.invalidate()
        cache.set("a", 1)

        assert cache.get("a") == 1

    def test_lru_eviction(self, clock):
        cache = VersionedTTLCache(ttl_seconds=60, max_size=2, clock=clock)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")  # a becomes most recent
        cache.set("c", 3)

        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3
        assert cache.stats.evictions == 1

    def test_get_or_set_calls_factory_once(self, clock):
        cache = VersionedTTLCache(clock=clock)
        calls = []

        def factory():
            calls.append(1)
            return "value"

        assert cache.get_or_set("k", factory) == "value"
        assert cache.get_or_set("k", factory) == "value"
        assert len(calls) == 1

    def test_cached_none_is_distinguished_by_get_or_set(self, clock):
        cache = VersionedTTLCache(clock=clock)
        cache.set("k", None)

        assert cache.get_or_set("k", lambda: "other") is None

    def test_delete(self, clock):
        cache = VersionedTTLCache(clock=clock)
        cache.set("k", 1)

        assert cache.delete("k") is True
        assert cache.delete("k") is False
        assert len(cache) == 0

    def test_invalid_size_rejected(self):
        with pytest.raises(ValueError):
            VersionedTTLCache(max_size=0)
