"""Tests for the TTL cache."""

import threading

import pytest

from toolgate.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestTTLCache:
    """Tests for TTLCache."""

    def test_get_returns_fresh_entries(self):
        """A stored payload comes back unchanged."""
        cache = TTLCache(capacity=2)
        cache.set("a", {"x": 1})
        assert cache.get("a") == {"x": 1}
        assert cache.get("missing") is None

    def test_entries_expire(self):
        """Entries older than the TTL are gone."""
        clock = FakeClock()
        cache = TTLCache(capacity=2, ttl_seconds=10, clock=clock)
        cache.set("a", 1)
        clock.now = 9.9
        assert cache.get("a") == 1
        clock.now = 10.0
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_least_recently_used_is_evicted(self):
        """Reading an entry protects it from eviction."""
        cache = TTLCache(capacity=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)
        assert cache.get("b") is None
        assert cache.get("a") == 1
        assert cache.get("c") == 3

    def test_zero_capacity_stores_nothing(self):
        """Capacity 0 disables caching."""
        cache = TTLCache(capacity=0)
        cache.set("a", 1)
        assert cache.get("a") is None
        assert len(cache) == 0

    def test_negative_capacity_fails(self):
        """Negative capacities are rejected."""
        with pytest.raises(ValueError):
            TTLCache(capacity=-1)

    def test_invalidate_and_clear(self):
        """invalidate drops one key, clear drops all."""
        cache = TTLCache(capacity=3)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.invalidate("a")
        assert cache.get("a") is None
        cache.clear()
        assert len(cache) == 0

    def test_size_bound_under_concurrent_writes(self):
        """Concurrent writers never push the size past capacity."""
        cache = TTLCache(capacity=10)

        def writer(offset):
            for i in range(200):
                cache.set(f"{offset}-{i}", i)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(cache) == 10
