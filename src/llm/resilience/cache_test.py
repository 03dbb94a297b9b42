"""Unit tests for ResponseCache."""

from dataclasses import dataclass

import pytest

from .cache import ResponseCache, make_cache_key


@pytest.fixture
def cache(fake_clock) -> ResponseCache:
    return ResponseCache(max_size=2, ttl_seconds=60, clock=fake_clock)


class TestResponseCache:
    """Tests for TTL and LRU behaviour."""

    @pytest.mark.unit
    def test_hit_and_miss(self, cache):
        """Lookups count hits and misses."""
        assert cache.get("a") is None
        cache.set("a", "reply")
        assert cache.get("a") == "reply"

        stats = cache.stats()
        assert stats.hits == 1
        assert stats.misses == 1
        assert stats.hit_rate == 0.5

    @pytest.mark.unit
    def test_ttl_expiry(self, cache, fake_clock):
        """Entries expire after their TTL."""
        cache.set("a", "reply")
        cache.set("b", "short", ttl_seconds=5)
        fake_clock.advance(10)

        assert "b" not in cache
        assert cache.get("b") is None
        assert cache.get("a") == "reply"
        fake_clock.advance(60)
        assert cache.cleanup() == 1
        assert len(cache) == 0

    @pytest.mark.unit
    def test_lru_eviction(self, cache):
        """The least recently used entry is evicted when full."""
        cache.set("a", 1)
        cache.set("b", 2)
        cache.get("a")
        cache.set("c", 3)

        assert "a" in cache
        assert "b" not in cache
        assert cache.stats().evictions == 1

    @pytest.mark.unit
    def test_overwrite_does_not_evict(self, cache):
        """Setting an existing key replaces it in place."""
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)

        assert cache.get("a") == 10
        assert cache.stats().evictions == 0

    @pytest.mark.unit
    @pytest.mark.parametrize("size", [0, -1])
    def test_zero_size_disables_cache(self, fake_clock, size):
        cache = ResponseCache(max_size=size, ttl_seconds=60, clock=fake_clock)

        cache.set("a", "reply")

        assert cache.get("a") is None
        assert len(cache) == 0
        assert cache.stats().evictions == 0

    @pytest.mark.unit
    def test_clear_and_delete(self, cache):
        """clear() drops entries and counters."""
        cache.set("a", 1)
        assert cache.delete("a") is True
        assert cache.delete("a") is False
        cache.set("b", 2)
        cache.get("b")
        cache.clear()

        stats = cache.stats()
        assert stats.size == 0
        assert stats.hits == 0
        assert stats.hit_rate == 0.0


class TestCacheKey:
    """Tests for make_cache_key."""

    @dataclass
    class _Part:
        role: str
        content: str

    @pytest.mark.unit
    def test_stable_and_namespaced(self):
        """Equal inputs give equal keys; namespace is a prefix."""
        first = make_cache_key("claude", [self._Part("user", "hi")], {"b": 1, "a": 2})
        second = make_cache_key("claude", [self._Part("user", "hi")], {"a": 2, "b": 1})
        assert first == second
        assert first.startswith("claude:")

    @pytest.mark.unit
    def test_distinct_inputs(self):
        """Different inputs or namespaces give different keys."""
        base = make_cache_key("claude", "hello")
        assert make_cache_key("claude", "hello!") != base
        assert make_cache_key("openai", "hello") != base
