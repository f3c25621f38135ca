"""
Tests for TTLCache.
"""

import pytest

from agentkg.cache import TTLCache


class StepClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class TestTTLCache:
    """Expiry with an injected clock."""

    def test_hit_before_expiry(self):
        """Entries are returned until the TTL elapses."""
        clock = StepClock()
        cache = TTLCache(ttl=10, clock=clock)
        cache.put("k", "v")

        clock.now += 9.9
        assert cache.get("k") == "v"

        clock.now += 0.1
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_disabled_with_zero_ttl(self):
        """ttl=0 never stores anything."""
        cache = TTLCache(ttl=0)
        cache.put("k", "v")

        assert not cache.enabled
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_invalidate_and_clear(self):
        """invalidate drops one key, clear drops all."""
        cache = TTLCache(ttl=60)
        cache.put("a", 1)
        cache.put("b", 2)

        cache.invalidate("a")
        cache.invalidate("missing")
        assert cache.get("a") is None
        assert cache.get("b") == 2

        cache.clear()
        assert len(cache) == 0

    def test_negative_ttl(self):
        """Negative TTL is rejected."""
        with pytest.raises(ValueError):
            TTLCache(ttl=-1)

    def test_tuple_keys(self):
        """Composite keys work."""
        cache = TTLCache(ttl=60)
        cache.put(("schema", "acme"), "A")
        cache.put(("schema", ""), "ALL")

        assert cache.get(("schema", "acme")) == "A"
        assert cache.get(("schema", "")) == "ALL"

    def test_empty_cache_is_falsy(self):
        """An empty cache is falsy; callers must compare against None."""
        cache = TTLCache(ttl=60)
        assert not cache
        cache.put("k", "v")
        assert cache

    def test_maxsize_evicts(self):
        """Beyond maxsize the oldest entry is evicted."""
        cache = TTLCache(ttl=60, maxsize=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("c", 3)

        assert len(cache) == 2
        assert cache.get("c") == 3
