"""Unit tests for the tiered TTL/LRU result cache."""

import pytest

from src.cache.result_cache import PRODUCT_DETAILS, ResultCache, TTLCache
from tests.fixtures.sample_data import FakeClock, make_cache


class TestTTLCache:

    @pytest.fixture
    def clock(self):
        return FakeClock()

    def test_get_returns_stored_value(self, clock):
        cache = TTLCache(ttl_seconds=10, max_size=10, clock=clock)
        cache.put("1", "one")

        assert cache.get("1") == "one"

    def test_missing_key_is_a_miss(self, clock):
        cache = TTLCache(ttl_seconds=10, max_size=10, clock=clock)

        assert cache.get("1") is None
        assert cache.stats() == {"size": 0, "hits": 0, "misses": 1}

    def test_entries_expire_after_write(self, clock):
        cache = TTLCache(ttl_seconds=10, max_size=10, clock=clock)
        cache.put("1", "one")

        clock.advance(9.9)
        assert cache.get("1") == "one"

        # Reads do not extend the lifetime
        clock.advance(0.1)
        assert cache.get("1") is None
        assert len(cache) == 0

    def test_per_entry_ttl_override(self, clock):
        cache = TTLCache(ttl_seconds=10, max_size=10, clock=clock)
        cache.put("short", "value", ttl=1)
        cache.put("long", "value")

        clock.advance(2)

        assert cache.get("short") is None
        assert cache.get("long") == "value"

    def test_rewrite_restarts_lifetime(self, clock):
        cache = TTLCache(ttl_seconds=10, max_size=10, clock=clock)
        cache.put("1", "old")
        clock.advance(8)
        cache.put("1", "new")
        clock.advance(8)

        assert cache.get("1") == "new"

    def test_evicts_least_recently_used_over_capacity(self, clock):
        cache = TTLCache(ttl_seconds=10, max_size=2, clock=clock)
        cache.put("1", "one")
        cache.put("2", "two")
        cache.get("1")
        cache.put("3", "three")

        assert cache.get("2") is None
        assert cache.get("1") == "one"
        assert cache.get("3") == "three"
        assert len(cache) == 2

    def test_evict_and_clear(self, clock):
        cache = TTLCache(ttl_seconds=10, max_size=10, clock=clock)
        cache.put("1", "one")
        cache.put("2", "two")

        cache.evict("1")
        cache.evict("missing")
        assert cache.get("1") is None
        assert len(cache) == 1

        cache.clear()
        assert len(cache) == 0

    def test_stats_count_hits_and_misses(self, clock):
        cache = TTLCache(ttl_seconds=10, max_size=10, clock=clock)
        cache.put("1", "one")
        cache.get("1")
        cache.get("1")
        cache.get("2")

        assert cache.stats() == {"size": 1, "hits": 2, "misses": 1}

    @pytest.mark.parametrize("kwargs", [
        {"ttl_seconds": 0, "max_size": 10},
        {"ttl_seconds": 10, "max_size": 0},
    ])
    def test_rejects_invalid_bounds(self, kwargs):
        with pytest.raises(ValueError):
            TTLCache(**kwargs)


class TestResultCache:

    def test_tiers_are_independent(self):
        cache = make_cache()
        cache.put(PRODUCT_DETAILS, "1", "detail")

        assert cache.get(PRODUCT_DETAILS, "1") == "detail"
        assert cache.get("similar_ids", "1") is None

    def test_unknown_tier_raises(self):
        cache = ResultCache()

        with pytest.raises(KeyError, match="Unknown cache tier"):
            cache.get("nope", "1")

    def test_tier_settings_apply(self):
        clock = FakeClock()
        cache = ResultCache()
        cache.add_tier("short", ttl_seconds=1, max_size=10, clock=clock)
        cache.add_tier("long", ttl_seconds=100, max_size=10, clock=clock)
        cache.put("short", "1", "a")
        cache.put("long", "1", "b")

        clock.advance(5)

        assert cache.get("short", "1") is None
        assert cache.get("long", "1") == "b"

    def test_evict_targets_one_tier(self):
        cache = make_cache()
        cache.put(PRODUCT_DETAILS, "1", "detail")
        cache.put("similar_ids", "1", ["2"])

        cache.evict(PRODUCT_DETAILS, "1")

        assert cache.get(PRODUCT_DETAILS, "1") is None
        assert cache.get("similar_ids", "1") == ["2"]

    def test_stats_per_tier(self):
        cache = make_cache()
        cache.put(PRODUCT_DETAILS, "1", "detail")

        stats = cache.stats()

        assert set(stats) == {"similar_ids", "product_details", "similar_products"}
        assert stats[PRODUCT_DETAILS]["size"] == 1
