"""Tests for the intelligence cache backends."""

from datetime import datetime, timedelta

import pytest
from pydantic import TypeAdapter

from autogift.core.intelligence.intelligence_cache import (
    CacheKey,
    DatabaseIntelligenceCache,
    InMemoryIntelligenceCache,
    MAX_INTELLIGENCE_TYPE_LENGTH,
    NullIntelligenceCache,
    qualified_type,
)
from autogift.core.intelligence.schemas import SuggestedBudget
from autogift.domains.autogifting.models.cache_models import GiftIntelligenceCache

BUDGET_ADAPTER = TypeAdapter(SuggestedBudget)


@pytest.mark.unit
class TestQualifiedType:
    def test_short_qualifier_is_kept(self):
        assert qualified_type("budget_recommendation", "birthday") == "budget_recommendation:birthday"

    def test_long_qualifiers_fit_the_column_and_stay_distinct(self):
        first = qualified_type("budget_recommendation", "x" * 64)
        second = qualified_type("budget_recommendation", "x" * 63 + "y")

        assert len(first) <= MAX_INTELLIGENCE_TYPE_LENGTH
        assert first.startswith("budget_recommendation:")
        assert first != second
        assert first == qualified_type("budget_recommendation", "x" * 64)


class _Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _counting(value):
    calls = {"n": 0}

    def compute():
        calls["n"] += 1
        return value

    return compute, calls


@pytest.mark.unit
class TestInMemoryCache:
    def test_hit_within_ttl(self):
        clock = _Clock(datetime(2026, 6, 1))
        cache = InMemoryIntelligenceCache(ttl_seconds=60, clock=clock)
        compute, calls = _counting(SuggestedBudget(min=10, max=20))
        key = CacheKey(1, 2, "budget")

        first = cache.cached(key, compute, BUDGET_ADAPTER)
        second = cache.cached(key, compute, BUDGET_ADAPTER)

        assert first == second == SuggestedBudget(min=10, max=20)
        assert calls["n"] == 1

    def test_entry_expires_after_ttl(self):
        clock = _Clock(datetime(2026, 6, 1))
        cache = InMemoryIntelligenceCache(ttl_seconds=60, clock=clock)
        compute, calls = _counting(SuggestedBudget(min=10, max=20))
        key = CacheKey(1, 2, "budget")

        cache.cached(key, compute, BUDGET_ADAPTER)
        clock.advance(seconds=61)
        cache.cached(key, compute, BUDGET_ADAPTER)

        assert calls["n"] == 2

    def test_none_is_never_stored(self):
        cache = InMemoryIntelligenceCache()
        compute, calls = _counting(None)
        key = CacheKey(1, 2, "budget")

        assert cache.cached(key, compute, BUDGET_ADAPTER) is None
        assert cache.cached(key, compute, BUDGET_ADAPTER) is None
        assert calls["n"] == 2
        assert len(cache) == 0

    def test_unreadable_entry_is_recomputed(self):
        clock = _Clock(datetime(2026, 6, 1))
        cache = InMemoryIntelligenceCache(clock=clock)
        key = CacheKey(1, 2, "budget")
        cache.set(key, {"min": "lots"}, clock.now + timedelta(minutes=5))
        compute, calls = _counting(SuggestedBudget(min=1, max=2))

        assert cache.cached(key, compute, BUDGET_ADAPTER) == SuggestedBudget(min=1, max=2)
        assert calls["n"] == 1

    def test_invalidate_drops_only_requester_entries(self):
        cache = InMemoryIntelligenceCache()
        expires = datetime(2100, 1, 1)
        cache.set(CacheKey(1, 2, "a"), 1, expires)
        cache.set(CacheKey(1, 3, "b"), 2, expires)
        cache.set(CacheKey(9, 2, "a"), 3, expires)

        assert cache.invalidate(1) == 2
        assert len(cache) == 1

    def test_expired_entries_are_pruned_on_write(self):
        clock = _Clock(datetime(2026, 6, 1))
        cache = InMemoryIntelligenceCache(ttl_seconds=1, clock=clock)
        for requester_id in range(1000):
            cache.set(CacheKey(requester_id, None, "budget"), {"min": 1, "max": 2}, clock.now + timedelta(seconds=1))

        clock.advance(hours=1)
        cache.set(CacheKey(5000, None, "budget"), {"min": 1, "max": 2}, clock.now + timedelta(seconds=1))

        assert len(cache) == 1

    def test_purge_expired_keeps_live_entries(self):
        clock = _Clock(datetime(2026, 6, 1))
        cache = InMemoryIntelligenceCache(clock=clock)
        cache.set(CacheKey(1, 2, "a"), 1, clock.now + timedelta(seconds=30))
        cache.set(CacheKey(1, 3, "b"), 2, clock.now + timedelta(minutes=10))

        clock.advance(minutes=1)

        assert cache.purge_expired() == 1
        assert len(cache) == 1

    def test_null_cache_always_recomputes(self):
        cache = NullIntelligenceCache()
        compute, calls = _counting(SuggestedBudget(min=1, max=2))
        key = CacheKey(1, 2, "budget")

        cache.cached(key, compute, BUDGET_ADAPTER)
        cache.cached(key, compute, BUDGET_ADAPTER)

        assert calls["n"] == 2
        assert cache.invalidate(1) == 0


@pytest.mark.integration
class TestDatabaseCache:
    """DatabaseIntelligenceCache over gift_intelligence_cache rows."""

    def test_round_trip_and_single_row_per_key(self, app, make_user):
        requester, recipient = make_user("alice"), make_user("bob")
        clock = _Clock(datetime(2026, 6, 1))
        cache = DatabaseIntelligenceCache(ttl_seconds=300, clock=clock)
        key = CacheKey(requester.id, recipient.id, "budget")

        cache.cached(key, lambda: SuggestedBudget(min=5, max=50), BUDGET_ADAPTER)
        cache.expire(key)
        cache.cached(key, lambda: SuggestedBudget(min=6, max=60), BUDGET_ADAPTER)
        cached = cache.cached(key, lambda: SuggestedBudget(min=0, max=0), BUDGET_ADAPTER)

        assert cached == SuggestedBudget(min=6, max=60)
        rows = GiftIntelligenceCache.query.filter_by(user_id=requester.id).all()
        assert len(rows) == 1
        assert rows[0].cache_data == {"value": {"min": 6, "max": 60}}

    def test_expired_rows_are_misses_and_purged(self, app, make_user):
        requester = make_user("carol")
        clock = _Clock(datetime(2026, 6, 1))
        cache = DatabaseIntelligenceCache(ttl_seconds=60, clock=clock)
        key = CacheKey(requester.id, None, "budget")

        cache.cached(key, lambda: SuggestedBudget(min=1, max=2), BUDGET_ADAPTER)
        clock.advance(minutes=5)

        assert cache.get(key) is None
        assert cache.purge_expired() == 1

    def test_invalidate_counts_rows(self, app, make_user):
        requester, recipient = make_user("dave"), make_user("erin")
        cache = DatabaseIntelligenceCache(clock=lambda: datetime(2026, 6, 1))
        expires = datetime(2026, 6, 2)
        cache.set(CacheKey(requester.id, recipient.id, "a"), [1], expires)
        cache.set(CacheKey(requester.id, recipient.id, "b"), [2], expires)

        assert cache.invalidate(requester.id) == 2
        assert cache.get(CacheKey(requester.id, recipient.id, "a")) is None

    def test_long_occasion_budget_is_cached(self, app, make_user):
        requester = make_user("frank")
        cache = DatabaseIntelligenceCache(clock=lambda: datetime(2026, 6, 1))
        key = CacheKey(requester.id, None, qualified_type("budget_recommendation", "o" * 64))
        compute_calls = []

        def compute():
            compute_calls.append(1)
            return SuggestedBudget(min=1, max=2)

        cache.cached(key, compute, BUDGET_ADAPTER)
        cache.cached(key, compute, BUDGET_ADAPTER)

        assert len(compute_calls) == 1
        (row,) = GiftIntelligenceCache.query.filter_by(user_id=requester.id).all()
        assert len(row.intelligence_type) <= MAX_INTELLIGENCE_TYPE_LENGTH
