"""Tests for gift category prediction."""

import pytest

from autogift.core.intelligence.category_predictor import (
    CategoryPredictor,
    map_interest,
    merge_categories,
)
from autogift.core.intelligence.intelligence_cache import InMemoryIntelligenceCache

pytestmark = pytest.mark.unit

REQUESTER = 1
RECIPIENT = 2


def _successful_history():
    return {
        "category_success_rates": {
            "Jewelry": {"attempts": 4, "successes": 4},
            "Books & Media": {"attempts": 2, "successes": 2},
            "Socks": {"attempts": 10, "successes": 1},
        }
    }


class TestMerge:
    def test_keeps_first_seen_order(self):
        assert merge_categories(["A", "B"], ["B", "C"], ["A", "D"]) == ["A", "B", "C", "D"]

    def test_truncates_to_five(self):
        assert merge_categories(["A", "B", "C"], ["D", "E", "F", "G"]) == ["A", "B", "C", "D", "E"]

    def test_unknown_interest_maps_to_general(self):
        assert map_interest("Technology ") == "Electronics"
        assert map_interest("knitting") == "General"


class TestCategoryPredictor:
    """CategoryPredictor.predict"""

    def test_sources_merge_in_order(self, backend):
        backend.set_profile(RECIPIENT, interests=["technology", "books", "knitting"])
        backend.add_wishlist(RECIPIENT, category="Electronics")
        backend.add_wishlist(RECIPIENT, category="Outdoor")
        backend.add_wishlist(RECIPIENT, category="Hidden", is_public=False)
        backend.set_profile(REQUESTER, gifting_history=_successful_history())

        categories = CategoryPredictor(backend, backend).predict(REQUESTER, RECIPIENT, "birthday")

        assert categories == ["Electronics", "Books & Media", "General", "Outdoor", "Jewelry"]

    def test_no_sources_yields_empty_list(self, backend):
        assert CategoryPredictor(backend, backend).predict(REQUESTER, RECIPIENT, "general") == []

    def test_failing_wishlists_do_not_break_prediction(self, backend):
        backend.set_profile(RECIPIENT, interests=["music"])
        backend.failing.add("wishlists")

        categories = CategoryPredictor(backend, backend).predict(REQUESTER, RECIPIENT, "general")

        assert categories == ["Entertainment"]

    def test_repeated_calls_are_stable(self, backend, fixed_clock):
        backend.set_profile(RECIPIENT, interests=["art", "gaming"])
        predictor = CategoryPredictor(backend, backend, cache=InMemoryIntelligenceCache(clock=fixed_clock))

        first = predictor.predict(REQUESTER, RECIPIENT, "general")
        second = predictor.predict(REQUESTER, RECIPIENT, "general")

        assert first == second == ["Arts & Crafts", "Gaming"]
        # second call served from cache
        assert backend.calls["profiles"] == 2
