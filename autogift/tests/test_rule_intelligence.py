"""Tests for rule snapshots, gift outcomes and wishlist compatibility."""

from datetime import date, timedelta

import pytest

from autogift.core.intelligence.constants import NEUTRAL_RELATIONSHIP_CONTEXT
from autogift.core.intelligence.errors import IntelligenceError, NotFound
from autogift.core.intelligence.events import (
    AUTOGIFT_GIFT_OUTCOME_RECORDED,
    AUTOGIFT_RULE_CREATED,
    AUTOGIFT_RULE_INTELLIGENCE_UPDATED,
)
from autogift.core.intelligence.intelligence_cache import CacheKey, InMemoryIntelligenceCache
from autogift.core.intelligence.relationship_analyzer import RelationshipContextAnalyzer
from autogift.core.intelligence.rule_intelligence import RuleIntelligenceService, apply_gift_outcome
from autogift.core.intelligence.schemas import GiftingHistory
from autogift.tests.fakes import FIXED_NOW

pytestmark = pytest.mark.unit

USER = 1
RECIPIENT = 2


class TestApplyGiftOutcome:
    def test_first_outcome_builds_history(self):
        history = apply_gift_outcome(
            GiftingHistory(),
            category="Books",
            amount=40.0,
            was_successful=True,
            recipient_type="friend",
            gifted_on=date(2026, 7, 3),
        )

        stats = history.category_success_rates["Books"]
        assert (stats.attempts, stats.successes, stats.success_rate) == (1, 1, 1.0)
        summer = history.seasonal_patterns["summer"]
        assert (summer.total_gifts, summer.avg_budget) == (1, 40.0)
        assert summer.popular_categories == {"Books": 1}
        assert history.recipient_type_preferences["friend"].preferred_categories == {"Books": 1}

    def test_outcomes_accumulate_without_mutating_input(self):
        first = apply_gift_outcome(
            GiftingHistory(),
            category="Books",
            amount=40.0,
            was_successful=True,
            recipient_type="friend",
            gifted_on=date(2026, 12, 3),
        )
        second = apply_gift_outcome(
            first,
            category="Books",
            amount=20.0,
            was_successful=False,
            recipient_type="friend",
            gifted_on=date(2026, 1, 9),
        )

        assert first.category_success_rates["Books"].attempts == 1
        stats = second.category_success_rates["Books"]
        assert (stats.attempts, stats.successes) == (2, 1)
        assert stats.success_rate == pytest.approx(0.5)
        winter = second.seasonal_patterns["winter"]
        assert (winter.total_gifts, winter.avg_budget) == (2, 30.0)
        assert second.recipient_type_preferences["friend"].gift_count == 2


class TestRuleIntelligenceService:
    @pytest.fixture
    def cache(self, fixed_clock):
        return InMemoryIntelligenceCache(clock=fixed_clock)

    @pytest.fixture
    def service(self, backend, fixed_clock, cache):
        analyzer = RelationshipContextAnalyzer(backend, backend, clock=fixed_clock, cache=cache)
        return RuleIntelligenceService(analyzer, backend, backend, cache=cache, clock=fixed_clock)

    def test_snapshot_without_connection_is_neutral(self, service):
        snapshot = service.build_snapshot(USER, RECIPIENT)

        assert snapshot.relationship_context == NEUTRAL_RELATIONSHIP_CONTEXT
        assert snapshot.seasonal_adjustment_factors["birthday_month_boost"] == pytest.approx(1.1)
        assert snapshot.success_metrics["past_gift_success_rate"] == 0

    def test_snapshot_failure_falls_back_to_neutral(self, backend, service):
        backend.add_connection(USER, RECIPIENT, "family")
        backend.failing.add("messages")

        snapshot = service.build_snapshot(USER, RECIPIENT)

        assert snapshot.relationship_context["closeness_level"] == 5

    def test_create_rule_stages_event_with_rule_id(self, backend, service):
        backend.add_connection(USER, RECIPIENT, "family", created_at=FIXED_NOW - timedelta(days=400))

        rule = service.create_rule(USER, RECIPIENT, "birthday", budget_limit=80)

        assert rule.relationship_context["closeness_level"] == 7
        assert rule.budget_limit == 80
        (event,) = backend.events
        assert event.event_type == AUTOGIFT_RULE_CREATED
        assert event.payload["rule_id"] == rule.id
        assert event.payload["closeness_level"] == 7

    def test_refresh_rule_rebuilds_snapshot(self, backend, service, cache):
        rule = service.create_rule(USER, RECIPIENT, "birthday")
        backend.add_connection(USER, RECIPIENT, "close_friend", created_at=FIXED_NOW - timedelta(days=10))
        cache.clear()

        refreshed = service.refresh_rule(USER, rule.id)

        assert refreshed.relationship_context["closeness_level"] == 6
        assert backend.events[-1].event_type == AUTOGIFT_RULE_INTELLIGENCE_UPDATED

    def test_refresh_someone_elses_rule_is_not_found(self, service):
        rule = service.create_rule(USER, RECIPIENT, "birthday")

        with pytest.raises(NotFound):
            service.refresh_rule(99, rule.id)

    def test_record_gift_outcome_persists_and_invalidates(self, backend, service, cache):
        backend.set_profile(USER)
        cache.set(CacheKey(USER, RECIPIENT, "budget_recommendation:general"), {"x": 1}, FIXED_NOW + timedelta(hours=1))

        history = service.record_gift_outcome(USER, "Books", 25.0, True, recipient_type="friend")

        assert backend.profiles[USER].gifting_history == history
        assert history.seasonal_patterns["summer"].total_gifts == 1
        assert len(cache) == 0
        (event,) = backend.events
        assert event.event_type == AUTOGIFT_GIFT_OUTCOME_RECORDED
        assert event.payload["season"] == "summer"
        assert event.payload["gifted_on"] == "2026-06-01"

    def test_record_outcome_without_profile_creates_history(self, backend, service):
        history = service.record_gift_outcome(USER, "Games", 10.0, False, gifted_on=date(2026, 3, 1))

        assert history.category_success_rates["Games"].successes == 0
        assert backend.profiles[USER].gifting_history.seasonal_patterns["spring"].total_gifts == 1

    def test_rules_require_a_rule_store(self, backend, fixed_clock):
        analyzer = RelationshipContextAnalyzer(backend, backend, clock=fixed_clock)
        service = RuleIntelligenceService(analyzer, backend)

        with pytest.raises(IntelligenceError):
            service.create_rule(USER, RECIPIENT, "birthday")


class TestWishlistCompatibility:
    """WishlistCompatibilityAnalyzer.analyze via the engine."""

    def test_items_in_budget_are_counted(self, backend, engine):
        backend.set_profile(USER)
        backend.add_wishlist(RECIPIENT, items=[("Mug", 10), ("Book", 30), ("Lamp", 99.99)])
        backend.add_wishlist(RECIPIENT, items=[("Bike", 150), ("Mystery", None)])
        backend.add_wishlist(RECIPIENT, items=[("Private", 50)], is_public=False)

        compatibility = engine.wishlist_fit(USER, RECIPIENT, "general")

        assert compatibility.total_items == 5
        assert compatibility.compatible_items == 2
        assert [item.name for item in compatibility.recommendations] == ["Book", "Lamp"]
        assert compatibility.compatibility_score == pytest.approx(0.4)

    def test_empty_wishlists_score_zero(self, backend, engine):
        backend.set_profile(USER)

        compatibility = engine.wishlist_fit(USER, RECIPIENT, "general")

        assert (compatibility.total_items, compatibility.compatibility_score) == (0, 0.0)

    def test_no_budget_means_no_result(self, engine):
        assert engine.wishlist_fit(USER, RECIPIENT, "general") is None

    def test_wishlist_outage_means_no_result(self, backend, engine):
        backend.set_profile(USER)
        backend.failing.add("wishlists")

        assert engine.wishlist_fit(USER, RECIPIENT, "general") is None
