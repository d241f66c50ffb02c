"""Tests for typed store records and the telemetry recorder."""

from datetime import date, datetime

import pytest
from pydantic import ValidationError

from autogift.core.intelligence.constants import EngineSettings
from autogift.core.intelligence.schemas import (
    CategoryStats,
    ConnectionRecord,
    GiftOpportunity,
    GiftOutcomeCreate,
    ProfilePreferences,
    SeasonalQuery,
    SuggestedBudget,
)
from autogift.core.intelligence.telemetry import ScanTelemetry

pytestmark = pytest.mark.unit


class TestRecords:
    def test_legacy_category_keys(self):
        stats = CategoryStats.model_validate({"total_attempts": 5, "successful": 4})
        assert (stats.attempts, stats.successes) == (5, 4)
        assert stats.success_rate == pytest.approx(0.8)

    def test_recorded_rate_only_without_attempts(self):
        assert CategoryStats.model_validate({"success_rate": 1.7}).success_rate == 1.0
        assert CategoryStats.model_validate({"attempts": 2, "success_rate": 0.1}).success_rate == 0.0

    def test_unknown_relationship_type(self):
        record = ConnectionRecord(id=1, owner_id=1, recipient_id=2, relationship_type="Nemesis", created_at=datetime(2026, 1, 1))
        assert record.relationship_type == "other"
        assert not record.shares_gift_preferences

    def test_profile_defaults(self):
        profile = ProfilePreferences(user_id=3)
        assert profile.gift_preferences.price_range_for("birthday").max == 100
        assert profile.gifting_history.average_success_rate() is None

    def test_suggested_budget_orders_bounds(self):
        assert SuggestedBudget(min=90, max=10) == SuggestedBudget(min=10, max=90)

    def test_opportunity_timing_must_precede_event(self):
        with pytest.raises(ValidationError):
            GiftOpportunity(
                event_date=datetime(2026, 7, 1),
                event_type="birthday",
                recipient_id=2,
                confidence_score=0.8,
                suggested_budget=SuggestedBudget(min=25, max=100),
                optimal_purchase_timing=datetime(2026, 7, 1),
            )

    def test_gift_outcome_date_coercion(self):
        outcome = GiftOutcomeCreate.model_validate(
            {"category": "Books", "amount": 12, "was_successful": False, "gifted_on": "2026-04-02"}
        )
        assert outcome.gifted_on == date(2026, 4, 2)
        assert outcome.recipient_type == "other"

    def test_seasonal_query_alias(self):
        query = SeasonalQuery.model_validate({"occasion": "birthday", "date": "2026-12-15"})
        assert query.target_date == date(2026, 12, 15)


class TestEngineSettings:
    def test_from_mapping(self):
        settings = EngineSettings.from_mapping(
            {"AUTOGIFT_SCAN_WINDOW_DAYS": "30", "AUTOGIFT_CACHE_BACKEND": "Database"}
        )
        assert settings.scan_window_days == 30
        assert settings.cache_backend == "database"
        assert settings.purchase_lead_days == 5

    @pytest.mark.parametrize(
        "overrides",
        [{"scan_window_days": 0}, {"timing_strategy": "later"}, {"scan_max_workers": 0}],
    )
    def test_rejects_invalid(self, overrides):
        with pytest.raises(ValueError):
            EngineSettings(**overrides)


class TestScanTelemetry:
    def test_snapshot_and_reset(self):
        telemetry = ScanTelemetry()
        telemetry.record_scan(1, ["birthday", "birthday", "anniversary"], 10.0)
        telemetry.record_scan(1, [], 30.0)
        telemetry.record_failure()
        telemetry.record_failure(cancelled=True)

        snapshot = telemetry.snapshot()

        assert snapshot.scans == 2
        assert snapshot.opportunities == 3
        assert snapshot.avg_latency_ms == pytest.approx(20.0)
        assert snapshot.per_event_type_counts == {"birthday": 2, "anniversary": 1}
        assert (snapshot.failed_scans, snapshot.cancelled_scans) == (1, 1)

        telemetry.reset()
        assert telemetry.snapshot().scans == 0

    def test_memory_stays_bounded_across_many_scans(self):
        telemetry = ScanTelemetry()
        for _ in range(500):
            telemetry.record_scan(1, ["birthday"], 4.0)

        snapshot = telemetry.snapshot()

        assert snapshot.avg_latency_ms == pytest.approx(4.0)
        assert len(snapshot.recent_scans) == 50
        assert telemetry.total_latency_ms == pytest.approx(2000.0)
