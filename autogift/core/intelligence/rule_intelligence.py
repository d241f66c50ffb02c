"""Intelligence written back onto rules and profiles.

* rule snapshots: relationship context plus lifestyle, seasonal and success
  defaults stored on an auto-gifting rule when it is created or refreshed;
* gift outcomes: per-category success counts, seasonal patterns and
  recipient-type preferences folded into the requester's gifting history.
"""

from __future__ import annotations

import copy
import logging
from datetime import date
from typing import Any, Dict, Optional

from autogift.core.intelligence.clock import Clock, utcnow
from autogift.core.intelligence.constants import (
    DEFAULT_LIFESTYLE_FACTORS,
    DEFAULT_SEASONAL_ADJUSTMENT_FACTORS,
    DEFAULT_SUCCESS_METRICS,
    NEUTRAL_RELATIONSHIP_CONTEXT,
    REL_OTHER,
)
from autogift.core.intelligence.errors import IntelligenceError, NotFound, UpstreamFetchFailure
from autogift.core.intelligence.events import (
    AUTOGIFT_GIFT_OUTCOME_RECORDED,
    AUTOGIFT_RULE_CREATED,
    AUTOGIFT_RULE_INTELLIGENCE_UPDATED,
)
from autogift.core.intelligence.intelligence_cache import IntelligenceCache, NullIntelligenceCache
from autogift.core.intelligence.relationship_analyzer import RelationshipContextAnalyzer
from autogift.core.intelligence.schemas import (
    AutoGiftRuleRecord,
    CategoryStats,
    GiftingHistory,
    RecipientTypePreference,
    RuleIntelligenceSnapshot,
    SeasonalPattern,
)
from autogift.core.intelligence.seasonal import season_for
from autogift.core.intelligence.stores import ProfileStore, RuleStore, StagedEvent

logger = logging.getLogger(__name__)


def _bump(counts: Dict[str, int], category: str) -> Dict[str, int]:
    updated = dict(counts)
    updated[category] = updated.get(category, 0) + 1
    return updated


def apply_gift_outcome(
    history: GiftingHistory,
    *,
    category: str,
    amount: float,
    was_successful: bool,
    recipient_type: str,
    gifted_on: date,
) -> GiftingHistory:
    """Return a new history with one gift outcome folded in."""
    stats = history.category_success_rates.get(category) or CategoryStats()
    season = season_for(gifted_on)
    pattern = history.seasonal_patterns.get(season) or SeasonalPattern()
    preference = history.recipient_type_preferences.get(recipient_type) or RecipientTypePreference()

    return GiftingHistory(
        category_success_rates={
            **history.category_success_rates,
            category: CategoryStats(
                attempts=stats.attempts + 1,
                successes=stats.successes + (1 if was_successful else 0),
            ),
        },
        seasonal_patterns={
            **history.seasonal_patterns,
            season: SeasonalPattern(
                total_gifts=pattern.total_gifts + 1,
                total_budget=pattern.total_budget + amount,
                popular_categories=_bump(pattern.popular_categories, category),
            ),
        },
        recipient_type_preferences={
            **history.recipient_type_preferences,
            recipient_type: RecipientTypePreference(
                gift_count=preference.gift_count + 1,
                total_budget=preference.total_budget + amount,
                preferred_categories=_bump(preference.preferred_categories, category),
            ),
        },
    )


class RuleIntelligenceService:
    def __init__(
        self,
        analyzer: RelationshipContextAnalyzer,
        profiles: ProfileStore,
        rules: Optional[RuleStore] = None,
        cache: Optional[IntelligenceCache] = None,
        clock: Clock = utcnow,
    ) -> None:
        self._analyzer = analyzer
        self._profiles = profiles
        self._rules = rules
        self._cache = cache or NullIntelligenceCache()
        self._clock = clock

    def build_snapshot(self, user_id: int, recipient_id: int) -> RuleIntelligenceSnapshot:
        try:
            context = self._analyzer.analyze(user_id, recipient_id)
        except UpstreamFetchFailure:
            logger.warning("Relationship context unavailable for rule %s -> %s", user_id, recipient_id)
            context = None
        relationship_context = (
            context.model_dump(mode="json") if context else copy.deepcopy(NEUTRAL_RELATIONSHIP_CONTEXT)
        )
        return RuleIntelligenceSnapshot(
            relationship_context=relationship_context,
            recipient_lifestyle_factors=copy.deepcopy(DEFAULT_LIFESTYLE_FACTORS),
            seasonal_adjustment_factors=copy.deepcopy(DEFAULT_SEASONAL_ADJUSTMENT_FACTORS),
            success_metrics=copy.deepcopy(DEFAULT_SUCCESS_METRICS),
        )

    def create_rule(
        self,
        user_id: int,
        recipient_id: int,
        date_type: str,
        budget_limit: Optional[float] = None,
        gift_preferences: Optional[Dict[str, Any]] = None,
    ) -> AutoGiftRuleRecord:
        rules = self._require_rules()
        snapshot = self.build_snapshot(user_id, recipient_id)
        event = StagedEvent(
            AUTOGIFT_RULE_CREATED,
            {
                "user_id": user_id,
                "recipient_id": recipient_id,
                "date_type": date_type,
                "closeness_level": snapshot.relationship_context.get("closeness_level"),
            },
        )
        rule = rules.create_rule(
            user_id=user_id,
            recipient_id=recipient_id,
            date_type=date_type,
            snapshot=snapshot,
            budget_limit=budget_limit,
            gift_preferences=gift_preferences,
            event=event,
        )
        logger.info("Created auto-gifting rule %s for user %s", rule.id, user_id)
        return rule

    def refresh_rule(self, user_id: int, rule_id: int) -> AutoGiftRuleRecord:
        rules = self._require_rules()
        rule = rules.get_rule(user_id, rule_id)
        if rule is None:
            raise NotFound(f"rule {rule_id}")
        snapshot = self.build_snapshot(user_id, rule.recipient_id)
        event = StagedEvent(
            AUTOGIFT_RULE_INTELLIGENCE_UPDATED,
            {
                "rule_id": rule.id,
                "user_id": user_id,
                "recipient_id": rule.recipient_id,
                "closeness_level": snapshot.relationship_context.get("closeness_level"),
            },
        )
        return rules.update_rule_intelligence(rule.id, snapshot, event=event)

    def record_gift_outcome(
        self,
        user_id: int,
        category: str,
        amount: float,
        was_successful: bool,
        recipient_type: str = REL_OTHER,
        gifted_on: Optional[date] = None,
    ) -> GiftingHistory:
        gifted_on = gifted_on or self._clock().date()
        preferences = self._profiles.get_preferences(user_id)
        history = preferences.gifting_history if preferences is not None else GiftingHistory()
        updated = apply_gift_outcome(
            history,
            category=category,
            amount=amount,
            was_successful=was_successful,
            recipient_type=recipient_type,
            gifted_on=gifted_on,
        )
        event = StagedEvent(
            AUTOGIFT_GIFT_OUTCOME_RECORDED,
            {
                "user_id": user_id,
                "category": category,
                "amount": amount,
                "was_successful": was_successful,
                "recipient_type": recipient_type,
                "season": season_for(gifted_on),
                "gifted_on": gifted_on.isoformat(),
            },
        )
        self._profiles.save_gifting_history(user_id, updated, event=event)
        self._cache.invalidate(user_id)
        return updated

    def _require_rules(self) -> RuleStore:
        if self._rules is None:
            raise IntelligenceError("rule store is not configured")
        return self._rules
