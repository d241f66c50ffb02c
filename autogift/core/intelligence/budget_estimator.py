"""Context-aware gift budget estimation.

budget = preferred range for the occasion
         x relationship multiplier (closeness / 10 * 1.5 + 0.5)
         x seasonal multiplier (month, birthday boost)
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from pydantic import TypeAdapter

from autogift.core.intelligence.clock import Clock, utcnow
from autogift.core.intelligence.constants import (
    BUDGET_CONFIDENCE_CLOSENESS_WEIGHT,
    BUDGET_CONFIDENCE_FLOOR,
    BUDGET_CONFIDENCE_HISTORY_WEIGHT,
    CLOSENESS_MAX,
    DEFAULT_PRICE_RANGE,
    INTEL_BUDGET,
    NEUTRAL_MULTIPLIER,
    RELATIONSHIP_MULTIPLIER_OFFSET,
    RELATIONSHIP_MULTIPLIER_SCALE,
)
from autogift.core.intelligence.errors import UpstreamFetchFailure
from autogift.core.intelligence.intelligence_cache import (
    CacheKey,
    IntelligenceCache,
    NullIntelligenceCache,
    qualified_type,
)
from autogift.core.intelligence.relationship_analyzer import RelationshipContextAnalyzer
from autogift.core.intelligence.schemas import (
    BudgetReasoning,
    BudgetRecommendation,
    RelationshipContext,
    SuggestedBudget,
)
from autogift.core.intelligence.seasonal import SeasonalAdjustmentCalculator
from autogift.core.intelligence.stores import ProfileStore

logger = logging.getLogger(__name__)

_BUDGET_ADAPTER = TypeAdapter(BudgetRecommendation)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def relationship_multiplier(context: Optional[RelationshipContext]) -> float:
    if context is None:
        return NEUTRAL_MULTIPLIER
    return (
        context.closeness_level / CLOSENESS_MAX * RELATIONSHIP_MULTIPLIER_SCALE
        + RELATIONSHIP_MULTIPLIER_OFFSET
    )


def default_budget() -> SuggestedBudget:
    return SuggestedBudget(min=DEFAULT_PRICE_RANGE["min"], max=DEFAULT_PRICE_RANGE["max"])


class DynamicBudgetEstimator:
    def __init__(
        self,
        profiles: ProfileStore,
        analyzer: RelationshipContextAnalyzer,
        seasonal: Optional[SeasonalAdjustmentCalculator] = None,
        clock: Clock = utcnow,
        cache: Optional[IntelligenceCache] = None,
    ) -> None:
        self._profiles = profiles
        self._analyzer = analyzer
        self._seasonal = seasonal or SeasonalAdjustmentCalculator()
        self._clock = clock
        self._cache = cache or NullIntelligenceCache()

    def estimate(
        self, requester_id: int, recipient_id: int, occasion: str
    ) -> Optional[BudgetRecommendation]:
        """Return a recommendation, or None when the requester profile is unavailable."""
        key = CacheKey(requester_id, recipient_id, qualified_type(INTEL_BUDGET, occasion))
        return self._cache.cached(
            key,
            lambda: self._estimate(requester_id, recipient_id, occasion),
            _BUDGET_ADAPTER,
        )

    def _estimate(
        self, requester_id: int, recipient_id: int, occasion: str
    ) -> Optional[BudgetRecommendation]:
        try:
            preferences = self._profiles.get_preferences(requester_id)
        except UpstreamFetchFailure:
            logger.warning("Profile load failed for user %s; no budget estimate", requester_id)
            return None
        if preferences is None:
            logger.debug("No profile for user %s; no budget estimate", requester_id)
            return None

        try:
            context = self._analyzer.analyze(requester_id, recipient_id)
        except UpstreamFetchFailure:
            logger.warning(
                "Relationship context unavailable for %s -> %s; using neutral multiplier",
                requester_id,
                recipient_id,
            )
            context = None

        base_range = preferences.gift_preferences.price_range_for(occasion)
        rel_factor = relationship_multiplier(context)
        seasonal_factor = self._seasonal.calculate(occasion, self._clock())
        scale = rel_factor * seasonal_factor

        confidence = BUDGET_CONFIDENCE_FLOOR
        avg_success = preferences.gifting_history.average_success_rate()
        if avg_success is not None:
            confidence += BUDGET_CONFIDENCE_HISTORY_WEIGHT * avg_success
        if context is not None:
            confidence += BUDGET_CONFIDENCE_CLOSENESS_WEIGHT * context.closeness_level / CLOSENESS_MAX

        return BudgetRecommendation(
            min=round_half_up(base_range.min * scale),
            max=round_half_up(base_range.max * scale),
            confidence=round(max(0.0, min(confidence, 1.0)), 2),
            reasoning=BudgetReasoning(
                relationship_factor=rel_factor,
                seasonal_factor=seasonal_factor,
                base_range=base_range,
            ),
        )
