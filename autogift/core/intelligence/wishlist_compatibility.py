"""How much of a recipient's public wishlist fits the estimated budget."""

from __future__ import annotations

import logging
from typing import Optional

from autogift.core.intelligence.budget_estimator import DynamicBudgetEstimator
from autogift.core.intelligence.constants import MAX_COMPATIBLE_RECOMMENDATIONS, OCCASION_GENERAL
from autogift.core.intelligence.errors import UpstreamFetchFailure
from autogift.core.intelligence.schemas import WishlistCompatibility
from autogift.core.intelligence.stores import WishlistStore

logger = logging.getLogger(__name__)


class WishlistCompatibilityAnalyzer:
    def __init__(self, wishlists: WishlistStore, estimator: DynamicBudgetEstimator) -> None:
        self._wishlists = wishlists
        self._estimator = estimator

    def analyze(
        self, requester_id: int, recipient_id: int, occasion: str = OCCASION_GENERAL
    ) -> Optional[WishlistCompatibility]:
        """None when no budget can be estimated or wishlists cannot be read."""
        recommendation = self._estimator.estimate(requester_id, recipient_id, occasion)
        if recommendation is None:
            return None
        try:
            wishlists = self._wishlists.list_public_wishlists(recipient_id)
        except UpstreamFetchFailure:
            logger.warning("Wishlists unavailable for user %s", recipient_id)
            return None

        items = [item for wishlist in wishlists for item in wishlist.items]
        compatible = [
            item
            for item in items
            if item.price is not None and recommendation.min <= item.price <= recommendation.max
        ]
        return WishlistCompatibility(
            total_items=len(items),
            compatible_items=len(compatible),
            recommendations=compatible[:MAX_COMPATIBLE_RECOMMENDATIONS],
            compatibility_score=round(len(compatible) / max(len(items), 1), 2),
        )
