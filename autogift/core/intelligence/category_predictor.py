"""Gift category prediction from interests, public wishlists and gifting history."""

from __future__ import annotations

import logging
from typing import Callable, Iterable, List, Optional

from pydantic import TypeAdapter

from autogift.core.intelligence.constants import (
    FALLBACK_CATEGORY,
    HISTORY_SUCCESS_THRESHOLD,
    INTEL_CATEGORIES,
    INTEREST_CATEGORY_MAP,
    MAX_RECOMMENDED_CATEGORIES,
)
from autogift.core.intelligence.errors import UpstreamFetchFailure
from autogift.core.intelligence.intelligence_cache import (
    CacheKey,
    IntelligenceCache,
    NullIntelligenceCache,
)
from autogift.core.intelligence.stores import ProfileStore, WishlistStore

logger = logging.getLogger(__name__)

_CATEGORIES_ADAPTER = TypeAdapter(List[str])


def map_interest(interest: str) -> str:
    return INTEREST_CATEGORY_MAP.get(interest.strip().lower(), FALLBACK_CATEGORY)


def merge_categories(*sources: Iterable[str], limit: int = MAX_RECOMMENDED_CATEGORIES) -> List[str]:
    """Ordered union of ``sources`` without duplicates, truncated to ``limit``."""
    merged: List[str] = []
    for source in sources:
        for category in source:
            if category and category not in merged:
                merged.append(category)
    return merged[:limit]


class CategoryPredictor:
    def __init__(
        self,
        profiles: ProfileStore,
        wishlists: WishlistStore,
        cache: Optional[IntelligenceCache] = None,
    ) -> None:
        self._profiles = profiles
        self._wishlists = wishlists
        self._cache = cache or NullIntelligenceCache()

    def predict(self, requester_id: int, recipient_id: int, occasion: str) -> List[str]:
        """Up to five categories; never raises for a missing or failing source."""
        key = CacheKey(requester_id, recipient_id, INTEL_CATEGORIES)
        return self._cache.cached(
            key,
            lambda: self._predict(requester_id, recipient_id),
            _CATEGORIES_ADAPTER,
        )

    def _predict(self, requester_id: int, recipient_id: int) -> List[str]:
        return merge_categories(
            self._safely("interests", lambda: self._interest_categories(recipient_id)),
            self._safely("wishlists", lambda: self._wishlist_categories(recipient_id)),
            self._safely("history", lambda: self._history_categories(requester_id)),
        )

    def _interest_categories(self, recipient_id: int) -> List[str]:
        preferences = self._profiles.get_preferences(recipient_id)
        if preferences is None:
            return []
        return [map_interest(interest) for interest in preferences.interests]

    def _wishlist_categories(self, recipient_id: int) -> List[str]:
        return [
            wishlist.category
            for wishlist in self._wishlists.list_public_wishlists(recipient_id)
            if wishlist.category
        ]

    def _history_categories(self, requester_id: int) -> List[str]:
        preferences = self._profiles.get_preferences(requester_id)
        if preferences is None:
            return []
        return preferences.gifting_history.successful_categories(HISTORY_SUCCESS_THRESHOLD)

    @staticmethod
    def _safely(source: str, load: Callable[[], List[str]]) -> List[str]:
        try:
            return load()
        except UpstreamFetchFailure:
            logger.warning("Category source %s unavailable; treating as empty", source)
            return []
