"""Relationship closeness inference from connection age, type and message volume."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import TypeAdapter

from autogift.core.intelligence.clock import Clock, as_naive_utc, utcnow
from autogift.core.intelligence.constants import (
    CLOSENESS_AGE_BONUSES,
    CLOSENESS_BASE_BY_RELATIONSHIP,
    CLOSENESS_FREQUENCY_MODIFIERS,
    CLOSENESS_MAX,
    CLOSENESS_MIN,
    DAYS_PER_MONTH,
    FREQ_RARE,
    FREQUENCY_THRESHOLDS,
    INTEL_RELATIONSHIP_CONTEXT,
    RECENT_INTERACTION_DAYS,
    RECENT_MESSAGE_LIMIT,
    REL_FAMILY,
    REL_OTHER,
    TAG_FAMILY_BOND,
    TAG_SHARED_PREFERENCES,
)
from autogift.core.intelligence.intelligence_cache import (
    CacheKey,
    IntelligenceCache,
    NullIntelligenceCache,
)
from autogift.core.intelligence.schemas import ConnectionRecord, RelationshipContext
from autogift.core.intelligence.stores import ConnectionStore, MessageStore

logger = logging.getLogger(__name__)

_CONTEXT_ADAPTER = TypeAdapter(RelationshipContext)


def connection_age_months(created_at: datetime, now: datetime) -> int:
    days = (now - as_naive_utc(created_at)).days
    return max(days // DAYS_PER_MONTH, 0)


def classify_frequency(recent_count: int) -> str:
    for threshold, bucket in FREQUENCY_THRESHOLDS:
        if recent_count > threshold:
            return bucket
    return FREQ_RARE


def closeness_level(relationship_type: str, age_months: int, frequency: str) -> int:
    level = CLOSENESS_BASE_BY_RELATIONSHIP.get(
        relationship_type, CLOSENESS_BASE_BY_RELATIONSHIP[REL_OTHER]
    )
    for months, bonus in CLOSENESS_AGE_BONUSES:
        if age_months > months:
            level += bonus
    level += CLOSENESS_FREQUENCY_MODIFIERS.get(frequency, 0)
    return max(CLOSENESS_MIN, min(CLOSENESS_MAX, level))


class RelationshipContextAnalyzer:
    """Scores how close a requester is to one of their connections."""

    def __init__(
        self,
        connections: ConnectionStore,
        messages: MessageStore,
        clock: Clock = utcnow,
        cache: Optional[IntelligenceCache] = None,
    ) -> None:
        self._connections = connections
        self._messages = messages
        self._clock = clock
        self._cache = cache or NullIntelligenceCache()

    def analyze(self, owner_id: int, recipient_id: int) -> Optional[RelationshipContext]:
        """Return the context, or None when the two users are not connected.

        Store failures propagate as ``UpstreamFetchFailure``.
        """
        key = CacheKey(owner_id, recipient_id, INTEL_RELATIONSHIP_CONTEXT)
        return self._cache.cached(key, lambda: self._analyze(owner_id, recipient_id), _CONTEXT_ADAPTER)

    def _analyze(self, owner_id: int, recipient_id: int) -> Optional[RelationshipContext]:
        connection = self._connections.get_connection(owner_id, recipient_id)
        if connection is None:
            logger.debug("No connection between %s and %s", owner_id, recipient_id)
            return None
        return self.analyze_connection(connection)

    def analyze_connection(self, connection: ConnectionRecord) -> RelationshipContext:
        now = self._clock()
        age_months = connection_age_months(connection.created_at, now)
        frequency = self._interaction_frequency(connection.owner_id, connection.recipient_id, now)

        considerations = []
        if connection.relationship_type == REL_FAMILY:
            considerations.append(TAG_FAMILY_BOND)
        if connection.shares_gift_preferences:
            considerations.append(TAG_SHARED_PREFERENCES)

        return RelationshipContext(
            closeness_level=closeness_level(connection.relationship_type, age_months, frequency),
            relationship_duration_months=age_months,
            interaction_frequency=frequency,
            special_considerations=considerations,
        )

    def _interaction_frequency(self, owner_id: int, recipient_id: int, now: datetime) -> str:
        messages = self._messages.list_recent_messages(owner_id, recipient_id, RECENT_MESSAGE_LIMIT)
        cutoff = now - timedelta(days=RECENT_INTERACTION_DAYS)
        recent = sum(1 for message in messages if as_naive_utc(message.created_at) >= cutoff)
        return classify_frequency(recent)
