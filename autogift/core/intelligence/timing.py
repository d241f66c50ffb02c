"""Optimal purchase timing.

Two strategies are kept side by side and can be invoked separately:

* ``fixed``: a constant lead time before the event (``purchase_lead_days``);
* ``recipient_preference``: the recipient's ``advance_notice_days`` timing
  preference, falling back to ``advance_notice_default_days``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from autogift.core.intelligence.constants import (
    MAX_ADVANCE_NOTICE_DAYS,
    TIMING_RECIPIENT_PREFERENCE,
    TIMING_STRATEGIES,
    EngineSettings,
)
from autogift.core.intelligence.errors import UpstreamFetchFailure
from autogift.core.intelligence.stores import ProfileStore

logger = logging.getLogger(__name__)

MIN_LEAD_DAYS = 1


class PurchaseTimingPlanner:
    def __init__(self, profiles: ProfileStore, settings: Optional[EngineSettings] = None) -> None:
        self._profiles = profiles
        self._settings = settings or EngineSettings()

    def fixed_offset(self, event_date: datetime) -> datetime:
        return event_date - timedelta(days=self._settings.purchase_lead_days)

    def advance_notice_days(self, recipient_id: int) -> int:
        days = self._settings.advance_notice_default_days
        try:
            preferences = self._profiles.get_preferences(recipient_id)
        except UpstreamFetchFailure:
            logger.warning("Timing preferences unavailable for user %s; using default", recipient_id)
            preferences = None
        if preferences is not None:
            preferred = preferences.gift_preferences.gift_timing_preferences.advance_notice_days
            if preferred is not None:
                days = preferred
        return min(max(days, MIN_LEAD_DAYS), MAX_ADVANCE_NOTICE_DAYS)

    def recipient_preference(self, recipient_id: int, event_date: datetime) -> datetime:
        days = self.advance_notice_days(recipient_id)
        try:
            return event_date - timedelta(days=days)
        except OverflowError:
            logger.warning(
                "Advance notice of %s days before %s out of range for user %s; using default",
                days,
                event_date,
                recipient_id,
            )
            return event_date - timedelta(days=self._settings.advance_notice_default_days)

    def plan(self, recipient_id: int, event_date: datetime, strategy: Optional[str] = None) -> datetime:
        strategy = strategy or self._settings.timing_strategy
        if strategy not in TIMING_STRATEGIES:
            raise ValueError(f"unknown timing strategy: {strategy}")
        if strategy == TIMING_RECIPIENT_PREFERENCE:
            return self.recipient_preference(recipient_id, event_date)
        return self.fixed_offset(event_date)

