"""Calendar-driven budget multipliers and season buckets."""

from __future__ import annotations

from datetime import date, datetime
from typing import Union

from autogift.core.intelligence.constants import (
    BIRTHDAY_MULTIPLIER,
    OCCASION_BIRTHDAY,
    SEASONAL_BASE_MULTIPLIER,
    SEASONAL_MONTH_MULTIPLIERS,
)
from autogift.core.intelligence.schemas import SeasonalAdjustment

SEASON_SPRING = "spring"
SEASON_SUMMER = "summer"
SEASON_FALL = "fall"
SEASON_WINTER = "winter"

_SEASON_BY_MONTH = {
    3: SEASON_SPRING,
    4: SEASON_SPRING,
    5: SEASON_SPRING,
    6: SEASON_SUMMER,
    7: SEASON_SUMMER,
    8: SEASON_SUMMER,
    9: SEASON_FALL,
    10: SEASON_FALL,
    11: SEASON_FALL,
}


def season_for(target: Union[date, datetime]) -> str:
    return _SEASON_BY_MONTH.get(target.month, SEASON_WINTER)


class SeasonalAdjustmentCalculator:
    """Pure multiplier lookup; never raises for a valid date."""

    def calculate(self, occasion: str, target_date: Union[date, datetime]) -> float:
        multiplier = SEASONAL_MONTH_MULTIPLIERS.get(target_date.month, SEASONAL_BASE_MULTIPLIER)
        if (occasion or "").lower() == OCCASION_BIRTHDAY:
            multiplier *= BIRTHDAY_MULTIPLIER
        return multiplier

    def describe(self, occasion: str, target_date: Union[date, datetime]) -> SeasonalAdjustment:
        return SeasonalAdjustment(
            occasion=occasion,
            month=target_date.month,
            multiplier=self.calculate(occasion, target_date),
        )
