"""Typed records read from stores and produced by the intelligence engine.

Stored preference and history blobs are free-form JSON in the database. These
models give every field a typed default so a missing key never surfaces as an
attribute error further down the pipeline. Legacy key spellings are accepted
on read through ``AliasChoices``.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from autogift.core.intelligence.constants import (
    DEFAULT_PRICE_RANGE,
    MAX_ADVANCE_NOTICE_DAYS,
    MAX_RECOMMENDED_CATEGORIES,
    OCCASION_GENERAL,
    REL_OTHER,
    RELATIONSHIP_TYPES,
)

GIFTING_HISTORY_VERSION = 1

InteractionFrequency = Literal["rare", "occasional", "regular", "frequent", "very_frequent"]


class _Record(BaseModel):
    """Shared configuration: tolerate unknown keys coming from stored blobs."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _swap_inverted_bounds(data: Any) -> Any:
    if isinstance(data, dict):
        low, high = data.get("min"), data.get("max")
        if isinstance(low, (int, float)) and isinstance(high, (int, float)) and low > high:
            return {**data, "min": high, "max": low}
    return data


# ==================== Store records ====================


class SpecialDateRecord(_Record):
    owner_id: int
    date_type: str
    value: str


class ConnectionRecord(_Record):
    id: int
    owner_id: int
    recipient_id: int
    relationship_type: str = REL_OTHER
    status: str = "accepted"
    created_at: datetime
    data_access_permissions: Dict[str, Any] = Field(default_factory=dict)
    special_dates: List[SpecialDateRecord] = Field(default_factory=list)

    @field_validator("relationship_type", mode="before")
    @classmethod
    def _normalize_relationship_type(cls, value):
        normalized = str(value or "").strip().lower()
        return normalized if normalized in RELATIONSHIP_TYPES else REL_OTHER

    @field_validator("data_access_permissions", mode="before")
    @classmethod
    def _coerce_permissions(cls, value):
        return value if isinstance(value, dict) else {}

    @property
    def shares_gift_preferences(self) -> bool:
        return bool(self.data_access_permissions.get("gift_preferences"))


class MessageRecord(_Record):
    sender_id: int
    recipient_id: int
    created_at: datetime


class PriceRange(_Record):
    min: float = Field(default=DEFAULT_PRICE_RANGE["min"], ge=0)
    max: float = Field(default=DEFAULT_PRICE_RANGE["max"], ge=0)

    @model_validator(mode="before")
    @classmethod
    def _order_bounds(cls, data):
        return _swap_inverted_bounds(data)


class GiftTimingPreferences(_Record):
    advance_notice_days: Optional[int] = Field(default=None, ge=0)

    @field_validator("advance_notice_days")
    @classmethod
    def _cap_notice(cls, value: Optional[int]) -> Optional[int]:
        return None if value is None else min(value, MAX_ADVANCE_NOTICE_DAYS)


class GiftPreferences(_Record):
    preferred_price_ranges: Dict[str, PriceRange] = Field(default_factory=dict)
    gift_timing_preferences: GiftTimingPreferences = Field(default_factory=GiftTimingPreferences)

    @field_validator("gift_timing_preferences", mode="before")
    @classmethod
    def _coerce_timing(cls, value):
        return value if isinstance(value, (dict, GiftTimingPreferences)) else {}

    def price_range_for(self, occasion: str) -> PriceRange:
        return self.preferred_price_ranges.get(occasion) or PriceRange()


class CategoryStats(_Record):
    attempts: int = Field(default=0, ge=0, validation_alias=AliasChoices("attempts", "total_attempts"))
    successes: int = Field(default=0, ge=0, validation_alias=AliasChoices("successes", "successful"))
    # Only consulted when no attempt counts were recorded (older profiles).
    recorded_rate: Optional[float] = Field(
        default=None,
        exclude=True,
        validation_alias=AliasChoices("recorded_rate", "success_rate"),
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success_rate(self) -> float:
        if self.attempts > 0:
            return min(self.successes / self.attempts, 1.0)
        if self.recorded_rate is not None:
            return max(0.0, min(float(self.recorded_rate), 1.0))
        return 0.0


class SeasonalPattern(_Record):
    total_gifts: int = 0
    total_budget: float = 0.0
    popular_categories: Dict[str, int] = Field(default_factory=dict)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def avg_budget(self) -> float:
        return self.total_budget / self.total_gifts if self.total_gifts else 0.0


class RecipientTypePreference(_Record):
    gift_count: int = 0
    total_budget: float = 0.0
    preferred_categories: Dict[str, int] = Field(default_factory=dict)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def avg_budget(self) -> float:
        return self.total_budget / self.gift_count if self.gift_count else 0.0


class GiftingHistory(_Record):
    version: int = GIFTING_HISTORY_VERSION
    category_success_rates: Dict[str, CategoryStats] = Field(default_factory=dict)
    seasonal_patterns: Dict[str, SeasonalPattern] = Field(default_factory=dict)
    recipient_type_preferences: Dict[str, RecipientTypePreference] = Field(default_factory=dict)

    def average_success_rate(self) -> Optional[float]:
        """Mean success rate across recorded categories, or None without history."""
        rates = [stats.success_rate for stats in self.category_success_rates.values()]
        if not rates:
            return None
        return sum(rates) / len(rates)

    def successful_categories(self, threshold: float) -> List[str]:
        return [
            category
            for category, stats in self.category_success_rates.items()
            if stats.success_rate > threshold
        ]


class ProfilePreferences(_Record):
    user_id: int
    interests: List[str] = Field(default_factory=list)
    gift_preferences: GiftPreferences = Field(default_factory=GiftPreferences)
    gifting_history: GiftingHistory = Field(default_factory=GiftingHistory)

    @field_validator("interests", mode="before")
    @classmethod
    def _coerce_interests(cls, value):
        if not isinstance(value, (list, tuple)):
            return []
        return [str(item) for item in value if item is not None and str(item).strip()]

    @field_validator("gift_preferences", "gifting_history", mode="before")
    @classmethod
    def _coerce_blob(cls, value):
        return value if isinstance(value, (dict, BaseModel)) else {}


class WishlistItemRecord(_Record):
    name: str
    brand: Optional[str] = None
    price: Optional[float] = None


class WishlistRecord(_Record):
    id: int
    owner_id: int
    category: Optional[str] = None
    is_public: bool = True
    items: List[WishlistItemRecord] = Field(default_factory=list)


class AutoGiftRuleRecord(_Record):
    id: int
    user_id: int
    recipient_id: int
    date_type: str
    is_active: bool = True
    budget_limit: Optional[float] = None
    gift_preferences: Dict[str, Any] = Field(default_factory=dict)
    relationship_context: Dict[str, Any] = Field(default_factory=dict)
    recipient_lifestyle_factors: Dict[str, Any] = Field(default_factory=dict)
    seasonal_adjustment_factors: Dict[str, Any] = Field(default_factory=dict)
    success_metrics: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator(
        "gift_preferences",
        "relationship_context",
        "recipient_lifestyle_factors",
        "seasonal_adjustment_factors",
        "success_metrics",
        mode="before",
    )
    @classmethod
    def _coerce_blob(cls, value):
        return value if isinstance(value, dict) else {}


# ==================== Engine outputs ====================


class RelationshipContext(_Record):
    closeness_level: int = Field(ge=1, le=10)
    relationship_duration_months: int = Field(ge=0)
    interaction_frequency: InteractionFrequency
    special_considerations: List[str] = Field(default_factory=list)

    @field_validator("special_considerations", mode="after")
    @classmethod
    def _dedupe_tags(cls, value: List[str]) -> List[str]:
        return list(dict.fromkeys(value))


class SeasonalAdjustment(_Record):
    occasion: str
    month: int = Field(ge=1, le=12)
    multiplier: float = Field(gt=0)


class SuggestedBudget(_Record):
    min: int = Field(ge=0)
    max: int = Field(ge=0)

    @model_validator(mode="before")
    @classmethod
    def _order_bounds(cls, data):
        return _swap_inverted_bounds(data)


class BudgetReasoning(_Record):
    relationship_factor: float
    seasonal_factor: float
    base_range: PriceRange


class BudgetRecommendation(_Record):
    min: int = Field(ge=0)
    max: int = Field(ge=0)
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: BudgetReasoning

    @model_validator(mode="after")
    def _check_bounds(self) -> "BudgetRecommendation":
        if self.min > self.max:
            raise ValueError("budget min exceeds max")
        return self

    @property
    def budget(self) -> SuggestedBudget:
        return SuggestedBudget(min=self.min, max=self.max)


class GiftOpportunity(_Record):
    event_date: datetime
    event_type: str
    recipient_id: int
    confidence_score: float = Field(ge=0.0, le=1.0)
    suggested_budget: SuggestedBudget
    recommended_categories: List[str] = Field(default_factory=list, max_length=MAX_RECOMMENDED_CATEGORIES)
    optimal_purchase_timing: datetime

    @model_validator(mode="after")
    def _timing_precedes_event(self) -> "GiftOpportunity":
        if self.optimal_purchase_timing >= self.event_date:
            raise ValueError("optimal_purchase_timing must precede event_date")
        return self


class WishlistCompatibility(_Record):
    total_items: int = Field(ge=0)
    compatible_items: int = Field(ge=0)
    recommendations: List[WishlistItemRecord] = Field(default_factory=list)
    compatibility_score: float = Field(ge=0.0, le=1.0)


class RuleIntelligenceSnapshot(_Record):
    relationship_context: Dict[str, Any]
    recipient_lifestyle_factors: Dict[str, Any]
    seasonal_adjustment_factors: Dict[str, Any]
    success_metrics: Dict[str, Any]


# ==================== Request bodies ====================


class RuleCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    recipient_id: int = Field(gt=0)
    date_type: str = Field(min_length=1, max_length=64)
    budget_limit: Optional[float] = Field(default=None, ge=0)
    gift_preferences: Dict[str, Any] = Field(default_factory=dict)


class GiftOutcomeCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    category: str = Field(min_length=1, max_length=128)
    amount: float = Field(ge=0)
    was_successful: bool
    recipient_type: str = Field(default=REL_OTHER, max_length=64)
    gifted_on: Optional[date] = None

    @field_validator("gifted_on", mode="before")
    @classmethod
    def _coerce_date(cls, value):
        if value is None or isinstance(value, date):
            return value
        if isinstance(value, str) and value.strip():
            return date.fromisoformat(value)
        raise ValueError("invalid_date")


# ==================== Query strings ====================


class OpportunityQuery(BaseModel):
    model_config = ConfigDict(extra="ignore")

    window_days: Optional[int] = Field(default=None, ge=1, le=366)
    timing: Optional[Literal["fixed", "recipient_preference"]] = None


class OccasionQuery(BaseModel):
    model_config = ConfigDict(extra="ignore")

    occasion: str = Field(default=OCCASION_GENERAL, min_length=1, max_length=64)


class SeasonalQuery(OccasionQuery):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    target_date: Optional[date] = Field(default=None, alias="date")


class PurchaseTimingQuery(BaseModel):
    model_config = ConfigDict(extra="ignore")

    event_date: date
    strategy: Optional[Literal["fixed", "recipient_preference"]] = None
