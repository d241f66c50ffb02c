"""Constants and tunables for auto-gift intelligence."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping

# Relationship types
REL_FAMILY = "family"
REL_CLOSE_FRIEND = "close_friend"
REL_FRIEND = "friend"
REL_COLLEAGUE = "colleague"
REL_OTHER = "other"
RELATIONSHIP_TYPES = (REL_FAMILY, REL_CLOSE_FRIEND, REL_FRIEND, REL_COLLEAGUE, REL_OTHER)

# Interaction frequency buckets
FREQ_RARE = "rare"
FREQ_OCCASIONAL = "occasional"
FREQ_REGULAR = "regular"
FREQ_FREQUENT = "frequent"
FREQ_VERY_FREQUENT = "very_frequent"

# Occasions with dedicated scoring
OCCASION_BIRTHDAY = "birthday"
OCCASION_ANNIVERSARY = "anniversary"
OCCASION_GENERAL = "general"

# Special consideration tags
TAG_FAMILY_BOND = "family_bond"
TAG_SHARED_PREFERENCES = "shared_preferences"

# Closeness scoring (1-10 scale)
CLOSENESS_MIN = 1
CLOSENESS_MAX = 10
CLOSENESS_BASE_BY_RELATIONSHIP = {
    REL_FAMILY: 9,
    REL_CLOSE_FRIEND: 8,
    REL_FRIEND: 6,
    REL_COLLEAGUE: 4,
    REL_OTHER: 3,
}
# (age threshold in months, bonus) applied cumulatively
CLOSENESS_AGE_BONUSES = ((24, 1), (60, 1))
CLOSENESS_FREQUENCY_MODIFIERS = {
    FREQ_VERY_FREQUENT: 2,
    FREQ_FREQUENT: 1,
    FREQ_REGULAR: 0,
    FREQ_OCCASIONAL: -1,
    FREQ_RARE: -2,
}

# Interaction frequency classification
RECENT_MESSAGE_LIMIT = 20
RECENT_INTERACTION_DAYS = 30
# (strictly-greater-than threshold, bucket), checked in order
FREQUENCY_THRESHOLDS = (
    (10, FREQ_VERY_FREQUENT),
    (5, FREQ_FREQUENT),
    (2, FREQ_REGULAR),
    (0, FREQ_OCCASIONAL),
)
DAYS_PER_MONTH = 30

# Seasonal multipliers keyed by calendar month
SEASONAL_BASE_MULTIPLIER = 1.0
SEASONAL_MONTH_MULTIPLIERS = {
    11: 1.2,  # November
    12: 1.3,  # December
}
BIRTHDAY_MULTIPLIER = 1.1

# Budgeting
DEFAULT_PRICE_RANGE: Dict[str, int] = {"min": 25, "max": 100}
RELATIONSHIP_MULTIPLIER_SCALE = 1.5
RELATIONSHIP_MULTIPLIER_OFFSET = 0.5
NEUTRAL_MULTIPLIER = 1.0
BUDGET_CONFIDENCE_FLOOR = 0.5
BUDGET_CONFIDENCE_HISTORY_WEIGHT = 0.3
BUDGET_CONFIDENCE_CLOSENESS_WEIGHT = 0.2

# Category prediction
MAX_RECOMMENDED_CATEGORIES = 5
HISTORY_SUCCESS_THRESHOLD = 0.7
FALLBACK_CATEGORY = "General"
INTEREST_CATEGORY_MAP = {
    "technology": "Electronics",
    "books": "Books & Media",
    "music": "Entertainment",
    "sports": "Sports & Outdoors",
    "cooking": "Home & Kitchen",
    "fashion": "Clothing & Accessories",
    "travel": "Travel & Experience",
    "art": "Arts & Crafts",
    "gaming": "Gaming",
    "fitness": "Health & Fitness",
}

# Opportunity confidence
OPPORTUNITY_BASE_CONFIDENCE = 0.7
OPPORTUNITY_RELATIONSHIP_BOOSTS = {
    REL_FAMILY: 0.2,
    REL_CLOSE_FRIEND: 0.15,
}
OPPORTUNITY_OCCASION_BOOSTS = {
    OCCASION_BIRTHDAY: 0.1,
    OCCASION_ANNIVERSARY: 0.05,
}
# Below this the approval UI labels an opportunity as "estimated"
ESTIMATED_CONFIDENCE_THRESHOLD = 0.6

# Purchase timing strategies
TIMING_FIXED = "fixed"
TIMING_RECIPIENT_PREFERENCE = "recipient_preference"
TIMING_STRATEGIES = (TIMING_FIXED, TIMING_RECIPIENT_PREFERENCE)
# Stored advance-notice preferences above this are clamped
MAX_ADVANCE_NOTICE_DAYS = 365

# Cache intelligence types
INTEL_RELATIONSHIP_CONTEXT = "relationship_context"
INTEL_BUDGET = "budget_recommendation"
INTEL_CATEGORIES = "category_prediction"

# Cache backends
CACHE_BACKEND_NONE = "none"
CACHE_BACKEND_MEMORY = "memory"
CACHE_BACKEND_DATABASE = "database"

# Defaults written onto auto-gifting rules when no connection is found
NEUTRAL_RELATIONSHIP_CONTEXT: Dict[str, Any] = {
    "closeness_level": 5,
    "relationship_duration_months": 12,
    "interaction_frequency": FREQ_REGULAR,
    "special_considerations": [],
}
DEFAULT_LIFESTYLE_FACTORS: Dict[str, Any] = {
    "life_stage": "adult",
    "current_situation": "stable",
    "interests_evolution": [],
    "lifestyle_changes": [],
}
DEFAULT_SEASONAL_ADJUSTMENT_FACTORS: Dict[str, Any] = {
    "holiday_multiplier": SEASONAL_MONTH_MULTIPLIERS[11],
    "birthday_month_boost": BIRTHDAY_MULTIPLIER,
    "seasonal_preferences": {},
    "timing_optimizations": {},
}
DEFAULT_SUCCESS_METRICS: Dict[str, Any] = {
    "past_gift_success_rate": 0,
    "recipient_satisfaction_score": 0,
    "budget_efficiency": 0,
    "timing_accuracy": 0,
}

# Wishlist compatibility
MAX_COMPATIBLE_RECOMMENDATIONS = 5


@dataclass(frozen=True)
class EngineSettings:
    """Injected engine tunables; built from Flask config in the app factory."""

    scan_window_days: int = 90
    purchase_lead_days: int = 5
    advance_notice_default_days: int = 3
    timing_strategy: str = TIMING_FIXED
    scan_max_workers: int = 8
    recipient_timeout_seconds: float = 10.0
    scan_timeout_seconds: float = 60.0
    cache_backend: str = CACHE_BACKEND_MEMORY
    cache_ttl_seconds: int = 300

    def __post_init__(self) -> None:
        if self.scan_window_days < 1:
            raise ValueError("scan_window_days must be >= 1")
        if self.purchase_lead_days < 1 or self.advance_notice_default_days < 1:
            raise ValueError("purchase timing offsets must be >= 1 day")
        if self.timing_strategy not in TIMING_STRATEGIES:
            raise ValueError(f"unknown timing strategy: {self.timing_strategy}")
        if self.scan_max_workers < 1:
            raise ValueError("scan_max_workers must be >= 1")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "EngineSettings":
        return cls(
            scan_window_days=int(config.get("AUTOGIFT_SCAN_WINDOW_DAYS", 90)),
            purchase_lead_days=int(config.get("AUTOGIFT_PURCHASE_LEAD_DAYS", 5)),
            advance_notice_default_days=int(config.get("AUTOGIFT_ADVANCE_NOTICE_DEFAULT_DAYS", 3)),
            timing_strategy=str(config.get("AUTOGIFT_TIMING_STRATEGY", TIMING_FIXED)),
            scan_max_workers=int(config.get("AUTOGIFT_SCAN_MAX_WORKERS", 8)),
            recipient_timeout_seconds=float(config.get("AUTOGIFT_RECIPIENT_TIMEOUT_SECONDS", 10)),
            scan_timeout_seconds=float(config.get("AUTOGIFT_SCAN_TIMEOUT_SECONDS", 60)),
            cache_backend=str(config.get("AUTOGIFT_CACHE_BACKEND", CACHE_BACKEND_MEMORY)).lower(),
            cache_ttl_seconds=int(config.get("AUTOGIFT_CACHE_TTL_SECONDS", 300)),
        )
