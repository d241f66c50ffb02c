"""Assembly of the intelligence components behind one facade."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional, Union

from autogift.core.intelligence.budget_estimator import DynamicBudgetEstimator
from autogift.core.intelligence.category_predictor import CategoryPredictor
from autogift.core.intelligence.clock import Clock, utcnow
from autogift.core.intelligence.constants import (
    CACHE_BACKEND_DATABASE,
    CACHE_BACKEND_MEMORY,
    CACHE_BACKEND_NONE,
    EngineSettings,
)
from autogift.core.intelligence.intelligence_cache import (
    DatabaseIntelligenceCache,
    InMemoryIntelligenceCache,
    IntelligenceCache,
    NullIntelligenceCache,
)
from autogift.core.intelligence.opportunity_scanner import (
    CancellationToken,
    ContextFactory,
    OpportunityScanner,
)
from autogift.core.intelligence.relationship_analyzer import RelationshipContextAnalyzer
from autogift.core.intelligence.rule_intelligence import RuleIntelligenceService
from autogift.core.intelligence.schemas import (
    BudgetRecommendation,
    GiftOpportunity,
    RelationshipContext,
    SeasonalAdjustment,
    WishlistCompatibility,
)
from autogift.core.intelligence.seasonal import SeasonalAdjustmentCalculator
from autogift.core.intelligence.stores import EngineStores
from autogift.core.intelligence.telemetry import ScanTelemetry, scan_telemetry
from autogift.core.intelligence.timing import PurchaseTimingPlanner
from autogift.core.intelligence.wishlist_compatibility import WishlistCompatibilityAnalyzer


def build_cache(settings: EngineSettings, clock: Clock = utcnow) -> IntelligenceCache:
    if settings.cache_backend == CACHE_BACKEND_NONE:
        return NullIntelligenceCache(clock=clock)
    if settings.cache_backend == CACHE_BACKEND_MEMORY:
        return InMemoryIntelligenceCache(ttl_seconds=settings.cache_ttl_seconds, clock=clock)
    if settings.cache_backend == CACHE_BACKEND_DATABASE:
        return DatabaseIntelligenceCache(ttl_seconds=settings.cache_ttl_seconds, clock=clock)
    raise ValueError(f"unknown cache backend: {settings.cache_backend}")


class IntelligenceEngine:
    def __init__(
        self,
        stores: EngineStores,
        settings: Optional[EngineSettings] = None,
        cache: Optional[IntelligenceCache] = None,
        clock: Clock = utcnow,
        telemetry: Optional[ScanTelemetry] = None,
        context_factory: Optional[ContextFactory] = None,
    ) -> None:
        self.settings = settings or EngineSettings()
        self.stores = stores
        self.cache = cache if cache is not None else build_cache(self.settings, clock)
        self.telemetry = telemetry or scan_telemetry
        self.clock = clock

        self.analyzer = RelationshipContextAnalyzer(
            stores.connections, stores.messages, clock=clock, cache=self.cache
        )
        self.seasonal = SeasonalAdjustmentCalculator()
        self.estimator = DynamicBudgetEstimator(
            stores.profiles, self.analyzer, self.seasonal, clock=clock, cache=self.cache
        )
        self.predictor = CategoryPredictor(stores.profiles, stores.wishlists, cache=self.cache)
        self.timing = PurchaseTimingPlanner(stores.profiles, self.settings)
        self.scanner = OpportunityScanner(
            stores.connections,
            self.estimator,
            self.predictor,
            self.timing,
            settings=self.settings,
            clock=clock,
            telemetry=self.telemetry,
            context_factory=context_factory,
        )
        self.wishlist_compatibility = WishlistCompatibilityAnalyzer(stores.wishlists, self.estimator)
        self.rules = RuleIntelligenceService(
            self.analyzer, stores.profiles, stores.rules, cache=self.cache, clock=clock
        )

    def relationship_context(self, requester_id: int, recipient_id: int) -> Optional[RelationshipContext]:
        return self.analyzer.analyze(requester_id, recipient_id)

    def seasonal_adjustment(
        self, occasion: str, target_date: Optional[Union[date, datetime]] = None
    ) -> SeasonalAdjustment:
        return self.seasonal.describe(occasion, target_date or self.clock())

    def budget(self, requester_id: int, recipient_id: int, occasion: str) -> Optional[BudgetRecommendation]:
        return self.estimator.estimate(requester_id, recipient_id, occasion)

    def categories(self, requester_id: int, recipient_id: int, occasion: str) -> List[str]:
        return self.predictor.predict(requester_id, recipient_id, occasion)

    def is_connected(self, requester_id: int, recipient_id: int) -> bool:
        return self.stores.connections.get_connection(requester_id, recipient_id) is not None

    def purchase_timing(
        self, recipient_id: int, event_date: datetime, strategy: Optional[str] = None
    ) -> datetime:
        return self.timing.plan(recipient_id, event_date, strategy)

    def scan(
        self,
        requester_id: int,
        window_days: Optional[int] = None,
        timing_strategy: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> List[GiftOpportunity]:
        return self.scanner.scan(
            requester_id,
            window_days=window_days,
            timing_strategy=timing_strategy,
            token=token,
        )

    def wishlist_fit(
        self, requester_id: int, recipient_id: int, occasion: str
    ) -> Optional[WishlistCompatibility]:
        return self.wishlist_compatibility.analyze(requester_id, recipient_id, occasion)

    def invalidate(self, requester_id: int) -> int:
        return self.cache.invalidate(requester_id)


def build_engine(app) -> IntelligenceEngine:
    """Engine wired to the SQL stores; scan workers run in their own app context."""
    from autogift.core.intelligence.sql_stores import sql_stores

    settings = EngineSettings.from_mapping(app.config)
    return IntelligenceEngine(
        sql_stores(),
        settings=settings,
        context_factory=app.app_context,
    )
