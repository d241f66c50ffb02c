"""Upcoming gift opportunity scan.

One bulk load of accepted connections (with each connected user's special
dates) is followed by per-recipient enrichment: budget, categories, confidence
and purchase timing. Enrichment fans out over a bounded thread pool; with a
single worker it runs inline on the calling thread.

Failure policy:

* bulk load failure -> ``ScanFailed``;
* malformed or out-of-window dates -> skipped;
* enrichment timeout or any other per-recipient error -> that recipient is
  skipped;
* cancellation or scan deadline -> ``ScanCancelled``, partial results dropped.

A timed-out worker cannot be interrupted mid-read. It keeps running in its own
app context until its current store call returns, then sees the cancelled
worker token before the next enrichment step and stops.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, ContextManager, List, Optional, Tuple

from autogift.core.intelligence.budget_estimator import DynamicBudgetEstimator, default_budget
from autogift.core.intelligence.category_predictor import CategoryPredictor
from autogift.core.intelligence.clock import Clock, utcnow
from autogift.core.intelligence.constants import (
    OPPORTUNITY_BASE_CONFIDENCE,
    OPPORTUNITY_OCCASION_BOOSTS,
    OPPORTUNITY_RELATIONSHIP_BOOSTS,
    TIMING_STRATEGIES,
    EngineSettings,
)
from autogift.core.intelligence.errors import (
    MalformedDate,
    ScanCancelled,
    ScanFailed,
    UpstreamFetchFailure,
)
from autogift.core.intelligence.schemas import ConnectionRecord, GiftOpportunity
from autogift.core.intelligence.special_dates import next_occurrence, within_window
from autogift.core.intelligence.stores import ConnectionStore
from autogift.core.intelligence.telemetry import ScanTelemetry, scan_telemetry
from autogift.core.intelligence.timing import PurchaseTimingPlanner

logger = logging.getLogger(__name__)

ContextFactory = Callable[[], ContextManager]

_POLL_INTERVAL_SECONDS = 0.05


class CancellationToken:
    """Explicit cancel flag plus an optional monotonic deadline."""

    def __init__(self, timeout_seconds: Optional[float] = None) -> None:
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout_seconds if timeout_seconds else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and time.monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise ScanCancelled("opportunity scan cancelled")


@dataclass
class RecipientCandidates:
    connection: ConnectionRecord
    events: List[Tuple[datetime, str]] = field(default_factory=list)


def opportunity_confidence(relationship_type: str, event_type: str) -> float:
    score = (
        OPPORTUNITY_BASE_CONFIDENCE
        + OPPORTUNITY_RELATIONSHIP_BOOSTS.get(relationship_type, 0.0)
        + OPPORTUNITY_OCCASION_BOOSTS.get((event_type or "").lower(), 0.0)
    )
    return round(min(score, 1.0), 2)


class OpportunityScanner:
    def __init__(
        self,
        connections: ConnectionStore,
        estimator: DynamicBudgetEstimator,
        predictor: CategoryPredictor,
        timing: PurchaseTimingPlanner,
        settings: Optional[EngineSettings] = None,
        clock: Clock = utcnow,
        telemetry: Optional[ScanTelemetry] = None,
        context_factory: Optional[ContextFactory] = None,
    ) -> None:
        self._connections = connections
        self._estimator = estimator
        self._predictor = predictor
        self._timing = timing
        self._settings = settings or EngineSettings()
        self._clock = clock
        self._telemetry = telemetry or scan_telemetry
        self._context_factory = context_factory

    def scan(
        self,
        requester_id: int,
        window_days: Optional[int] = None,
        timing_strategy: Optional[str] = None,
        token: Optional[CancellationToken] = None,
    ) -> List[GiftOpportunity]:
        """Return opportunities inside the window, ascending by event date."""
        if window_days is None:
            window_days = self._settings.scan_window_days
        if window_days < 1:
            raise ValueError("window_days must be >= 1")
        if timing_strategy is not None and timing_strategy not in TIMING_STRATEGIES:
            raise ValueError(f"unknown timing strategy: {timing_strategy}")
        token = token or CancellationToken(self._settings.scan_timeout_seconds)
        started = time.perf_counter()
        try:
            opportunities = self._scan(requester_id, window_days, timing_strategy, token)
        except ScanCancelled:
            self._telemetry.record_failure(cancelled=True)
            logger.info("Opportunity scan for user %s cancelled", requester_id)
            raise
        except ScanFailed:
            self._telemetry.record_failure()
            raise

        latency_ms = (time.perf_counter() - started) * 1000
        self._telemetry.record_scan(
            requester_id, [opportunity.event_type for opportunity in opportunities], latency_ms
        )
        logger.info(
            "Opportunity scan for user %s: %d opportunities in %.1fms",
            requester_id,
            len(opportunities),
            latency_ms,
        )
        return opportunities

    def collect_candidates(
        self, connections: List[ConnectionRecord], now: datetime, window_end: datetime
    ) -> List[RecipientCandidates]:
        groups: List[RecipientCandidates] = []
        for connection in connections:
            group = RecipientCandidates(connection=connection)
            for special_date in connection.special_dates:
                try:
                    event_date = next_occurrence(special_date.value, now)
                except MalformedDate as exc:
                    self._telemetry.record_skipped_date()
                    logger.debug(
                        "Skipping special date %s for user %s: %s",
                        special_date.date_type,
                        special_date.owner_id,
                        exc,
                    )
                    continue
                if within_window(event_date, now, window_end):
                    group.events.append((event_date, special_date.date_type))
            if group.events:
                groups.append(group)
        return groups

    def _scan(
        self,
        requester_id: int,
        window_days: int,
        timing_strategy: Optional[str],
        token: CancellationToken,
    ) -> List[GiftOpportunity]:
        token.raise_if_cancelled()
        now = self._clock()
        window_end = now + timedelta(days=window_days)
        try:
            connections = self._connections.list_accepted_connections(requester_id)
        except UpstreamFetchFailure as exc:
            logger.error("Connection load failed for user %s: %s", requester_id, exc)
            raise ScanFailed(requester_id, exc) from exc

        groups = self.collect_candidates(connections, now, window_end)
        if not groups:
            return []

        if self._settings.scan_max_workers == 1 or len(groups) == 1:
            results = self._enrich_inline(requester_id, groups, timing_strategy, token)
        else:
            results = self._enrich_concurrently(requester_id, groups, timing_strategy, token)
        token.raise_if_cancelled()
        return sorted(results, key=lambda o: (o.event_date, o.recipient_id, o.event_type))

    def _enrich_inline(
        self,
        requester_id: int,
        groups: List[RecipientCandidates],
        timing_strategy: Optional[str],
        token: CancellationToken,
    ) -> List[GiftOpportunity]:
        results: List[GiftOpportunity] = []
        for group in groups:
            token.raise_if_cancelled()
            try:
                results.extend(self._enrich_recipient(requester_id, group, timing_strategy, token))
            except ScanCancelled:
                raise
            except UpstreamFetchFailure as exc:
                self._skip_recipient(group, exc)
            except Exception as exc:
                self._skip_recipient(group, exc, unexpected=True)
        return results

    def _enrich_concurrently(
        self,
        requester_id: int,
        groups: List[RecipientCandidates],
        timing_strategy: Optional[str],
        token: CancellationToken,
    ) -> List[GiftOpportunity]:
        results: List[GiftOpportunity] = []
        executor = ThreadPoolExecutor(
            max_workers=min(self._settings.scan_max_workers, len(groups)),
            thread_name_prefix="autogift-scan",
        )
        # Workers of an abandoned scan observe this token and stop early.
        worker_token = _LinkedToken(token)
        try:
            futures = [
                (
                    group,
                    executor.submit(
                        self._in_context,
                        self._enrich_recipient,
                        requester_id,
                        group,
                        timing_strategy,
                        worker_token,
                    ),
                )
                for group in groups
            ]
            for group, future in futures:
                try:
                    results.extend(self._await(future, token))
                except FutureTimeout:
                    future.cancel()
                    self._skip_recipient(group, "timed out")
                except ScanCancelled:
                    raise
                except UpstreamFetchFailure as exc:
                    self._skip_recipient(group, exc)
                except Exception as exc:
                    self._skip_recipient(group, exc, unexpected=True)
        finally:
            worker_token.cancel()
            executor.shutdown(wait=False, cancel_futures=True)
        return results

    def _await(self, future: Future, token: CancellationToken) -> List[GiftOpportunity]:
        deadline = time.monotonic() + self._settings.recipient_timeout_seconds
        while True:
            token.raise_if_cancelled()
            wait_for = min(_POLL_INTERVAL_SECONDS, deadline - time.monotonic())
            if wait_for <= 0:
                raise FutureTimeout()
            try:
                return future.result(timeout=wait_for)
            except FutureTimeout:
                continue

    def _in_context(self, fn, *args):
        context = self._context_factory() if self._context_factory else nullcontext()
        with context:
            return fn(*args)

    def _enrich_recipient(
        self,
        requester_id: int,
        group: RecipientCandidates,
        timing_strategy: Optional[str],
        token: CancellationToken,
    ) -> List[GiftOpportunity]:
        connection = group.connection
        recipient_id = connection.recipient_id
        opportunities = []
        for event_date, event_type in group.events:
            token.raise_if_cancelled()
            recommendation = self._estimator.estimate(requester_id, recipient_id, event_type)
            if recommendation is None:
                self._telemetry.record_budget_fallback()
                budget = default_budget()
            else:
                budget = recommendation.budget
            token.raise_if_cancelled()
            categories = self._predictor.predict(requester_id, recipient_id, event_type)
            token.raise_if_cancelled()
            opportunities.append(
                GiftOpportunity(
                    event_date=event_date,
                    event_type=event_type,
                    recipient_id=recipient_id,
                    confidence_score=opportunity_confidence(connection.relationship_type, event_type),
                    suggested_budget=budget,
                    recommended_categories=categories,
                    optimal_purchase_timing=self._timing.plan(recipient_id, event_date, timing_strategy),
                )
            )
        return opportunities

    def _skip_recipient(self, group: RecipientCandidates, reason, unexpected: bool = False) -> None:
        self._telemetry.record_skipped_recipient()
        logger.warning(
            "Skipping recipient %s in opportunity scan: %s",
            group.connection.recipient_id,
            reason,
            exc_info=unexpected,
        )


class _LinkedToken(CancellationToken):
    """Cancelled when either its own flag or the parent token is."""

    def __init__(self, parent: CancellationToken) -> None:
        super().__init__()
        self._parent = parent

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self._parent.cancelled
