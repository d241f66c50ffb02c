"""Lightweight telemetry counters for opportunity scans."""

from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, List


@dataclass
class ScanTelemetrySnapshot:
    scans: int
    failed_scans: int
    cancelled_scans: int
    opportunities: int
    skipped_dates: int
    skipped_recipients: int
    budget_fallbacks: int
    avg_latency_ms: float
    per_event_type_counts: Dict[str, int]
    recent_scans: List[Dict[str, object]]


class ScanTelemetry:
    """In-memory recorder shared by every scan in the process."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._reset_state()

    def _reset_state(self) -> None:
        self.scans = 0
        self.failed_scans = 0
        self.cancelled_scans = 0
        self.opportunities = 0
        self.skipped_dates = 0
        self.skipped_recipients = 0
        self.budget_fallbacks = 0
        self.total_latency_ms = 0.0
        self.per_event_type_counts: Counter[str] = Counter()
        self.recent_scans = deque(maxlen=50)

    def reset(self) -> None:
        with self._lock:
            self._reset_state()

    def record_skipped_date(self) -> None:
        with self._lock:
            self.skipped_dates += 1

    def record_skipped_recipient(self) -> None:
        with self._lock:
            self.skipped_recipients += 1

    def record_budget_fallback(self) -> None:
        with self._lock:
            self.budget_fallbacks += 1

    def record_scan(self, user_id: int, event_types: List[str], latency_ms: float) -> None:
        with self._lock:
            self.scans += 1
            self.opportunities += len(event_types)
            self.per_event_type_counts.update(event_types)
            self.total_latency_ms += latency_ms
            self.recent_scans.append(
                {
                    "user_id": user_id,
                    "opportunities": len(event_types),
                    "latency_ms": latency_ms,
                    "at": datetime.now(timezone.utc).isoformat(),
                }
            )

    def record_failure(self, cancelled: bool = False) -> None:
        with self._lock:
            if cancelled:
                self.cancelled_scans += 1
            else:
                self.failed_scans += 1

    def snapshot(self) -> ScanTelemetrySnapshot:
        with self._lock:
            avg_latency_ms = self.total_latency_ms / self.scans if self.scans else 0.0
            return ScanTelemetrySnapshot(
                scans=self.scans,
                failed_scans=self.failed_scans,
                cancelled_scans=self.cancelled_scans,
                opportunities=self.opportunities,
                skipped_dates=self.skipped_dates,
                skipped_recipients=self.skipped_recipients,
                budget_fallbacks=self.budget_fallbacks,
                avg_latency_ms=avg_latency_ms,
                per_event_type_counts=dict(self.per_event_type_counts),
                recent_scans=list(self.recent_scans),
            )


scan_telemetry = ScanTelemetry()

__all__ = ["ScanTelemetry", "ScanTelemetrySnapshot", "scan_telemetry"]
