"""Auto-gift intelligence engine: closeness, budgets, categories and opportunity scans."""

from autogift.core.intelligence.constants import EngineSettings
from autogift.core.intelligence.engine import IntelligenceEngine, build_cache, build_engine
from autogift.core.intelligence.errors import (
    IntelligenceError,
    MalformedDate,
    NotFound,
    ScanCancelled,
    ScanFailed,
    UpstreamFetchFailure,
)
from autogift.core.intelligence.opportunity_scanner import CancellationToken

__all__ = [
    "CancellationToken",
    "EngineSettings",
    "IntelligenceEngine",
    "IntelligenceError",
    "MalformedDate",
    "NotFound",
    "ScanCancelled",
    "ScanFailed",
    "UpstreamFetchFailure",
    "build_cache",
    "build_engine",
]
