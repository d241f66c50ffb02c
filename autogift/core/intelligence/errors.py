"""Error taxonomy for the intelligence engine.

Only ``ScanFailed`` and ``ScanCancelled`` escape a scan; every other error is
absorbed by the component that owns the fallback.
"""

from __future__ import annotations


class IntelligenceError(Exception):
    """Base class for engine errors."""


class NotFound(IntelligenceError):
    """A looked-up record does not exist."""


class MalformedDate(IntelligenceError, ValueError):
    """A special date value could not be parsed into a calendar date."""

    def __init__(self, value: object, reason: str = "unparseable") -> None:
        super().__init__(f"{reason}: {value!r}")
        self.value = value
        self.reason = reason


class UpstreamFetchFailure(IntelligenceError):
    """A backing store could not be read (connection error, timeout, bad payload)."""

    def __init__(self, store: str, message: str = "") -> None:
        super().__init__(f"{store}: {message}" if message else store)
        self.store = store


class ScanFailed(IntelligenceError):
    """The bulk connection/date load for a scan failed."""

    def __init__(self, user_id: int, cause: BaseException | None = None) -> None:
        super().__init__(f"opportunity scan failed for user {user_id}")
        self.user_id = user_id
        self.cause = cause


class ScanCancelled(IntelligenceError):
    """The scan was cancelled or ran past its deadline; partial results are discarded."""
