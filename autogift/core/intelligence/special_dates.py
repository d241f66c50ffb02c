"""Normalisation of stored special dates to their next calendar occurrence.

Two formats are stored:

* recurring ``MM-DD`` values (birthdays, anniversaries) which roll forward to
  the next occurrence strictly after ``now``;
* full ISO dates (``YYYY-MM-DD``, optionally with a time part) which are a
  single concrete event and are returned as-is, even when already past.

Events are midnight naive UTC datetimes.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime

from autogift.core.intelligence.errors import MalformedDate

_RECURRING_RE = re.compile(r"^(\d{1,2})-(\d{1,2})$")
_ISO_DATE_RE = re.compile(
    r"^(\d{4}-\d{2}-\d{2})(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?$"
)

# 02-29 can skip a non-leap century year (2100), so look up to 8 years ahead.
_MAX_YEARS_AHEAD = 8
_LEAP_REFERENCE_YEAR = 2000


def _validate_month_day(raw: str, month: int, day: int) -> None:
    if not 1 <= month <= 12:
        raise MalformedDate(raw, "invalid_month")
    if not 1 <= day <= calendar.monthrange(_LEAP_REFERENCE_YEAR, month)[1]:
        raise MalformedDate(raw, "invalid_day")


def is_recurring(value: str) -> bool:
    return bool(_RECURRING_RE.match((value or "").strip()))


def parse_iso_date(value: str) -> date:
    raw = (value or "").strip()
    match = _ISO_DATE_RE.match(raw)
    if match is None:
        raise MalformedDate(value, "unparseable")
    try:
        return date.fromisoformat(match.group(1))
    except ValueError as exc:
        raise MalformedDate(value, "invalid_date") from exc


def next_occurrence(value: str, now: datetime) -> datetime:
    """Return the event datetime for ``value`` relative to ``now``.

    Raises ``MalformedDate`` for empty, unparseable or impossible dates
    (e.g. ``02-30``).
    """
    raw = (value or "").strip() if isinstance(value, str) else ""
    if not raw:
        raise MalformedDate(value, "empty")

    match = _RECURRING_RE.match(raw)
    if match is None:
        parsed = parse_iso_date(raw)
        return datetime(parsed.year, parsed.month, parsed.day)

    month, day = int(match.group(1)), int(match.group(2))
    _validate_month_day(raw, month, day)
    for offset in range(_MAX_YEARS_AHEAD + 1):
        year = now.year + offset
        if month == 2 and day == 29 and not calendar.isleap(year):
            continue
        candidate = datetime(year, month, day)
        if candidate > now:
            return candidate
    raise MalformedDate(value, "no_occurrence")


def within_window(event_date: datetime, now: datetime, window_end: datetime) -> bool:
    """Window bounds are exclusive on both ends."""
    return now < event_date < window_end
