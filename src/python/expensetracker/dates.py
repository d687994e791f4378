"""Epoch-millisecond date helpers.

Transaction and rate dates are epoch milliseconds. Rates are keyed by the
local calendar day the user sees, so normalization and date keys use the
local timezone.
"""

from __future__ import annotations

import datetime as dt
import time


def now_millis() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def to_local_datetime(millis: int) -> dt.datetime:
    return dt.datetime.fromtimestamp(millis / 1000)


def start_of_day(millis: int) -> int:
    """Normalize a timestamp to local midnight of the same day."""
    midnight = to_local_datetime(millis).replace(hour=0, minute=0, second=0, microsecond=0)
    return int(midnight.timestamp()) * 1000


def millis_from_date(value: dt.date | dt.datetime) -> int:
    """Local midnight (or the given local datetime) as epoch milliseconds."""
    if not isinstance(value, dt.datetime):
        value = dt.datetime.combine(value, dt.time())
    return int(value.timestamp() * 1000)


def date_key(millis: int) -> str:
    """Format a timestamp as a local ``YYYY-MM-DD`` key."""
    return to_local_datetime(millis).strftime("%Y-%m-%d")


def date_from_millis(millis: int) -> dt.date:
    return to_local_datetime(millis).date()
