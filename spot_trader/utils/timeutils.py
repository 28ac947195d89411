"""
Timezone and calendar-day utilities.

The session controller restarts a stopped session once a new calendar
day begins.  Which day a moment belongs to depends on the configured
timezone, so all day comparisons go through these helpers.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional, Union
import pandas as pd


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_timezone(ts: Union[pd.Timestamp, datetime], tz_name: str) -> pd.Timestamp:
    """Convert a timestamp to the specified timezone.

    If the timestamp is naive, it is assumed to be in UTC before
    conversion.  If it already has a timezone, it will be converted.
    """
    if not isinstance(ts, pd.Timestamp):
        ts = pd.Timestamp(ts)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return ts.tz_convert(tz_name)


def local_date(ts: Union[pd.Timestamp, datetime], tz_name: str) -> date:
    """Calendar date of `ts` in `tz_name`."""
    return to_timezone(ts, tz_name).date()


def is_new_day(
    prev_ts: Optional[Union[pd.Timestamp, datetime]],
    current_ts: Union[pd.Timestamp, datetime],
    tz_name: str,
) -> bool:
    """Return `True` if `current_ts` belongs to a different day than `prev_ts`.

    Both timestamps are compared in the provided timezone.  If
    `prev_ts` is `None`, it is considered a new day.
    """
    if prev_ts is None:
        return True
    return local_date(prev_ts, tz_name) != local_date(current_ts, tz_name)
