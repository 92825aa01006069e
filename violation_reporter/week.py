from __future__ import annotations

"""Calendar week helpers.

Weeks run from Monday 00:00 to the following Monday 00:00 in a configured
time zone. Boundaries are expressed as epoch milliseconds, matching the
``created_at`` column of the ``violations`` table.

Examples
--------
>>> from datetime import datetime
>>> import pytz
>>> tz = pytz.timezone('Europe/Amsterdam')
>>> w = week_window(tz.localize(datetime(2025, 9, 3, 15, 0)), tz)
>>> w.end - w.start
604800000
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta, tzinfo

import pytz


WEEK_MS = 7 * 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class WeekWindow:
    """Half-open ``[start, end)`` interval in epoch milliseconds."""
    start: int
    end: int

    def contains(self, ms: int) -> bool:
        return self.start <= ms < self.end


def get_timezone(name: str) -> tzinfo:
    """Resolve an IANA zone name.

    Raises
    ------
    ValueError
        If the zone is unknown.
    """
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError as e:
        raise ValueError(f"Unknown time zone: {name}") from e


def to_ms(dt: datetime) -> int:
    """Convert an aware datetime to epoch milliseconds."""
    return int(dt.timestamp() * 1000)


def now_in(tz: tzinfo) -> datetime:
    return datetime.now(pytz.utc).astimezone(tz)


def week_window(now: datetime, tz: tzinfo) -> WeekWindow:
    """Return the calendar week containing ``now``.

    Parameters
    ----------
    now : datetime
        Reference instant. Naive values are taken as UTC.
    tz : tzinfo
        Zone in which the Monday midnight boundary is computed.

    Returns
    -------
    WeekWindow
        Window starting at local Monday 00:00 and spanning exactly seven
        days of elapsed time.
    """
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    local = now.astimezone(tz)
    monday = local.date() - timedelta(days=local.weekday())
    naive_start = datetime.combine(monday, time.min)
    if hasattr(tz, "localize"):
        start = tz.localize(naive_start)
    else:
        start = naive_start.replace(tzinfo=tz)
    start_ms = to_ms(start)
    return WeekWindow(start=start_ms, end=start_ms + WEEK_MS)
