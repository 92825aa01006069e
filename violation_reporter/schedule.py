from __future__ import annotations

"""Cron-style schedule for the weekly report.

Supports the common five-field syntax (minute, hour, day of month, month,
day of week) with ``*``, numbers, ranges, steps and comma lists. Day of
week accepts ``0``-``7`` where both ``0`` and ``7`` mean Sunday.

Examples
--------
>>> from datetime import datetime
>>> s = CronSchedule.parse('0 9 * * 1')
>>> s.matches(datetime(2025, 9, 1, 9, 0))
True
>>> s.matches(datetime(2025, 9, 2, 9, 0))
False
"""

from dataclasses import dataclass
from datetime import datetime, tzinfo
from typing import Optional


# (low, high) bounds per field
_BOUNDS = [(0, 59), (0, 23), (1, 31), (1, 12), (0, 7)]


def _parse_field(text: str, low: int, high: int) -> frozenset[int]:
    values: set[int] = set()
    for part in text.split(","):
        if not part:
            raise ValueError(f"Empty cron field element in {text!r}")
        rng, _, step_text = part.partition("/")
        step = 1
        if step_text:
            if not step_text.isdigit() or int(step_text) == 0:
                raise ValueError(f"Invalid cron step {step_text!r}")
            step = int(step_text)
        if rng == "*":
            start, end = low, high
        elif "-" in rng:
            a, _, b = rng.partition("-")
            if not (a.isdigit() and b.isdigit()):
                raise ValueError(f"Invalid cron range {rng!r}")
            start, end = int(a), int(b)
        elif rng.isdigit():
            start = int(rng)
            end = high if step_text else start
        else:
            raise ValueError(f"Invalid cron value {rng!r}")
        if start < low or end > high or start > end:
            raise ValueError(f"Cron value {rng!r} out of range {low}-{high}")
        values.update(range(start, end + 1, step))
    return frozenset(values)


@dataclass(frozen=True)
class CronSchedule:
    """A parsed five-field cron expression."""
    expression: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]
    day_restricted: bool
    weekday_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> "CronSchedule":
        """Parse ``expression``.

        Raises
        ------
        ValueError
            If the expression does not have five valid fields.
        """
        fields = expression.split()
        if len(fields) != 5:
            raise ValueError(f"Cron expression must have 5 fields: {expression!r}")
        minutes, hours, days, months, weekdays = (
            _parse_field(f, low, high) for f, (low, high) in zip(fields, _BOUNDS)
        )
        # 7 is an alias for Sunday
        weekdays = frozenset(0 if d == 7 else d for d in weekdays)
        return cls(
            expression=expression,
            minutes=minutes,
            hours=hours,
            days=days,
            months=months,
            weekdays=weekdays,
            day_restricted=not fields[2].startswith("*"),
            weekday_restricted=not fields[4].startswith("*"),
        )

    def matches(self, dt: datetime) -> bool:
        """Whether the minute of local datetime ``dt`` is scheduled."""
        if dt.minute not in self.minutes or dt.hour not in self.hours or dt.month not in self.months:
            return False
        # cron numbers Sunday as 0, Python as 6
        day_ok = dt.day in self.days
        weekday_ok = (dt.weekday() + 1) % 7 in self.weekdays
        if self.day_restricted and self.weekday_restricted:
            return day_ok or weekday_ok
        return day_ok and weekday_ok


class ReportTrigger:
    """Fire at most once for each scheduled minute.

    Parameters
    ----------
    schedule : CronSchedule
        When to fire.
    tz : tzinfo
        Zone in which ``schedule`` is interpreted.
    """

    def __init__(self, schedule: CronSchedule, tz: tzinfo):
        self.schedule = schedule
        self.tz = tz
        self._last_fired: Optional[datetime] = None

    def should_fire(self, now: datetime) -> bool:
        local = now.astimezone(self.tz).replace(second=0, microsecond=0)
        if local == self._last_fired or not self.schedule.matches(local):
            return False
        self._last_fired = local
        return True
