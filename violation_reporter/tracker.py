from __future__ import annotations

"""Violation tracking: ingest log messages and build weekly reports.

``ViolationTracker`` ties the parser, the store and the week window
together. It holds no state of its own apart from the store it was given,
so every message is processed independently.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Callable, Optional

from .db import ViolationStore
from .parser import ViolationRecord, message_line_id, parse_violations
from .report import WeeklyReport, build_report
from .week import now_in, to_ms, week_window


logger = logging.getLogger(__name__)

# A warning fires only when the weekly count becomes exactly this value.
THRESHOLD_COUNT = 2


@dataclass(frozen=True)
class ThresholdWarning:
    """A player just reached the weekly threshold."""
    name: str
    user_id: str
    guild_tag: str


@dataclass
class IngestResult:
    """Outcome of processing one log message.

    Attributes
    ----------
    records : list of ViolationRecord
        Records parsed from the message, in line order.
    inserted : int
        Number of records that created new rows.
    warnings : list of ThresholdWarning
        Threshold crossings caused by this message.
    """
    records: list[ViolationRecord] = field(default_factory=list)
    inserted: int = 0
    warnings: list[ThresholdWarning] = field(default_factory=list)


class ViolationTracker:
    """Record violations and summarize them per calendar week.

    Parameters
    ----------
    store : ViolationStore
        Persistence backend.
    tz : tzinfo
        Zone defining week boundaries.
    clock : callable, optional
        Returns the current aware datetime; defaults to the wall clock.
    """

    def __init__(self, store: ViolationStore, tz: tzinfo, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self.tz = tz
        self._clock = clock or (lambda: now_in(tz))

    def ingest_message(
        self,
        content: str,
        message_id: int | str,
        notify: Optional[Callable[[ThresholdWarning], object]] = None,
    ) -> IngestResult:
        """Parse a message and store each violation it contains.

        Parameters
        ----------
        content : str
            Message text, possibly spanning several lines.
        message_id : int or str
            Source message identifier, combined with each record's index
            to form its ``message_line_id``.
        notify : callable, optional
            Called with each ``ThresholdWarning`` as soon as the record that
            caused it is committed, before the next record is stored.

        Returns
        -------
        IngestResult
            Parsed records, inserted count and threshold warnings.

        Raises
        ------
        StorageError
            If the database fails; records stored before the failure stay
            stored and their warnings have already been passed to ``notify``.
        """
        result = IngestResult(records=parse_violations(content))
        for i, rec in enumerate(result.records):
            now = self._clock()
            line_id = message_line_id(message_id, i)
            inserted, count = self.store.record_and_count(rec, line_id, to_ms(now), week_window(now, self.tz))
            if not inserted:
                logger.debug("Ignoring duplicate violation %s", line_id)
                continue
            result.inserted += 1
            if count == THRESHOLD_COUNT:
                logger.info("User %s (%s) reached %d violations this week", rec.user_id, rec.name, count)
                warning = ThresholdWarning(name=rec.name, user_id=rec.user_id, guild_tag=rec.guild_tag)
                result.warnings.append(warning)
                if notify is not None:
                    notify(warning)
        if result.records:
            logger.info(
                "Message %s: parsed %d violation(s), stored %d",
                message_id,
                len(result.records),
                result.inserted,
            )
        return result

    def weekly_report(self, now: Optional[datetime] = None) -> WeeklyReport:
        """Build the report for the week containing ``now`` (default: the current instant)."""
        now = now or self._clock()
        window = week_window(now, self.tz)
        rows = self.store.aggregate_in_window(window)
        return build_report(rows, generated_at=now, window=window)
