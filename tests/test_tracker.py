from datetime import datetime, timedelta

import pytest
import pytz

from violation_reporter.db import StorageError
from violation_reporter.report import REPORT_TITLE
from violation_reporter.tracker import ThresholdWarning, ViolationTracker


AMS = pytz.timezone("Europe/Amsterdam")


class Clock:
    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now


def _line(name: str, uid: str, tag: str, reason: str = "rule break") -> str:
    return f"Player: {name} | UID {uid} | {tag} | {reason}"


def _tracker(store, when=datetime(2025, 9, 3, 12, 0)):
    clock = Clock(AMS.localize(when))
    return ViolationTracker(store, AMS, clock=clock), clock


def test_first_violation_does_not_warn(fake_store):
    tracker, _ = _tracker(fake_store)
    result = tracker.ingest_message(_line("Alice", "111111", "RED"), 1)
    assert len(result.records) == 1
    assert result.inserted == 1
    assert result.warnings == []


def test_second_violation_warns_once_third_does_not(fake_store):
    tracker, _ = _tracker(fake_store)
    tracker.ingest_message(_line("Alice", "111111", "RED"), 1)
    second = tracker.ingest_message(_line("Alice", "111111", "RED"), 2)
    third = tracker.ingest_message(_line("Alice", "111111", "RED"), 3)
    assert second.warnings == [ThresholdWarning(name="Alice", user_id="111111", guild_tag="RED")]
    assert third.warnings == []


def test_warning_fires_mid_batch_only_for_the_crossing_record(fake_store):
    tracker, _ = _tracker(fake_store)
    tracker.ingest_message(_line("Alice", "111111", "RED"), 1)
    text = "\n".join([_line("Alice", "111111", "RED", "a"), _line("Alice", "111111", "RED", "b")])
    result = tracker.ingest_message(text, 2)
    assert result.inserted == 2
    assert len(result.warnings) == 1


def test_reprocessing_a_message_is_idempotent(fake_store):
    tracker, _ = _tracker(fake_store)
    text = _line("Alice", "111111", "RED")
    tracker.ingest_message(text, 42)
    again = tracker.ingest_message(text, 42)
    assert again.inserted == 0
    assert again.warnings == []
    assert len(fake_store.rows) == 1
    assert fake_store.rows[0]["message_line_id"] == "42-0"


def test_duplicate_at_count_two_does_not_warn_again(fake_store):
    tracker, _ = _tracker(fake_store)
    tracker.ingest_message(_line("Alice", "111111", "RED"), 1)
    first = tracker.ingest_message(_line("Alice", "111111", "RED"), 2)
    replay = tracker.ingest_message(_line("Alice", "111111", "RED"), 2)
    assert len(first.warnings) == 1
    assert replay.warnings == []


def test_violations_from_previous_week_do_not_count(fake_store):
    tracker, clock = _tracker(fake_store, when=datetime(2025, 9, 7, 23, 0))
    tracker.ingest_message(_line("Alice", "111111", "RED"), 1)
    clock.now = clock.now + timedelta(hours=2)  # Monday 01:00
    result = tracker.ingest_message(_line("Alice", "111111", "RED"), 2)
    assert result.warnings == []


def test_counts_are_per_user(fake_store):
    tracker, _ = _tracker(fake_store)
    tracker.ingest_message(_line("Alice", "111111", "RED"), 1)
    result = tracker.ingest_message(_line("Bob", "222222", "RED"), 2)
    assert result.warnings == []


def test_message_without_violations(fake_store):
    tracker, _ = _tracker(fake_store)
    result = tracker.ingest_message("just chatting", 1)
    assert result.records == []
    assert result.inserted == 0
    assert fake_store.rows == []


def test_weekly_report_groups_and_orders(fake_store):
    tracker, _ = _tracker(fake_store)
    text = "\n".join(
        [
            _line("Zed", "333333", "RED"),
            _line("Bob", "222222", "BLUE"),
            _line("Alice", "111111", "RED"),
            _line("Alice", "111111", "RED"),
        ]
    )
    tracker.ingest_message(text, 1)
    report = tracker.weekly_report()
    assert report.title == REPORT_TITLE
    assert not report.is_empty
    assert [s.guild_tag for s in report.sections] == ["BLUE", "RED"]
    red = report.sections[1]
    assert [(row.name, row.count) for row in red.lines] == [("Alice", 2), ("Zed", 1)]


def test_weekly_report_only_covers_current_week(fake_store):
    tracker, clock = _tracker(fake_store)
    tracker.ingest_message(_line("Alice", "111111", "RED"), 1)
    clock.now = clock.now + timedelta(days=7)
    report = tracker.weekly_report()
    assert report.is_empty
    assert report.generated_at == clock.now


def test_notify_is_called_as_soon_as_threshold_is_reached(fake_store):
    tracker, _ = _tracker(fake_store)
    tracker.ingest_message(_line("Alice", "111111", "RED"), 1)
    seen = []

    def notify(warning):
        # the crossing row is already stored, the next one is not
        seen.append((warning, len(fake_store.rows)))

    text = "\n".join([_line("Alice", "111111", "RED", "a"), _line("Alice", "111111", "RED", "b")])
    tracker.ingest_message(text, 2, notify=notify)
    assert seen == [(ThresholdWarning(name="Alice", user_id="111111", guild_tag="RED"), 2)]


def test_storage_failure_mid_message_keeps_earlier_warning(fake_store):
    tracker, _ = _tracker(fake_store)
    tracker.ingest_message(_line("Jon", "123456789", "ABC"), 1)
    original = fake_store.record_and_count

    def record_and_count(record, message_line_id, created_at, window):
        if message_line_id == "2-1":
            raise StorageError("connection lost")
        return original(record, message_line_id, created_at, window)

    fake_store.record_and_count = record_and_count
    seen = []
    text = "\n".join([_line("Jon", "123456789", "ABC"), _line("Jon", "123456789", "ABC")])
    with pytest.raises(StorageError):
        tracker.ingest_message(text, 2, notify=seen.append)
    assert [w.name for w in seen] == ["Jon"]
