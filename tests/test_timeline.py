from __future__ import annotations

from datetime import datetime, timedelta, timezone

from backoffice.domain.orders.models import ORDER_STATUSES
from backoffice.domain.orders.timeline import TimelineGenerator

FIXED_NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _generator() -> TimelineGenerator:
    return TimelineGenerator(clock=lambda: FIXED_NOW)


def _states(timeline):
    return [entry.state for entry in timeline]


def test_initial_timeline_has_one_entry_per_status():
    timeline = _generator().generate_initial()

    assert [entry.step for entry in timeline] == list(range(1, len(ORDER_STATUSES) + 1))
    assert _states(timeline) == ["current"] + ["pending"] * 6
    assert timeline[0].title == "Order Created"
    assert timeline[0].date == FIXED_NOW
    assert timeline[0].estimated_date is None


def test_pending_entries_carry_estimated_dates():
    timeline = _generator().generate_initial()

    assert timeline[1].date is None
    assert timeline[1].estimated_date == FIXED_NOW + timedelta(days=1)
    assert timeline[2].estimated_date == FIXED_NOW + timedelta(days=7)
    assert timeline[6].estimated_date == FIXED_NOW + timedelta(days=16)


def test_update_moves_current_marker_forward():
    gen = _generator()
    timeline = gen.update(gen.generate_initial(), "received", performed_by="staff-1")

    assert _states(timeline) == ["completed", "current"] + ["pending"] * 5
    assert timeline[0].performed_by == "staff-1"
    assert timeline[1].performed_by == "staff-1"
    assert timeline[1].date == FIXED_NOW


def test_update_does_not_mutate_input():
    gen = _generator()
    initial = gen.generate_initial()
    gen.update(initial, "received")
    assert _states(initial) == ["current"] + ["pending"] * 6


def test_update_is_idempotent_for_the_same_status():
    gen = _generator()
    once = gen.update(gen.generate_initial(), "received", performed_by="staff-1")
    twice = gen.update(once, "received", performed_by="someone-else")

    assert twice == once
    assert twice[1].performed_by == "staff-1"


def test_terminal_status_completes_every_entry():
    gen = _generator()
    timeline = gen.generate_initial()
    for status in ORDER_STATUSES[1:]:
        timeline = gen.update(timeline, status)

    assert _states(timeline) == ["completed"] * 7
    assert [entry for entry in timeline if entry.state == "current"] == []


def test_at_most_one_current_entry_throughout_the_pipeline():
    gen = _generator()
    timeline = gen.generate_initial()
    for status in ORDER_STATUSES[1:-1]:
        timeline = gen.update(timeline, status)
        assert _states(timeline).count("current") == 1


def test_default_clock_stamps_utc():
    timeline = TimelineGenerator().generate_initial()
    assert timeline[0].date.tzinfo == timezone.utc
