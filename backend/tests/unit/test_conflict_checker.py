from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from app.services.conflict_checker import (
    conflict_lookup_range,
    exceeds_daily_quota,
    filter_slots,
    has_buffer_conflict,
    is_available,
    overlaps,
)
from app.services.slot_generator import Slot

pytestmark = pytest.mark.unit


def _at(hour: int, minute: int = 0, day: int = 13) -> datetime:
    return datetime(2025, 1, day, hour, minute, tzinfo=timezone.utc)


def _event_type(before: int = 0, after: int = 0, quota=None, event_type_id: int = 1):
    return SimpleNamespace(
        id=event_type_id,
        buffer_before_minutes=before,
        buffer_after_minutes=after,
        max_bookings_per_day=quota,
    )


def _booking(start: datetime, minutes: int = 30, status: str = "confirmed", **kw):
    return SimpleNamespace(
        id=kw.get("id", "b-1"),
        event_type_id=kw.get("event_type_id", 1),
        status=status,
        start_time=start,
        end_time=start + timedelta(minutes=minutes),
    )


def _slot(start: datetime, minutes: int = 30) -> Slot:
    end = start + timedelta(minutes=minutes)
    return Slot(start_utc=start, end_utc=end, start_local=start, end_local=end)


def test_touching_windows_do_not_overlap() -> None:
    assert not overlaps(_at(9), _at(10), _at(10), _at(11))
    assert overlaps(_at(9), _at(10, 1), _at(10), _at(11))


def test_buffer_before_rejects_five_minutes_accepts_ten() -> None:
    event_type = _event_type(before=10)
    existing = [_booking(_at(10))]  # 10:00-10:30

    assert has_buffer_conflict(event_type, _at(10, 35), _at(11, 5), existing)
    assert not has_buffer_conflict(event_type, _at(10, 40), _at(11, 10), existing)


def test_buffer_after_protects_the_following_booking() -> None:
    event_type = _event_type(after=10)
    existing = [_booking(_at(10, 5))]

    assert has_buffer_conflict(event_type, _at(9, 30), _at(10), existing)
    assert not has_buffer_conflict(event_type, _at(9, 25), _at(9, 55), existing)


def test_cancelled_excluded_and_foreign_bookings_are_ignored() -> None:
    event_type = _event_type()
    bookings = [
        _booking(_at(10), status="cancelled", id="cancelled"),
        _booking(_at(10), id="self"),
        _booking(_at(10), id="other-type", event_type_id=2),
    ]

    assert not has_buffer_conflict(event_type, _at(10), _at(10, 30), bookings, "self")
    assert has_buffer_conflict(event_type, _at(10), _at(10, 30), bookings)


def test_rescheduled_bookings_still_block() -> None:
    event_type = _event_type()
    bookings = [_booking(_at(10), status="rescheduled")]
    assert not is_available(event_type, _at(10, 15), _at(10, 45), bookings)


def test_daily_quota_counts_the_utc_day() -> None:
    event_type = _event_type(quota=1)
    bookings = [_booking(_at(9))]

    assert exceeds_daily_quota(event_type, _at(15), bookings)
    assert not exceeds_daily_quota(event_type, _at(15, day=14), bookings)
    assert not exceeds_daily_quota(event_type, _at(15), bookings, exclude_id="b-1")
    assert not exceeds_daily_quota(_event_type(quota=None), _at(15), bookings)


def test_daily_quota_counts_rescheduled_but_not_cancelled_bookings() -> None:
    event_type = _event_type(quota=1)

    moved = [_booking(_at(9), status="rescheduled")]
    cancelled = [_booking(_at(9), status="cancelled")]

    assert exceeds_daily_quota(event_type, _at(15), moved)
    assert not exceeds_daily_quota(event_type, _at(15), cancelled)


def test_quota_filters_every_slot_of_the_full_day() -> None:
    event_type = _event_type(quota=1)
    bookings = [_booking(_at(9))]
    slots = [_slot(_at(h)) for h in (11, 13, 15)] + [_slot(_at(9, day=14))]

    kept = filter_slots(event_type, slots, bookings)

    assert [s.start_utc for s in kept] == [_at(9, day=14)]


def test_filter_slots_removes_overlapping_only() -> None:
    event_type = _event_type()
    bookings = [_booking(_at(10))]
    slots = [_slot(_at(9, 30)), _slot(_at(9, 45)), _slot(_at(10, 15)), _slot(_at(10, 30))]

    kept = filter_slots(event_type, slots, bookings)

    assert [s.start_utc for s in kept] == [_at(9, 30), _at(10, 30)]


def test_lookup_range_spans_whole_utc_days_and_buffers() -> None:
    event_type = _event_type(before=30, after=30)
    start, end = conflict_lookup_range(event_type, _at(0, 10), _at(23, 50))
    assert start == _at(23, 40, day=12)
    assert end == _at(0, 20, day=14)
