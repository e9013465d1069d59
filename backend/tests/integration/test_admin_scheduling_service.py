from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from app.core.exceptions import EventTypeNotFoundException, NotFoundException
from app.models.booking import Booking, BookingStatus
from app.schemas.admin import EventTypeCreate, EventTypeUpdate, ExceptionUpsert, RuleCreate
from app.services.admin_scheduling_service import AdminSchedulingService
from app.services.availability_service import AvailabilityService

pytestmark = pytest.mark.integration

MONDAY = date(2025, 1, 13)


@pytest.fixture
def service(db) -> AdminSchedulingService:
    return AdminSchedulingService(db)


def _insert_booking(db, event_type, start: datetime, status: str = "confirmed") -> Booking:
    booking = Booking(
        event_type_id=event_type.id,
        start_time=start,
        end_time=start + timedelta(minutes=event_type.duration_minutes),
        status=status,
    )
    db.add(booking)
    db.commit()
    return booking


def test_event_type_lifecycle(db, service, reference_now) -> None:
    created = service.create_event_type(
        EventTypeCreate(
            name="Discovery",
            duration_minutes=45,
            questions=[
                {"question_text": "What would you like to discuss?", "is_required": True},
                {"question_text": "Anything else?", "display_order": 1},
            ],
        )
    )
    assert created.id is not None
    assert [q.question_text for q in created.questions] == [
        "What would you like to discuss?",
        "Anything else?",
    ]

    updated = service.update_event_type(created.id, EventTypeUpdate(duration_minutes=60))
    assert updated.duration_minutes == 60
    assert updated.name == "Discovery"

    service.create_rule(
        RuleCreate(event_type_id=created.id, day_of_week=1, start_time="09:00", end_time="11:00")
    )
    slots = AvailabilityService(db).get_available_slots(
        created.id, MONDAY, MONDAY, now=reference_now
    )["slots"]
    assert all(s.end_utc - s.start_utc == timedelta(minutes=60) for s in slots)

    service.deactivate_event_type(created.id)
    with pytest.raises(EventTypeNotFoundException):
        AvailabilityService(db).get_available_slots(created.id, MONDAY, MONDAY)
    assert [et.id for et in service.list_event_types(include_inactive=False)] == []
    assert [et.id for et in service.list_event_types()] == [created.id]


def test_update_unknown_event_type(service) -> None:
    with pytest.raises(EventTypeNotFoundException):
        service.update_event_type(404, EventTypeUpdate(name="Ghost"))


def test_rules_require_an_event_type(service) -> None:
    with pytest.raises(EventTypeNotFoundException):
        service.create_rule(
            RuleCreate(event_type_id=999, day_of_week=1, start_time="09:00", end_time="10:00")
        )


def test_deactivated_rule_stops_generating_slots(db, service, make_event_type, reference_now) -> None:
    event_type = make_event_type()
    rule = service.create_rule(
        RuleCreate(event_type_id=event_type.id, day_of_week=1, start_time="09:00", end_time="10:00")
    )
    assert [r.id for r in service.list_rules(event_type.id)] == [rule.id]

    service.deactivate_rule(rule.id)

    assert rule.is_active is False
    slots = AvailabilityService(db).get_available_slots(
        event_type.id, MONDAY, MONDAY, now=reference_now
    )["slots"]
    assert slots == []


def test_deactivating_missing_rule(service) -> None:
    with pytest.raises(NotFoundException) as exc_info:
        service.deactivate_rule(12345)
    assert exc_info.value.code == "RULE_NOT_FOUND"


def test_exception_upsert_replaces_existing(service, weekday_event_type) -> None:
    first = service.upsert_exception(
        ExceptionUpsert(
            event_type_id=weekday_event_type.id,
            exception_date=MONDAY,
            exception_type="custom_hours",
            start_time="12:00",
            end_time="13:00",
        )
    )
    second = service.upsert_exception(
        ExceptionUpsert(
            event_type_id=weekday_event_type.id,
            exception_date=MONDAY,
            exception_type="unavailable",
            reason="Holiday",
        )
    )

    assert second.id == first.id
    assert second.exception_type == "unavailable"
    assert second.start_time is None
    assert second.end_time is None
    assert len(service.list_exceptions(weekday_event_type.id)) == 1


def test_exception_listing_and_delete(service, weekday_event_type) -> None:
    for offset in (0, 1, 7):
        service.upsert_exception(
            ExceptionUpsert(
                event_type_id=weekday_event_type.id,
                exception_date=MONDAY + timedelta(days=offset),
                exception_type="unavailable",
            )
        )

    in_range = service.list_exceptions(
        weekday_event_type.id, MONDAY, MONDAY + timedelta(days=2)
    )
    assert [e.exception_date for e in in_range] == [MONDAY, MONDAY + timedelta(days=1)]

    service.delete_exception(in_range[0].id)
    assert len(service.list_exceptions(weekday_event_type.id)) == 2

    with pytest.raises(NotFoundException) as exc_info:
        service.delete_exception(in_range[0].id)
    assert exc_info.value.code == "EXCEPTION_NOT_FOUND"


def test_list_bookings_filters_and_paginates(db, service, weekday_event_type, make_event_type) -> None:
    other = make_event_type(name="Other")
    for hour in (9, 10, 11):
        _insert_booking(
            db, weekday_event_type, datetime(2025, 1, 13, hour, tzinfo=timezone.utc)
        )
    _insert_booking(
        db,
        weekday_event_type,
        datetime(2025, 1, 14, 9, tzinfo=timezone.utc),
        status=BookingStatus.CANCELLED.value,
    )
    _insert_booking(db, other, datetime(2025, 1, 13, 12, tzinfo=timezone.utc))

    items, total = service.list_bookings(event_type_id=weekday_event_type.id, limit=2)
    assert total == 4
    assert len(items) == 2
    # Newest start first
    assert items[0].start_time == datetime(2025, 1, 14, 9, tzinfo=timezone.utc)

    _, total = service.list_bookings(status="cancelled")
    assert total == 1

    items, total = service.list_bookings(start_date=MONDAY, end_date=MONDAY)
    assert total == 4
    assert all(b.start_time.date() == MONDAY for b in items)

    items, total = service.list_bookings(limit=0, offset=-5)
    assert total == 5
    assert len(items) == 1


def test_stats(db, service, weekday_event_type, make_event_type) -> None:
    make_event_type(name="Retired", is_active=False)
    _insert_booking(db, weekday_event_type, datetime(2025, 1, 13, 9, tzinfo=timezone.utc))
    _insert_booking(
        db,
        weekday_event_type,
        datetime(2025, 1, 13, 10, tzinfo=timezone.utc),
        status=BookingStatus.RESCHEDULED.value,
    )
    _insert_booking(
        db,
        weekday_event_type,
        datetime(2025, 1, 13, 11, tzinfo=timezone.utc),
        status=BookingStatus.CANCELLED.value,
    )

    assert service.get_stats() == {
        "active_event_types": 1,
        "active_rules": 5,
        "total_bookings": 3,
        "confirmed_bookings": 1,
        "rescheduled_bookings": 1,
        "cancelled_bookings": 1,
    }
