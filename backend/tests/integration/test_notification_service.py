from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.models.booking import Booking, Invitee
from app.models.notification import Notification, NotificationKind, NotificationStatus
from app.services.notification_service import NotificationService, render_notification

pytestmark = pytest.mark.integration


def _utc(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 1, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def insert_booking(db, weekday_event_type):
    def _insert(start: datetime, email: str = "ada@example.com", zone: str = "UTC") -> Booking:
        booking = Booking(
            event_type_id=weekday_event_type.id,
            start_time=start,
            end_time=start + timedelta(minutes=30),
        )
        booking.invitee = Invitee(name="Ada Lovelace", email=email, timezone=zone)
        db.add(booking)
        db.commit()
        return booking

    return _insert


def _rows(db, kind: str | None = None) -> list[Notification]:
    query = db.query(Notification)
    if kind:
        query = query.filter(Notification.notification_type == kind)
    return query.all()


def test_enqueue_is_idempotent(db, insert_booking, recording_sender) -> None:
    booking = insert_booking(_utc(13, 10))
    service = NotificationService(db, sender=recording_sender)

    first = service.enqueue_for_booking(booking, NotificationKind.BOOKING_CONFIRMATION)
    second = service.enqueue_for_booking(booking, NotificationKind.BOOKING_CONFIRMATION)
    db.commit()

    assert first.id == second.id
    assert first.idempotency_key == f"booking_confirmation:{booking.id}:1"
    assert len(_rows(db)) == 1


def test_enqueue_skips_bookings_without_invitee(db, weekday_event_type) -> None:
    booking = Booking(
        event_type_id=weekday_event_type.id,
        start_time=_utc(13, 10),
        end_time=_utc(13, 10, 30),
    )
    db.add(booking)
    db.commit()

    assert NotificationService(db).enqueue_for_booking(booking, NotificationKind.REMINDER) is None


def test_dispatch_sends_and_marks_rows(db, insert_booking, recording_sender) -> None:
    booking = insert_booking(_utc(13, 10), zone="Europe/Paris")
    service = NotificationService(db, sender=recording_sender)
    service.enqueue_for_booking(booking, NotificationKind.BOOKING_CONFIRMATION)
    db.commit()

    counts = service.dispatch_pending()

    assert counts == {"sent": 1, "failed": 0, "retry": 0}
    [message] = recording_sender.sent
    assert message["recipient"] == "ada@example.com"
    assert message["subject"] == "Booking confirmed: Intro call"
    # Rendered in the invitee's zone
    assert "11:00 - 11:30 (Europe/Paris)" in message["body"]

    [row] = _rows(db)
    assert row.status == NotificationStatus.SENT.value
    assert row.attempt_count == 1
    assert row.sent_at is not None


def test_failed_delivery_is_retried(db, insert_booking, make_sender) -> None:
    booking = insert_booking(_utc(13, 10))
    sender = make_sender(fail_times=1)
    service = NotificationService(db, sender=sender, max_attempts=3)
    service.enqueue_for_booking(booking, NotificationKind.CANCELLATION)
    db.commit()

    assert service.dispatch_pending() == {"sent": 0, "failed": 0, "retry": 1}
    [row] = _rows(db)
    assert row.status == NotificationStatus.PENDING.value
    assert row.last_error == "provider unavailable"

    assert service.dispatch_pending() == {"sent": 1, "failed": 0, "retry": 0}
    assert row.status == NotificationStatus.SENT.value
    assert row.attempt_count == 2
    assert row.last_error is None


def test_delivery_gives_up_after_max_attempts(db, insert_booking, make_sender) -> None:
    booking = insert_booking(_utc(13, 10))
    sender = make_sender(fail_times=10)
    service = NotificationService(db, sender=sender, max_attempts=2)
    service.enqueue_for_booking(booking, NotificationKind.RESCHEDULE)
    db.commit()

    assert service.dispatch_pending()["retry"] == 1
    assert service.dispatch_pending()["failed"] == 1
    assert service.dispatch_pending() == {"sent": 0, "failed": 0, "retry": 0}

    [row] = _rows(db)
    assert row.status == NotificationStatus.FAILED.value
    assert row.attempt_count == 2
    assert sender.calls == 2


def test_reminders_are_enqueued_once_per_window(
    db, insert_booking, recording_sender, reference_now
) -> None:
    soon = insert_booking(_utc(6, 10))
    insert_booking(_utc(8, 10), email="later@example.com")
    service = NotificationService(db, sender=recording_sender)

    assert service.enqueue_due_reminders(now=reference_now) == 1
    assert service.enqueue_due_reminders(now=reference_now) == 0

    [row] = _rows(db, NotificationKind.REMINDER.value)
    assert row.booking_id == soon.id


def test_rescheduled_booking_is_reminded_again(
    db, insert_booking, recording_sender, reference_now
) -> None:
    booking = insert_booking(_utc(6, 10))
    service = NotificationService(db, sender=recording_sender)
    assert service.enqueue_due_reminders(now=reference_now) == 1

    booking.reschedule(_utc(6, 14), _utc(6, 14, 30))
    db.commit()

    assert service.enqueue_due_reminders(now=reference_now) == 1
    assert len(_rows(db, NotificationKind.REMINDER.value)) == 2


def test_cancelled_bookings_are_not_reminded(
    db, insert_booking, recording_sender, reference_now
) -> None:
    booking = insert_booking(_utc(6, 10))
    service = NotificationService(db, sender=recording_sender)
    service.enqueue_due_reminders(now=reference_now)

    booking.cancel("changed plans")
    db.commit()

    assert service.dispatch_pending() == {"sent": 0, "failed": 1, "retry": 0}
    assert recording_sender.sent == []
    [row] = _rows(db, NotificationKind.REMINDER.value)
    assert row.status == NotificationStatus.FAILED.value
    assert row.last_error == "booking cancelled"

    # A cancelled booking is never picked up by the sweep again
    assert service.enqueue_due_reminders(now=reference_now) == 0


def test_run_reminder_cycle_reports_counts(
    db, insert_booking, recording_sender, reference_now
) -> None:
    insert_booking(_utc(6, 9))
    insert_booking(_utc(6, 15), email="grace@example.com")

    counts = NotificationService(db, sender=recording_sender).run_reminder_cycle(
        now=reference_now
    )

    assert counts == {"enqueued": 2, "sent": 2, "failed": 0, "retry": 0}
    assert {m["recipient"] for m in recording_sender.sent} == {
        "ada@example.com",
        "grace@example.com",
    }
    assert all(m["subject"] == "Reminder: Intro call is coming up" for m in recording_sender.sent)


def test_render_includes_cancellation_reason(db, insert_booking) -> None:
    booking = insert_booking(_utc(13, 10))
    booking.cancel("double booked")
    db.commit()
    row = Notification(notification_type=NotificationKind.CANCELLATION.value)

    subject, body = render_notification(row, booking)

    assert subject == "Booking cancelled: Intro call"
    assert "Status: cancelled" in body
    assert "Reason: double booked" in body
