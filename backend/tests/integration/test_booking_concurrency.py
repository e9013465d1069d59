"""
Concurrent booking attempts against one file-backed SQLite database.

Each worker thread owns its own session and connection, exactly like two
simultaneous HTTP requests. Exactly one of them may win a contested window.
"""

from __future__ import annotations

from datetime import datetime, timezone
import threading
from typing import List

import pytest

from app.core.exceptions import SlotUnavailableException
from app.models.booking import Booking
from app.services.booking_service import BookingService
from app.services.notification_service import NotificationService

pytestmark = pytest.mark.integration


def _race(session_factory, payloads, now, make_sender) -> tuple[List[str], List[Exception]]:
    barrier = threading.Barrier(len(payloads))
    successes: List[str] = []
    failures: List[Exception] = []
    lock = threading.Lock()

    def worker(payload) -> None:
        session = session_factory()
        try:
            service = BookingService(
                session, notification_service=NotificationService(session, sender=make_sender())
            )
            barrier.wait(timeout=10)
            result = service.create_booking(payload, now=now)
            with lock:
                successes.append(result.booking.id)
        except Exception as exc:  # collected and asserted by the test
            with lock:
                failures.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=worker, args=(p,)) for p in payloads]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return successes, failures


def test_identical_requests_have_one_winner(
    db, session_factory, weekday_event_type, booking_payload, reference_now, make_sender
) -> None:
    start = datetime(2025, 1, 13, 10, 0, tzinfo=timezone.utc)
    payloads = [
        booking_payload(weekday_event_type.id, start, email=f"racer{i}@example.com")
        for i in range(2)
    ]

    successes, failures = _race(session_factory, payloads, reference_now, make_sender)

    assert len(successes) == 1
    assert len(failures) == 1
    assert isinstance(failures[0], SlotUnavailableException)
    assert db.query(Booking).count() == 1
    db.rollback()


def test_overlapping_requests_have_one_winner(
    db, session_factory, weekday_event_type, booking_payload, reference_now, make_sender
) -> None:
    payloads = [
        booking_payload(
            weekday_event_type.id, datetime(2025, 1, 13, 10, 0, tzinfo=timezone.utc)
        ),
        booking_payload(
            weekday_event_type.id, datetime(2025, 1, 13, 10, 15, tzinfo=timezone.utc)
        ),
    ]

    successes, failures = _race(session_factory, payloads, reference_now, make_sender)

    assert len(successes) == 1
    assert [type(f) for f in failures] == [SlotUnavailableException]
    assert db.query(Booking).count() == 1
    db.rollback()


def test_disjoint_requests_both_succeed(
    db, session_factory, weekday_event_type, booking_payload, reference_now, make_sender
) -> None:
    payloads = [
        booking_payload(
            weekday_event_type.id, datetime(2025, 1, 13, 10, 0, tzinfo=timezone.utc)
        ),
        booking_payload(
            weekday_event_type.id, datetime(2025, 1, 13, 11, 0, tzinfo=timezone.utc)
        ),
    ]

    successes, failures = _race(session_factory, payloads, reference_now, make_sender)

    assert failures == []
    assert len(successes) == 2
    assert db.query(Booking).count() == 2
    db.rollback()
