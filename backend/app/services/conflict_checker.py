# backend/app/services/conflict_checker.py
"""
Conflict Checker Service for the scheduling backend.

Handles booking conflict detection for candidate windows:
- Buffer-expanded overlap against existing active bookings
- Daily booking quotas per event type

The module-level functions are pure and operate on already-loaded
bookings; ``ConflictChecker`` wires them to the booking repository for
callers that only hold an event type and a window.
"""

from datetime import datetime, time, timedelta, timezone
import logging
from typing import Iterable, List, Optional, Sequence, TypeVar

from sqlalchemy.orm import Session

from ..models.booking import ACTIVE_BOOKING_STATUSES, Booking
from ..models.event_type import EventType
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from .base import BaseService
from .slot_generator import Slot

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Slot)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Strict interval overlap; windows that only touch do not overlap."""
    return a_start < b_end and b_start < a_end


def _others(bookings: Iterable[Booking], event_type_id: int, exclude_id: Optional[str]):
    for booking in bookings:
        if booking.status not in ACTIVE_BOOKING_STATUSES:
            continue
        if booking.event_type_id != event_type_id:
            continue
        if exclude_id is not None and booking.id == exclude_id:
            continue
        yield booking


def has_buffer_conflict(
    event_type: EventType,
    start: datetime,
    end: datetime,
    bookings: Iterable[Booking],
    exclude_id: Optional[str] = None,
) -> bool:
    """
    Check whether a candidate window collides with another booking.

    The candidate is widened by the event type's buffer-before and
    buffer-after minutes before the overlap test.
    """
    padded_start = start - timedelta(minutes=event_type.buffer_before_minutes or 0)
    padded_end = end + timedelta(minutes=event_type.buffer_after_minutes or 0)
    return any(
        overlaps(padded_start, padded_end, booking.start_time, booking.end_time)
        for booking in _others(bookings, event_type.id, exclude_id)
    )


def utc_day_bounds(instant: datetime) -> tuple[datetime, datetime]:
    """Start of the instant's UTC calendar day and start of the next one."""
    day = instant.astimezone(timezone.utc).date()
    day_start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return day_start, day_start + timedelta(days=1)


def exceeds_daily_quota(
    event_type: EventType,
    start: datetime,
    bookings: Iterable[Booking],
    exclude_id: Optional[str] = None,
) -> bool:
    """
    True when the candidate's UTC day already holds ``max_bookings_per_day`` bookings.

    Rescheduled bookings count alongside confirmed ones: a moved booking still
    occupies its new day, so counting only ``confirmed`` would let a day overfill.
    """
    limit = event_type.max_bookings_per_day
    if not limit:
        return False
    day_start, day_end = utc_day_bounds(start)
    count = sum(
        1
        for booking in _others(bookings, event_type.id, exclude_id)
        if day_start <= booking.start_time < day_end
    )
    return count >= limit


def is_available(
    event_type: EventType,
    start: datetime,
    end: datetime,
    bookings: Sequence[Booking],
    exclude_booking_id: Optional[str] = None,
) -> bool:
    """A window is available when it has no buffer conflict and the day has quota left."""
    if has_buffer_conflict(event_type, start, end, bookings, exclude_booking_id):
        return False
    return not exceeds_daily_quota(event_type, start, bookings, exclude_booking_id)


def filter_slots(
    event_type: EventType,
    slots: Iterable[S],
    bookings: Sequence[Booking],
    exclude_booking_id: Optional[str] = None,
) -> List[S]:
    """Keep only the slots that pass ``is_available``."""
    return [
        slot
        for slot in slots
        if is_available(event_type, slot.start_utc, slot.end_utc, bookings, exclude_booking_id)
    ]


def conflict_lookup_range(
    event_type: EventType, start: datetime, end: datetime
) -> tuple[datetime, datetime]:
    """
    UTC range of bookings that can influence windows between ``start`` and ``end``.

    Covers the buffers on either side and the whole UTC days touched, so
    quota counts see every booking of those days.
    """
    padded_start = start - timedelta(minutes=event_type.buffer_before_minutes or 0)
    padded_end = end + timedelta(minutes=event_type.buffer_after_minutes or 0)
    day_start, _ = utc_day_bounds(start)
    _, day_end = utc_day_bounds(end)
    return min(padded_start, day_start), max(padded_end, day_end)


class ConflictChecker(BaseService):
    """
    Service for checking booking conflicts against stored bookings.

    This service centralizes conflict detection so the availability path
    and the booking transaction apply identical rules.
    """

    def __init__(self, db: Session, repository: Optional[BookingRepository] = None):
        """
        Initialize conflict checker service.

        Args:
            db: Database session
            repository: Optional BookingRepository instance
        """
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)

    def load_bookings(
        self,
        event_type: EventType,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """Active bookings that can affect windows between ``start`` and ``end``."""
        range_start, range_end = conflict_lookup_range(event_type, start, end)
        return self.repository.get_active_bookings_in_range(
            event_type.id, range_start, range_end, exclude_booking_id
        )

    @BaseService.measure_operation("check_window")
    def check_window(
        self,
        event_type: EventType,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """
        Check a single window against committed bookings.

        Args:
            event_type: Event type being booked
            start: Window start (UTC)
            end: Window end (UTC)
            exclude_booking_id: Booking to ignore (the one being rescheduled)

        Returns:
            True when the window is free
        """
        bookings = self.load_bookings(event_type, start, end, exclude_booking_id)
        available = is_available(event_type, start, end, bookings, exclude_booking_id)
        if not available:
            self.logger.info(
                f"Window {start.isoformat()} for event type {event_type.id} is not available"
            )
        return available
