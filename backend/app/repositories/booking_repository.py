# backend/app/repositories/booking_repository.py
"""
Booking Repository.

Implements all data access operations for booking management:
- Booking creation with integrity errors exposed for conflict handling
- Time-range queries over active bookings for conflict checking
- Admin listing with filters and pagination
- Reminder sweep queries
- Booking statistics and counting
"""

from datetime import datetime
import logging
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session, joinedload, selectinload

from ..core.exceptions import RepositoryException
from ..models.booking import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    Invitee,
    QuestionAnswer,
)
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRepository(BaseRepository[Booking]):
    """
    Repository for booking data access.

    Bookings carry their own UTC window, so every conflict query is a plain
    interval filter on ``start_time``/``end_time``.
    """

    def __init__(self, db: Session):
        """Initialize with Booking model."""
        super().__init__(db, Booking)

    def create(self, **kwargs: Any) -> Booking:
        """Create a booking, exposing integrity errors for conflict handling."""
        try:
            return super().create(**kwargs)
        except RepositoryException as exc:
            if isinstance(exc.__cause__, IntegrityError):
                raise exc.__cause__
            raise

    def add_invitee(self, booking: Booking, **fields: Any) -> Invitee:
        invitee = Invitee(booking_id=booking.id, **fields)
        self.db.add(invitee)
        booking.invitee = invitee
        return invitee

    def add_answers(
        self, booking: Booking, answers: Sequence[Tuple[int, str]]
    ) -> List[QuestionAnswer]:
        rows = [
            QuestionAnswer(question_id=question_id, answer_text=answer)
            for question_id, answer in answers
        ]
        booking.answers.extend(rows)
        return rows

    def get_with_details(self, booking_id: str) -> Optional[Booking]:
        """Get a booking with invitee, event type and answers loaded."""
        try:
            return (
                self._apply_eager_loading(self.db.query(Booking))
                .filter(Booking.id == booking_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting booking {booking_id}: {str(e)}")
            raise RepositoryException(f"Failed to get booking: {str(e)}") from e

    def get_for_update(self, booking_id: str) -> Optional[Booking]:
        """Load a booking holding its row lock (PostgreSQL) until commit."""
        query = self.db.query(Booking).filter(Booking.id == booking_id)
        if self.dialect_name == "postgresql":
            query = query.with_for_update()
        return query.populate_existing().first()

    # Time-based queries

    def get_active_bookings_in_range(
        self,
        event_type_id: int,
        range_start: datetime,
        range_end: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Booking]:
        """
        Get confirmed/rescheduled bookings whose window intersects a UTC range.

        Args:
            event_type_id: Event type whose bookings to load
            range_start: Range start (UTC)
            range_end: Range end (UTC)
            exclude_booking_id: Booking to leave out (used for reschedules)

        Returns:
            Bookings ordered by start time
        """
        try:
            query = self.db.query(Booking).filter(
                Booking.event_type_id == event_type_id,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.start_time < range_end,
                Booking.end_time > range_start,
            )
            if exclude_booking_id:
                query = query.filter(Booking.id != exclude_booking_id)
            return query.order_by(Booking.start_time).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting bookings for event type {event_type_id}: {str(e)}")
            raise RepositoryException(f"Failed to get bookings in range: {str(e)}") from e

    def get_upcoming_active(self, window_start: datetime, window_end: datetime) -> List[Booking]:
        """Active bookings starting in ``(window_start, window_end]``, invitee loaded."""
        return (
            self.db.query(Booking)
            .options(joinedload(Booking.invitee))
            .filter(
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
                Booking.start_time > window_start,
                Booking.start_time <= window_end,
            )
            .order_by(Booking.start_time)
            .all()
        )

    # Admin listing

    def list_with_filters(
        self,
        *,
        status: Optional[str] = None,
        event_type_id: Optional[int] = None,
        start_from: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Booking], int]:
        """
        List bookings matching the given filters, newest start first.

        Returns:
            Tuple of (page of bookings, total matching count)
        """
        query = self.db.query(Booking)
        if status:
            query = query.filter(Booking.status == status)
        if event_type_id is not None:
            query = query.filter(Booking.event_type_id == event_type_id)
        if start_from is not None:
            query = query.filter(Booking.start_time >= start_from)
        if start_before is not None:
            query = query.filter(Booking.start_time < start_before)

        total = query.count()
        items = (
            self._apply_eager_loading(query)
            .order_by(Booking.start_time.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return items, total

    def count_all(self) -> int:
        return self.db.query(Booking).count()

    def count_by_status(self, status: BookingStatus) -> int:
        return self.db.query(Booking).filter(Booking.status == status.value).count()

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Booking.invitee),
            joinedload(Booking.event_type),
            selectinload(Booking.answers),
        )
