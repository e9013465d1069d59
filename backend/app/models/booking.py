# backend/app/models/booking.py
"""
Booking model for the scheduling backend.

A booking is the unit of commitment: one event type, one absolute UTC
window, one invitee. Bookings are never hard-deleted; cancellation and
rescheduling are state transitions on the same row, so the UUID handed to
the invitee stays valid for the booking's whole life.

The ``version`` counter is bumped on every transition. Reschedule action
tokens embed it, which makes a used reschedule link stale.
"""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Any, Optional
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship
import ulid

from ..database import Base
from .types import UTCDateTime, now_utc

logger = logging.getLogger(__name__)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    CONFIRMED = "confirmed"  # Default - instant booking
    RESCHEDULED = "rescheduled"  # Moved in place, still occupies its window
    CANCELLED = "cancelled"  # Terminal


ACTIVE_BOOKING_STATUSES = (BookingStatus.CONFIRMED.value, BookingStatus.RESCHEDULED.value)


class Booking(Base):
    """
    Self-contained booking record.

    Times are stored as absolute UTC instants; display conversion uses the
    invitee's timezone and never feeds back into conflict math.
    """

    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_type_id = Column(Integer, ForeignKey("event_types.id"), nullable=False, index=True)

    start_time = Column(UTCDateTime(), nullable=False, index=True)
    end_time = Column(UTCDateTime(), nullable=False)

    status = Column(String(20), nullable=False, default=BookingStatus.CONFIRMED.value, index=True)
    version = Column(Integer, nullable=False, default=1)

    # Timestamps
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime(), nullable=False, default=now_utc, onupdate=now_utc)
    cancelled_at = Column(UTCDateTime(), nullable=True)

    # Cancellation tracking
    cancellation_reason = Column(Text, nullable=True)

    # Relationships
    event_type = relationship("EventType")
    invitee = relationship(
        "Invitee", back_populates="booking", uselist=False, cascade="all, delete-orphan"
    )
    answers = relationship("QuestionAnswer", back_populates="booking", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="booking")

    __table_args__ = (
        CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'rescheduled')",
            name="ck_bookings_status",
        ),
        CheckConstraint("end_time > start_time", name="ck_bookings_time_order"),
    )

    def __init__(self, **kwargs: Any) -> None:
        """Initialize with instant confirmation by default."""
        super().__init__(**kwargs)
        if not self.status:
            self.status = BookingStatus.CONFIRMED.value
        if not self.version:
            self.version = 1

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"<Booking {self.id}: event_type={self.event_type_id}, "
            f"time={self.start_time}-{self.end_time}, status={self.status}>"
        )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_BOOKING_STATUSES

    @property
    def is_cancelled(self) -> bool:
        return self.status == BookingStatus.CANCELLED.value

    @property
    def duration_minutes(self) -> float:
        return (self.end_time - self.start_time).total_seconds() / 60

    def cancel(self, reason: Optional[str] = None) -> None:
        """Cancel this booking."""
        self.status = BookingStatus.CANCELLED.value
        self.cancelled_at = datetime.now(timezone.utc)
        self.cancellation_reason = reason
        self.version = (self.version or 1) + 1
        logger.info(f"Booking {self.id} cancelled")

    def reschedule(self, new_start: datetime, new_end: datetime) -> None:
        """Move this booking in place to a new window."""
        self.start_time = new_start
        self.end_time = new_end
        self.status = BookingStatus.RESCHEDULED.value
        self.version = (self.version or 1) + 1
        logger.info(f"Booking {self.id} rescheduled to {new_start.isoformat()}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "uuid": self.id,
            "event_type_id": self.event_type_id,
            "start_utc": self.start_time.isoformat() if self.start_time else None,
            "end_utc": self.end_time.isoformat() if self.end_time else None,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "cancellation_reason": self.cancellation_reason,
        }


# At most one live booking may start at a given instant for an event type.
# Overlapping-but-not-identical windows are serialized by the booking
# transaction; this index turns an identical-window race into an IntegrityError.
Index(
    "uq_bookings_event_type_start_active",
    Booking.event_type_id,
    Booking.start_time,
    unique=True,
    sqlite_where=(Booking.status != BookingStatus.CANCELLED.value),
    postgresql_where=(Booking.status != BookingStatus.CANCELLED.value),
)


class Invitee(Base):
    """Contact details for the person who booked (1:1 with Booking)."""

    __tablename__ = "invitees"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    name = Column(String(100), nullable=False)
    email = Column(String(254), nullable=False, index=True)
    timezone = Column(String(64), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)

    booking = relationship("Booking", back_populates="invitee")

    def __repr__(self) -> str:
        return f"<Invitee {self.name} for booking {self.booking_id}>"


class QuestionAnswer(Base):
    """Answer to an event type question captured at booking time."""

    __tablename__ = "question_answers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(
        String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_id = Column(Integer, ForeignKey("event_type_questions.id"), nullable=False)
    answer_text = Column(Text, nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)

    booking = relationship("Booking", back_populates="answers")
    question = relationship("EventTypeQuestion")
