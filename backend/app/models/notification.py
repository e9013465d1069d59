# backend/app/models/notification.py
"""
Notification outbox persistence model.

Rows are written inside the booking transaction and delivered afterwards,
so a delivery failure can never roll back a committed booking.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import ulid

from app.database import Base

from .types import UTCDateTime, now_utc


class NotificationKind(str, Enum):
    BOOKING_CONFIRMATION = "booking_confirmation"
    CANCELLATION = "cancellation"
    RESCHEDULE = "reschedule"
    REMINDER = "reminder"


class NotificationStatus(str, Enum):
    """Lifecycle states for an outbox notification."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class Notification(Base):
    """Outbox entry pending delivery to an invitee."""

    __tablename__ = "notifications"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(String(36), ForeignKey("bookings.id"), nullable=False, index=True)
    notification_type = Column(String(30), nullable=False)
    recipient_email = Column(String(254), nullable=False)
    idempotency_key = Column(String(255), nullable=False)
    status = Column(
        String(20), nullable=False, default=NotificationStatus.PENDING.value, index=True
    )
    attempt_count = Column(Integer, nullable=False, default=0)
    last_error = Column(Text, nullable=True)
    sent_at = Column(UTCDateTime(), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime(), nullable=False, default=now_utc, onupdate=now_utc)

    booking = relationship("Booking", back_populates="notifications")

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_notifications_idempotency_key"),
        CheckConstraint(
            "status IN ('pending', 'sent', 'failed')", name="ck_notifications_status"
        ),
    )

    def mark_sent(self, attempt_count: int) -> None:
        """Mark the notification as successfully delivered."""
        self.status = NotificationStatus.SENT.value
        self.attempt_count = attempt_count
        self.sent_at = now_utc()
        self.last_error = None

    def mark_failed(self, attempt_count: int, error: str, *, terminal: bool) -> None:
        """Record a failed attempt; non-terminal failures stay pending for retry."""
        self.status = (
            NotificationStatus.FAILED.value if terminal else NotificationStatus.PENDING.value
        )
        self.attempt_count = attempt_count
        self.last_error = error[:1000]

    def __repr__(self) -> str:
        return f"<Notification {self.notification_type} {self.status} booking={self.booking_id}>"


def reminder_key(booking_id: str, start_time: datetime) -> str:
    """Idempotency key for the reminder of one booking window."""
    return f"reminder:{booking_id}:{start_time.isoformat()}"
