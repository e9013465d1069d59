# backend/app/models/availability.py
"""
Availability models.

Recurring weekly windows (AvailabilityRule) and date-specific overrides
(AvailabilityException). Times are wall-clock ``HH:MM`` strings in the
row's own IANA zone; conversion to instants happens in the slot engine.

Classes:
    AvailabilityRule: Recurring weekly window for an event type
    AvailabilityException: Unavailable day or replacement hours for one date
"""

from enum import Enum
import logging

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..database import Base
from .types import UTCDateTime, now_utc

logger = logging.getLogger(__name__)


class ExceptionKind(str, Enum):
    UNAVAILABLE = "unavailable"
    CUSTOM_HOURS = "custom_hours"


class AvailabilityRule(Base):
    """Recurring weekly availability window (0 = Sunday ... 6 = Saturday)."""

    __tablename__ = "availability_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type_id = Column(
        Integer, ForeignKey("event_types.id", ondelete="CASCADE"), nullable=False
    )
    day_of_week = Column(Integer, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    timezone = Column(String(64), nullable=False, default="UTC")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)

    event_type = relationship("EventType", back_populates="rules")

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_rules_dow"),
        Index("ix_availability_rules_event_dow", "event_type_id", "day_of_week"),
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilityRule {self.id}: dow={self.day_of_week} "
            f"{self.start_time}-{self.end_time} {self.timezone}>"
        )


class AvailabilityException(Base):
    """Date-specific override of the weekly rules."""

    __tablename__ = "availability_exceptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type_id = Column(
        Integer, ForeignKey("event_types.id", ondelete="CASCADE"), nullable=False
    )
    exception_date = Column(Date, nullable=False, index=True)
    exception_type = Column(String(20), nullable=False)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)
    timezone = Column(String(64), nullable=False, default="UTC")
    reason = Column(String(200), nullable=True)
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)

    event_type = relationship("EventType", back_populates="exceptions")

    __table_args__ = (
        UniqueConstraint(
            "event_type_id", "exception_date", name="uq_availability_exceptions_event_date"
        ),
        CheckConstraint(
            "exception_type IN ('unavailable', 'custom_hours')",
            name="ck_availability_exceptions_type",
        ),
    )

    @property
    def is_unavailable(self) -> bool:
        return self.exception_type == ExceptionKind.UNAVAILABLE.value

    @property
    def has_custom_hours(self) -> bool:
        return (
            self.exception_type == ExceptionKind.CUSTOM_HOURS.value
            and bool(self.start_time)
            and bool(self.end_time)
        )

    def __repr__(self) -> str:
        return f"<AvailabilityException {self.exception_date} {self.exception_type}>"
