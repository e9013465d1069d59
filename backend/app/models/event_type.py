# backend/app/models/event_type.py
"""
Event type models.

An event type is a bookable meeting kind (e.g. "30 min intro call").
Event types are never hard-deleted: deactivating one hides it from the
public surface while existing bookings keep referencing it.
"""

from enum import Enum
import logging
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from ..database import Base
from .types import JSONList, UTCDateTime, now_utc

logger = logging.getLogger(__name__)


class LocationKind(str, Enum):
    """Where the meeting takes place."""

    VIDEO = "video"
    IN_PERSON = "in_person"
    PHONE = "phone"


class QuestionType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"


class EventType(Base):
    """Bookable meeting kind with its scheduling constraints."""

    __tablename__ = "event_types"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    duration_minutes = Column(Integer, nullable=False)
    location_kind = Column(String(20), nullable=False, default=LocationKind.VIDEO.value)
    color = Column(String(20), nullable=False, default="#3b82f6")
    is_active = Column(Boolean, nullable=False, default=True, index=True)

    # Scheduling constraints
    max_bookings_per_day = Column(Integer, nullable=True)
    buffer_before_minutes = Column(Integer, nullable=False, default=0)
    buffer_after_minutes = Column(Integer, nullable=False, default=0)
    min_lead_time_hours = Column(Integer, nullable=False, default=0)
    max_advance_days = Column(Integer, nullable=False, default=60)

    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)
    updated_at = Column(UTCDateTime(), nullable=False, default=now_utc, onupdate=now_utc)

    rules = relationship(
        "AvailabilityRule", back_populates="event_type", cascade="all, delete-orphan"
    )
    exceptions = relationship(
        "AvailabilityException", back_populates="event_type", cascade="all, delete-orphan"
    )
    questions = relationship(
        "EventTypeQuestion",
        back_populates="event_type",
        cascade="all, delete-orphan",
        order_by="EventTypeQuestion.display_order",
    )

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="ck_event_types_duration_positive"),
        CheckConstraint(
            "location_kind IN ('video', 'in_person', 'phone')",
            name="ck_event_types_location_kind",
        ),
        CheckConstraint(
            "buffer_before_minutes >= 0 AND buffer_after_minutes >= 0",
            name="ck_event_types_buffers_non_negative",
        ),
        CheckConstraint("min_lead_time_hours >= 0", name="ck_event_types_lead_time"),
        CheckConstraint("max_advance_days > 0", name="ck_event_types_max_advance"),
        CheckConstraint(
            "max_bookings_per_day IS NULL OR max_bookings_per_day > 0",
            name="ck_event_types_daily_quota",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<EventType {self.id}: {self.name} ({self.duration_minutes}min, "
            f"active={self.is_active})>"
        )

    def deactivate(self) -> None:
        self.is_active = False
        logger.info(f"Event type {self.id} deactivated")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "duration_minutes": self.duration_minutes,
            "location_kind": self.location_kind,
            "color": self.color,
            "is_active": self.is_active,
            "max_bookings_per_day": self.max_bookings_per_day,
            "buffer_before_minutes": self.buffer_before_minutes,
            "buffer_after_minutes": self.buffer_after_minutes,
            "min_lead_time_hours": self.min_lead_time_hours,
            "max_advance_days": self.max_advance_days,
        }


class EventTypeQuestion(Base):
    """Custom question asked when booking an event type."""

    __tablename__ = "event_type_questions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_type_id = Column(
        Integer, ForeignKey("event_types.id", ondelete="CASCADE"), nullable=False, index=True
    )
    question_text = Column(String(500), nullable=False)
    question_type = Column(String(20), nullable=False, default=QuestionType.TEXT.value)
    options = Column(JSONList(), nullable=True)
    is_required = Column(Boolean, nullable=False, default=False)
    display_order = Column(Integer, nullable=False, default=0)
    created_at = Column(UTCDateTime(), nullable=False, default=now_utc)

    event_type = relationship("EventType", back_populates="questions")

    __table_args__ = (
        CheckConstraint(
            "question_type IN ('text', 'textarea', 'select', 'radio', 'checkbox')",
            name="ck_event_type_questions_type",
        ),
    )

    def __repr__(self) -> str:
        return f"<EventTypeQuestion {self.id} for event type {self.event_type_id}>"
