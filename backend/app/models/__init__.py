"""
Database models for the scheduling backend.

The models are organized by functionality:
- Event types and their booking questions
- Availability rules and date exceptions
- Bookings, invitees and question answers
- Notification outbox
"""

from .availability import AvailabilityException, AvailabilityRule, ExceptionKind
from .booking import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    Invitee,
    QuestionAnswer,
)
from .event_type import EventType, EventTypeQuestion, LocationKind, QuestionType
from .notification import Notification, NotificationKind, NotificationStatus

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "AvailabilityException",
    "AvailabilityRule",
    "Booking",
    "BookingStatus",
    "EventType",
    "EventTypeQuestion",
    "ExceptionKind",
    "Invitee",
    "LocationKind",
    "Notification",
    "NotificationKind",
    "NotificationStatus",
    "QuestionAnswer",
    "QuestionType",
]
