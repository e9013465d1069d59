# backend/app/schemas/__init__.py
"""
Pydantic schemas for the scheduling API.

Request models reject unknown fields; response models are built from ORM
objects or service results.
"""

from .admin import (
    AdminCancelRequest,
    AdminEventTypeResponse,
    AdminRescheduleRequest,
    BookingListResponse,
    EventTypeCreate,
    EventTypeUpdate,
    ExceptionResponse,
    ExceptionUpsert,
    QuestionCreate,
    ReminderCycleResponse,
    RuleCreate,
    RuleResponse,
    SchedulingStatsResponse,
)
from .availability import (
    AvailabilityResponse,
    EventTypeResponse,
    QuestionResponse,
    SlotResponse,
)
from .booking import (
    AnswerInput,
    AnswerResponse,
    BookingCreateRequest,
    BookingResponse,
    BookingWithTokensResponse,
    CancelRequest,
    InviteeResponse,
    RescheduleRequest,
)

__all__ = [
    # Admin
    "AdminCancelRequest",
    "AdminEventTypeResponse",
    "AdminRescheduleRequest",
    "BookingListResponse",
    "EventTypeCreate",
    "EventTypeUpdate",
    "ExceptionResponse",
    "ExceptionUpsert",
    "QuestionCreate",
    "ReminderCycleResponse",
    "RuleCreate",
    "RuleResponse",
    "SchedulingStatsResponse",
    # Availability
    "AvailabilityResponse",
    "EventTypeResponse",
    "QuestionResponse",
    "SlotResponse",
    # Booking
    "AnswerInput",
    "AnswerResponse",
    "BookingCreateRequest",
    "BookingResponse",
    "BookingWithTokensResponse",
    "CancelRequest",
    "InviteeResponse",
    "RescheduleRequest",
]
