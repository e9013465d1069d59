# backend/app/schemas/booking.py
"""
Booking schemas for the scheduling backend.

Request models validate shape only (lengths, email format, zone names,
window ordering). Business rules such as duration and slot membership are
enforced by the booking service.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import EmailStr, Field, field_validator, model_validator

from ..core.constants import MAX_REASON_LENGTH
from ..core.timezone_utils import ensure_utc, is_valid_timezone, utc_to_local
from ._strict_base import StrictModel, StrictRequestModel

MAX_NAME_LENGTH = 100
MAX_NOTES_LENGTH = 1000
MAX_ANSWER_LENGTH = 1000


def _validate_window(start: datetime, end: datetime) -> None:
    if start >= end:
        raise ValueError("End time must be after start time")


class AnswerInput(StrictRequestModel):
    question_id: int = Field(..., gt=0)
    answer: str = Field("", max_length=MAX_ANSWER_LENGTH)


class BookingCreateRequest(StrictRequestModel):
    """
    Book a slot for an event type.

    ``start``/``end`` are absolute instants; naive values are taken as UTC.
    ``timezone`` is the invitee's display zone and never affects conflicts.
    """

    event_type_id: int = Field(..., gt=0)
    start: datetime
    end: datetime
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    email: EmailStr
    timezone: Optional[str] = Field(None, max_length=64)
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)
    answers: List[AnswerInput] = Field(default_factory=list)

    @field_validator("start", "end")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        if v and not is_valid_timezone(v):
            raise ValueError(f"Invalid timezone: {v}")
        return v or None

    @model_validator(mode="after")
    def _check_window(self) -> "BookingCreateRequest":
        _validate_window(self.start, self.end)
        return self


class RescheduleRequest(StrictRequestModel):
    uuid: str = Field(..., min_length=1, max_length=36)
    token: str = Field(..., min_length=1)
    new_start: datetime
    new_end: datetime

    @field_validator("new_start", "new_end")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def _check_window(self) -> "RescheduleRequest":
        _validate_window(self.new_start, self.new_end)
        return self


class CancelRequest(StrictRequestModel):
    uuid: str = Field(..., min_length=1, max_length=36)
    token: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


class InviteeResponse(StrictModel):
    name: str
    email: str
    timezone: Optional[str] = None
    notes: Optional[str] = None


class AnswerResponse(StrictModel):
    question_id: int
    answer: Optional[str] = None


class BookingResponse(StrictModel):
    """Public booking details."""

    uuid: str
    event_type_id: int
    event_type_name: Optional[str] = None
    status: str
    start: str = Field(..., description="Start in the invitee's timezone")
    end: str = Field(..., description="End in the invitee's timezone")
    start_utc: str
    end_utc: str
    timezone: str
    duration_minutes: int
    invitee: Optional[InviteeResponse] = None
    answers: List[AnswerResponse] = Field(default_factory=list)
    created_at: Optional[str] = None
    cancelled_at: Optional[str] = None
    cancellation_reason: Optional[str] = None

    @classmethod
    def build_fields(cls, booking: Any) -> Dict[str, Any]:
        invitee = booking.invitee
        zone_name = (invitee.timezone if invitee else None) or "UTC"
        event_type = booking.event_type
        return {
            "uuid": booking.id,
            "event_type_id": booking.event_type_id,
            "event_type_name": event_type.name if event_type else None,
            "status": booking.status,
            "start": utc_to_local(booking.start_time, zone_name).isoformat(),
            "end": utc_to_local(booking.end_time, zone_name).isoformat(),
            "start_utc": ensure_utc(booking.start_time).isoformat(),
            "end_utc": ensure_utc(booking.end_time).isoformat(),
            "timezone": zone_name,
            "duration_minutes": int(booking.duration_minutes),
            "invitee": InviteeResponse.model_validate(invitee) if invitee else None,
            "answers": [
                AnswerResponse(question_id=a.question_id, answer=a.answer_text)
                for a in booking.answers or []
            ],
            "created_at": booking.created_at.isoformat() if booking.created_at else None,
            "cancelled_at": booking.cancelled_at.isoformat() if booking.cancelled_at else None,
            "cancellation_reason": booking.cancellation_reason,
        }

    @classmethod
    def from_booking(cls, booking: Any) -> "BookingResponse":
        """Create BookingResponse from a Booking ORM model."""
        return cls(**cls.build_fields(booking))


class BookingWithTokensResponse(BookingResponse):
    """Booking details plus the self-service links for its current version."""

    reschedule_token: str
    cancel_token: str

    @classmethod
    def from_result(cls, booking: Any, tokens: Dict[str, str]) -> "BookingWithTokensResponse":
        return cls(**cls.build_fields(booking), **tokens)
