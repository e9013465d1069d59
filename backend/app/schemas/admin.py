# backend/app/schemas/admin.py
"""
Admin scheduling schemas.

Covers event type management, weekly rules, date exceptions, booking
listing and the scheduling dashboard stats.
"""

from datetime import date, datetime
import re
from typing import List, Literal, Optional

from pydantic import Field, field_validator, model_validator

from ..core.constants import MAX_REASON_LENGTH
from ..core.timezone_utils import ensure_utc, is_valid_timezone
from ._strict_base import StrictModel, StrictRequestModel
from .booking import BookingResponse

HHMM_REGEX = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

LocationKindLiteral = Literal["video", "in_person", "phone"]
QuestionTypeLiteral = Literal["text", "textarea", "select", "radio", "checkbox"]


def _check_hhmm(value: Optional[str], *, allow_midnight_end: bool = False) -> Optional[str]:
    if value is None:
        return value
    if allow_midnight_end and value == "24:00":
        return value
    if not HHMM_REGEX.match(value):
        raise ValueError("Time must be in HH:MM format")
    return value


def _check_zone(value: str) -> str:
    if not is_valid_timezone(value):
        raise ValueError(f"Invalid timezone: {value}")
    return value


class QuestionCreate(StrictRequestModel):
    question_text: str = Field(..., min_length=1, max_length=500)
    question_type: QuestionTypeLiteral = "text"
    options: Optional[List[str]] = None
    is_required: bool = False
    display_order: int = Field(0, ge=0)


class EventTypeCreate(StrictRequestModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    duration_minutes: int = Field(..., gt=0, le=24 * 60)
    location_kind: LocationKindLiteral = "video"
    color: str = Field("#3b82f6", max_length=20)
    max_bookings_per_day: Optional[int] = Field(None, gt=0)
    buffer_before_minutes: int = Field(0, ge=0)
    buffer_after_minutes: int = Field(0, ge=0)
    min_lead_time_hours: int = Field(0, ge=0)
    max_advance_days: int = Field(60, gt=0)
    questions: List[QuestionCreate] = Field(default_factory=list)


class EventTypeUpdate(StrictRequestModel):
    """Partial update; omitted fields are left unchanged."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    duration_minutes: Optional[int] = Field(None, gt=0, le=24 * 60)
    location_kind: Optional[LocationKindLiteral] = None
    color: Optional[str] = Field(None, max_length=20)
    max_bookings_per_day: Optional[int] = Field(None, gt=0)
    buffer_before_minutes: Optional[int] = Field(None, ge=0)
    buffer_after_minutes: Optional[int] = Field(None, ge=0)
    min_lead_time_hours: Optional[int] = Field(None, ge=0)
    max_advance_days: Optional[int] = Field(None, gt=0)
    is_active: Optional[bool] = None


class AdminEventTypeResponse(StrictModel):
    id: int
    name: str
    description: Optional[str] = None
    duration_minutes: int
    location_kind: str
    color: str
    is_active: bool
    max_bookings_per_day: Optional[int] = None
    buffer_before_minutes: int
    buffer_after_minutes: int
    min_lead_time_hours: int
    max_advance_days: int


class RuleCreate(StrictRequestModel):
    event_type_id: int = Field(..., gt=0)
    day_of_week: int = Field(..., ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: str
    end_time: str
    timezone: str = "UTC"

    @field_validator("start_time")
    @classmethod
    def _start_format(cls, v: str) -> str:
        return _check_hhmm(v)

    @field_validator("end_time")
    @classmethod
    def _end_format(cls, v: str) -> str:
        return _check_hhmm(v, allow_midnight_end=True)

    @field_validator("timezone")
    @classmethod
    def _zone(cls, v: str) -> str:
        return _check_zone(v)

    @model_validator(mode="after")
    def _order(self) -> "RuleCreate":
        if self.start_time >= self.end_time:
            raise ValueError("Start time must be before end time")
        return self


class RuleResponse(StrictModel):
    id: int
    event_type_id: int
    day_of_week: int
    start_time: str
    end_time: str
    timezone: str
    is_active: bool


class ExceptionUpsert(StrictRequestModel):
    event_type_id: int = Field(..., gt=0)
    exception_date: date
    exception_type: Literal["unavailable", "custom_hours"]
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    timezone: str = "UTC"
    reason: Optional[str] = Field(None, max_length=200)

    @field_validator("start_time")
    @classmethod
    def _start_format(cls, v: Optional[str]) -> Optional[str]:
        return _check_hhmm(v)

    @field_validator("end_time")
    @classmethod
    def _end_format(cls, v: Optional[str]) -> Optional[str]:
        return _check_hhmm(v, allow_midnight_end=True)

    @field_validator("timezone")
    @classmethod
    def _zone(cls, v: str) -> str:
        return _check_zone(v)

    @model_validator(mode="after")
    def _custom_hours_window(self) -> "ExceptionUpsert":
        if self.exception_type == "custom_hours":
            if not self.start_time or not self.end_time:
                raise ValueError("custom_hours exceptions require start_time and end_time")
            if self.start_time >= self.end_time:
                raise ValueError("Start time must be before end time")
        return self


class ExceptionResponse(StrictModel):
    id: int
    event_type_id: int
    exception_date: date
    exception_type: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    timezone: str
    reason: Optional[str] = None


class AdminCancelRequest(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)


class AdminRescheduleRequest(StrictRequestModel):
    new_start: datetime
    new_end: datetime

    @field_validator("new_start", "new_end")
    @classmethod
    def _to_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @model_validator(mode="after")
    def _order(self) -> "AdminRescheduleRequest":
        if self.new_start >= self.new_end:
            raise ValueError("End time must be after start time")
        return self


class BookingListResponse(StrictModel):
    items: List[BookingResponse]
    total: int
    limit: int
    offset: int


class SchedulingStatsResponse(StrictModel):
    active_event_types: int
    active_rules: int
    total_bookings: int
    confirmed_bookings: int
    rescheduled_bookings: int
    cancelled_bookings: int


class ReminderCycleResponse(StrictModel):
    enqueued: int
    sent: int
    failed: int
    retry: int