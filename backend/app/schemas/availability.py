# backend/app/schemas/availability.py
"""
Availability schemas: public event type catalogue and slot listings.

Slot times are ISO-8601 strings; ``start``/``end`` carry the display zone
offset and ``start_utc``/``end_utc`` the canonical instant.
"""

from typing import Any, List, Optional

from pydantic import Field

from ._strict_base import StrictModel


class QuestionResponse(StrictModel):
    id: int
    question_text: str
    question_type: str
    options: Optional[List[str]] = None
    is_required: bool
    display_order: int


class EventTypeResponse(StrictModel):
    """Public view of a bookable event type."""

    id: int
    name: str
    description: Optional[str] = None
    duration_minutes: int
    location_kind: str
    color: str
    max_bookings_per_day: Optional[int] = None
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0
    min_lead_time_hours: int = 0
    max_advance_days: int
    questions: List[QuestionResponse] = Field(default_factory=list)


class SlotResponse(StrictModel):
    start: str = Field(..., description="Slot start in the display timezone")
    end: str = Field(..., description="Slot end in the display timezone")
    start_utc: str
    end_utc: str

    @classmethod
    def from_slot(cls, slot: Any) -> "SlotResponse":
        return cls(**slot.to_dict())


class AvailabilityResponse(StrictModel):
    """Slots for one event type over the requested range."""

    event_type: EventTypeResponse
    slots: List[SlotResponse]
    timezone: str
