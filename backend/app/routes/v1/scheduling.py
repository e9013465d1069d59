# backend/app/routes/v1/scheduling.py
"""
Public scheduling routes - API v1

Versioned scheduling endpoints under /api/v1/scheduling.
All business logic delegated to AvailabilityService and BookingService.

Endpoints:
    GET /health - Liveness probe for the scheduling module
    GET /event-types - Active event types with their booking questions
    GET /availability - Bookable slots for an event type and date range
    POST /book - Book a slot (returns reschedule/cancel tokens)
    POST /reschedule - Move a booking using its reschedule token
    POST /cancel - Cancel a booking using its cancel token
    GET /bookings/{uuid} - Public booking details
"""

import asyncio
from datetime import date, datetime, timezone
import logging
from typing import List, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Path, Query, status

from ...api.dependencies import get_availability_service, get_booking_service
from ...core.exceptions import DomainException
from ...schemas.availability import AvailabilityResponse, EventTypeResponse, SlotResponse
from ...schemas.booking import (
    BookingCreateRequest,
    BookingResponse,
    BookingWithTokensResponse,
    CancelRequest,
    RescheduleRequest,
)
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["scheduling-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/health")
async def scheduling_health() -> dict:
    """Liveness probe; does not touch the database."""
    return {
        "status": "ok",
        "service": "scheduling",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/event-types", response_model=List[EventTypeResponse])
async def list_event_types(
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> List[EventTypeResponse]:
    """List active event types."""
    event_types = await asyncio.to_thread(availability_service.list_event_types)
    return [EventTypeResponse.model_validate(event_type) for event_type in event_types]


@router.get("/availability", response_model=AvailabilityResponse)
async def get_availability(
    event_type_id: int = Query(..., gt=0),
    start: date = Query(..., description="First date (YYYY-MM-DD), inclusive"),
    end: date = Query(..., description="Last date (YYYY-MM-DD), inclusive"),
    timezone_name: Optional[str] = Query(None, alias="timezone"),
    availability_service: AvailabilityService = Depends(get_availability_service),
) -> AvailabilityResponse:
    """
    Get bookable slots for an event type.

    Slots are rendered in ``timezone`` (default UTC) and always carry their
    UTC instants.
    """
    try:
        result = await asyncio.to_thread(
            availability_service.get_available_slots,
            event_type_id,
            start,
            end,
            timezone_name,
        )
    except DomainException as e:
        handle_domain_exception(e)

    return AvailabilityResponse(
        event_type=EventTypeResponse.model_validate(result["event_type"]),
        slots=[SlotResponse.from_slot(slot) for slot in result["slots"]],
        timezone=result["timezone"],
    )


@router.post(
    "/book",
    response_model=BookingWithTokensResponse,
    status_code=status.HTTP_201_CREATED,
)
async def book_slot(
    payload: BookingCreateRequest,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingWithTokensResponse:
    """Create a booking for an offered slot."""
    try:
        result = await asyncio.to_thread(booking_service.create_booking, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingWithTokensResponse.from_result(result.booking, result.tokens)


@router.post("/reschedule", response_model=BookingWithTokensResponse)
async def reschedule_booking(
    payload: RescheduleRequest,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingWithTokensResponse:
    """Move a booking to a new slot; the previous reschedule token stops working."""
    try:
        result = await asyncio.to_thread(
            booking_service.reschedule_booking,
            payload.uuid,
            payload.token,
            payload.new_start,
            payload.new_end,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingWithTokensResponse.from_result(result.booking, result.tokens)


@router.post("/cancel", response_model=BookingResponse)
async def cancel_booking(
    payload: CancelRequest,
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel a booking."""
    try:
        booking = await asyncio.to_thread(
            booking_service.cancel_booking, payload.uuid, payload.token, payload.reason
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.from_booking(booking)


@router.get("/bookings/{booking_uuid}", response_model=BookingResponse)
async def get_booking(
    booking_uuid: str = Path(..., min_length=1, max_length=36),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Get public booking details."""
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_uuid)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.from_booking(booking)
