# backend/app/routes/v1/admin_scheduling.py
"""
Admin scheduling routes - API v1

Mounted under /api/v1/admin/scheduling; every endpoint requires the
``X-Admin-Key`` header.

Endpoints:
    GET /stats - Scheduling dashboard counters
    GET|POST /event-types, PATCH|DELETE /event-types/{id}
    GET|POST /rules, DELETE /rules/{id}
    GET|PUT /exceptions, DELETE /exceptions/{id}
    GET /bookings - Filtered booking list
    GET /bookings/{uuid}
    POST /bookings/{uuid}/cancel
    POST /bookings/{uuid}/reschedule
    POST /reminders/run - Enqueue due reminders and dispatch the outbox
"""

import asyncio
from datetime import date
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, Response, status

from ...api.dependencies import (
    get_admin_scheduling_service,
    get_booking_service,
    get_notification_service,
    require_admin,
)
from ...core.exceptions import DomainException
from ...schemas.admin import (
    AdminCancelRequest,
    AdminEventTypeResponse,
    AdminRescheduleRequest,
    BookingListResponse,
    EventTypeCreate,
    EventTypeUpdate,
    ExceptionResponse,
    ExceptionUpsert,
    ReminderCycleResponse,
    RuleCreate,
    RuleResponse,
    SchedulingStatsResponse,
)
from ...schemas.booking import BookingResponse, BookingWithTokensResponse
from ...services.admin_scheduling_service import AdminSchedulingService
from ...services.booking_service import BookingService
from ...services.notification_service import NotificationService
from .scheduling import handle_domain_exception

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin-scheduling-v1"], dependencies=[Depends(require_admin)])

BookingStatusFilter = Literal["confirmed", "rescheduled", "cancelled"]


@router.get("/stats", response_model=SchedulingStatsResponse)
async def get_stats(
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> SchedulingStatsResponse:
    stats = await asyncio.to_thread(service.get_stats)
    return SchedulingStatsResponse(**stats)


# Event types


@router.get("/event-types", response_model=List[AdminEventTypeResponse])
async def list_event_types(
    include_inactive: bool = Query(True),
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> List[AdminEventTypeResponse]:
    event_types = await asyncio.to_thread(service.list_event_types, include_inactive)
    return [AdminEventTypeResponse.model_validate(et) for et in event_types]


@router.post(
    "/event-types", response_model=AdminEventTypeResponse, status_code=status.HTTP_201_CREATED
)
async def create_event_type(
    payload: EventTypeCreate,
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> AdminEventTypeResponse:
    try:
        event_type = await asyncio.to_thread(service.create_event_type, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return AdminEventTypeResponse.model_validate(event_type)


@router.patch("/event-types/{event_type_id}", response_model=AdminEventTypeResponse)
async def update_event_type(
    payload: EventTypeUpdate,
    event_type_id: int = Path(..., gt=0),
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> AdminEventTypeResponse:
    try:
        event_type = await asyncio.to_thread(service.update_event_type, event_type_id, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return AdminEventTypeResponse.model_validate(event_type)


@router.delete("/event-types/{event_type_id}", response_model=AdminEventTypeResponse)
async def deactivate_event_type(
    event_type_id: int = Path(..., gt=0),
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> AdminEventTypeResponse:
    """Deactivate (never delete) an event type."""
    try:
        event_type = await asyncio.to_thread(service.deactivate_event_type, event_type_id)
    except DomainException as e:
        handle_domain_exception(e)
    return AdminEventTypeResponse.model_validate(event_type)


# Weekly rules


@router.get("/rules", response_model=List[RuleResponse])
async def list_rules(
    event_type_id: Optional[int] = Query(None, gt=0),
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> List[RuleResponse]:
    rules = await asyncio.to_thread(service.list_rules, event_type_id)
    return [RuleResponse.model_validate(rule) for rule in rules]


@router.post("/rules", response_model=RuleResponse, status_code=status.HTTP_201_CREATED)
async def create_rule(
    payload: RuleCreate,
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> RuleResponse:
    try:
        rule = await asyncio.to_thread(service.create_rule, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return RuleResponse.model_validate(rule)


@router.delete("/rules/{rule_id}", response_model=RuleResponse)
async def deactivate_rule(
    rule_id: int = Path(..., gt=0),
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> RuleResponse:
    try:
        rule = await asyncio.to_thread(service.deactivate_rule, rule_id)
    except DomainException as e:
        handle_domain_exception(e)
    return RuleResponse.model_validate(rule)


# Date exceptions


@router.get("/exceptions", response_model=List[ExceptionResponse])
async def list_exceptions(
    event_type_id: Optional[int] = Query(None, gt=0),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> List[ExceptionResponse]:
    exceptions = await asyncio.to_thread(service.list_exceptions, event_type_id, start, end)
    return [ExceptionResponse.model_validate(exc) for exc in exceptions]


@router.put("/exceptions", response_model=ExceptionResponse)
async def upsert_exception(
    payload: ExceptionUpsert,
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> ExceptionResponse:
    """Create or replace the exception for (event type, date)."""
    try:
        exception = await asyncio.to_thread(service.upsert_exception, payload)
    except DomainException as e:
        handle_domain_exception(e)
    return ExceptionResponse.model_validate(exception)


@router.delete("/exceptions/{exception_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exception(
    exception_id: int = Path(..., gt=0),
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> Response:
    try:
        await asyncio.to_thread(service.delete_exception, exception_id)
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Bookings


@router.get("/bookings", response_model=BookingListResponse)
async def list_bookings(
    booking_status: Optional[BookingStatusFilter] = Query(None, alias="status"),
    event_type_id: Optional[int] = Query(None, gt=0),
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    service: AdminSchedulingService = Depends(get_admin_scheduling_service),
) -> BookingListResponse:
    items, total = await asyncio.to_thread(
        lambda: service.list_bookings(
            status=booking_status,
            event_type_id=event_type_id,
            start_date=start,
            end_date=end,
            limit=limit,
            offset=offset,
        )
    )
    return BookingListResponse(
        items=[BookingResponse.from_booking(b) for b in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/bookings/{booking_uuid}", response_model=BookingResponse)
async def get_booking(
    booking_uuid: str = Path(..., min_length=1, max_length=36),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    try:
        booking = await asyncio.to_thread(booking_service.get_booking, booking_uuid)
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.from_booking(booking)


@router.post("/bookings/{booking_uuid}/cancel", response_model=BookingResponse)
async def admin_cancel_booking(
    booking_uuid: str = Path(..., min_length=1, max_length=36),
    payload: Optional[AdminCancelRequest] = Body(None),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingResponse:
    """Cancel any booking without a token."""
    reason = payload.reason if payload else None
    try:
        booking = await asyncio.to_thread(
            booking_service.admin_cancel_booking, booking_uuid, reason
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingResponse.from_booking(booking)


@router.post("/bookings/{booking_uuid}/reschedule", response_model=BookingWithTokensResponse)
async def admin_reschedule_booking(
    payload: AdminRescheduleRequest,
    booking_uuid: str = Path(..., min_length=1, max_length=36),
    booking_service: BookingService = Depends(get_booking_service),
) -> BookingWithTokensResponse:
    """Reschedule any booking without a token; slot rules still apply."""
    try:
        result = await asyncio.to_thread(
            booking_service.admin_reschedule_booking,
            booking_uuid,
            payload.new_start,
            payload.new_end,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return BookingWithTokensResponse.from_result(result.booking, result.tokens)


@router.post("/reminders/run", response_model=ReminderCycleResponse)
async def run_reminders(
    notification_service: NotificationService = Depends(get_notification_service),
) -> ReminderCycleResponse:
    """Run one reminder cycle (normally triggered by a scheduler every few minutes)."""
    counts = await asyncio.to_thread(notification_service.run_reminder_cycle)
    return ReminderCycleResponse(**counts)
