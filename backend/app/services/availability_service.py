# backend/app/services/availability_service.py
"""
Availability Service for the scheduling backend.

Answers "which slots can be booked for this event type between these
dates?" by combining the stored rules and exceptions, the pure slot
generator and the conflict filter. The booking transaction uses
``is_slot_offered`` so a booked window always matches a slot this
service would have shown.
"""

from datetime import date, datetime, timedelta, timezone
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import EventTypeNotFoundException, InvalidDateRangeException
from ..core.timezone_utils import ensure_utc, get_zone
from ..models.event_type import EventType
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.availability_repository import AvailabilityRepository
from ..repositories.event_type_repository import EventTypeRepository
from .base import BaseService
from .conflict_checker import ConflictChecker, filter_slots
from .slot_generator import Slot, generate_slots

logger = logging.getLogger(__name__)


class AvailabilityService(BaseService):
    """Computes bookable slots for event types."""

    def __init__(
        self,
        db: Session,
        event_type_repository: Optional[EventTypeRepository] = None,
        availability_repository: Optional[AvailabilityRepository] = None,
        conflict_checker: Optional[ConflictChecker] = None,
    ):
        super().__init__(db)
        self.event_type_repository = (
            event_type_repository or RepositoryFactory.create_event_type_repository(db)
        )
        self.availability_repository = (
            availability_repository or RepositoryFactory.create_availability_repository(db)
        )
        self.conflict_checker = conflict_checker or ConflictChecker(db)

    @BaseService.measure_operation("get_available_slots")
    def get_available_slots(
        self,
        event_type_id: int,
        start_date: date,
        end_date: date,
        display_timezone: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """
        Get conflict-free slots for an event type.

        Args:
            event_type_id: Event type to query
            start_date: First civil date (inclusive)
            end_date: Last civil date (inclusive)
            display_timezone: IANA zone for local renderings
            now: Reference instant; defaults to the current time

        Returns:
            Dict with ``event_type``, ``slots`` and ``timezone``

        Raises:
            InvalidTimezoneException: Unknown display zone
            InvalidDateRangeException: Reversed or overly long range
            EventTypeNotFoundException: Missing or inactive event type
        """
        zone_name = display_timezone or settings.default_display_timezone
        get_zone(zone_name)
        self._validate_range(start_date, end_date)

        event_type = self.event_type_repository.get_active(event_type_id)
        if event_type is None:
            raise EventTypeNotFoundException(event_type_id)

        reference = ensure_utc(now) if now else datetime.now(timezone.utc)
        slots = self.compute_slots(event_type, start_date, end_date, zone_name, reference)

        self.log_operation(
            "get_available_slots",
            event_type_id=event_type_id,
            start_date=start_date.isoformat(),
            end_date=end_date.isoformat(),
            slot_count=len(slots),
        )
        prometheus_metrics.record_slots_generated(len(slots))
        return {"event_type": event_type, "slots": slots, "timezone": zone_name}

    def compute_slots(
        self,
        event_type: EventType,
        start_date: date,
        end_date: date,
        display_timezone: str,
        now: datetime,
        exclude_booking_id: Optional[str] = None,
    ) -> List[Slot]:
        """Generate slots for a loaded event type and pass them through the conflict filter."""
        rules = self.availability_repository.get_rules(event_type.id)
        exceptions = self.availability_repository.get_exceptions(
            event_type.id, start_date, end_date
        )
        candidates = generate_slots(
            event_type,
            rules,
            exceptions,
            start_date,
            end_date,
            display_timezone,
            now,
            step_minutes=settings.slot_step_minutes,
        )
        if not candidates:
            return []

        bookings = self.conflict_checker.load_bookings(
            event_type, candidates[0].start_utc, candidates[-1].end_utc, exclude_booking_id
        )
        return filter_slots(event_type, candidates, bookings, exclude_booking_id)

    def is_slot_offered(
        self,
        event_type: EventType,
        start: datetime,
        end: datetime,
        exclude_booking_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        Check that ``[start, end)`` exactly equals a currently offered slot.

        Civil dates one day either side of the UTC dates are generated so
        rules in zones far from UTC are covered.
        """
        start_utc, end_utc = ensure_utc(start), ensure_utc(end)
        reference = ensure_utc(now) if now else datetime.now(timezone.utc)
        slots = self.compute_slots(
            event_type,
            start_utc.date() - timedelta(days=1),
            end_utc.date() + timedelta(days=1),
            "UTC",
            reference,
            exclude_booking_id,
        )
        return any(slot.start_utc == start_utc and slot.end_utc == end_utc for slot in slots)

    def list_event_types(self) -> List[EventType]:
        """Active event types for the public catalogue."""
        return self.event_type_repository.list_active()

    @staticmethod
    def _validate_range(start_date: date, end_date: date) -> None:
        if start_date > end_date:
            raise InvalidDateRangeException(
                "Start date must be before end date",
                details={"start": start_date.isoformat(), "end": end_date.isoformat()},
            )
        max_days = settings.max_availability_range_days
        if (end_date - start_date).days > max_days:
            raise InvalidDateRangeException(
                f"Date range cannot exceed {max_days} days",
                details={"max_days": max_days},
            )
