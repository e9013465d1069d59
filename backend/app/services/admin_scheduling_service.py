"""Service layer for admin scheduling endpoints."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, time, timedelta, timezone
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    EventTypeNotFoundException,
    NotFoundException,
    RepositoryException,
    ServiceException,
    TransientStoreException,
    is_store_busy,
    store_error_cause,
)
from app.models.availability import AvailabilityException, AvailabilityRule
from app.models.booking import Booking, BookingStatus
from app.models.event_type import EventType
from app.repositories.factory import RepositoryFactory
from app.schemas.admin import EventTypeCreate, EventTypeUpdate, ExceptionUpsert, RuleCreate
from app.services.base import BaseService

logger = logging.getLogger(__name__)

MAX_BOOKING_PAGE_SIZE = 200


class AdminSchedulingService(BaseService):
    """Admin management of event types, availability and bookings."""

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.event_type_repository = RepositoryFactory.create_event_type_repository(db)
        self.availability_repository = RepositoryFactory.create_availability_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    # Event types

    def list_event_types(self, include_inactive: bool = True) -> List[EventType]:
        if include_inactive:
            return self.event_type_repository.list_all()
        return self.event_type_repository.list_active()

    @BaseService.measure_operation("admin.create_event_type")
    def create_event_type(self, data: EventTypeCreate) -> EventType:
        fields = data.model_dump(exclude={"questions"})
        with self._store_errors(), self.transaction():
            event_type = self.event_type_repository.create(**fields)
            for question in data.questions:
                self.event_type_repository.add_question(event_type.id, **question.model_dump())
        self.log_operation("admin.create_event_type", event_type_id=event_type.id)
        return event_type

    @BaseService.measure_operation("admin.update_event_type")
    def update_event_type(self, event_type_id: int, data: EventTypeUpdate) -> EventType:
        """Apply a partial update; changes affect future slot generation only."""
        with self._store_errors(), self.transaction():
            event_type = self._require_event_type(event_type_id)
            for key, value in data.model_dump(exclude_unset=True).items():
                setattr(event_type, key, value)
            self.event_type_repository.flush()
        self.log_operation("admin.update_event_type", event_type_id=event_type_id)
        return event_type

    @BaseService.measure_operation("admin.deactivate_event_type")
    def deactivate_event_type(self, event_type_id: int) -> EventType:
        with self._store_errors(), self.transaction():
            event_type = self._require_event_type(event_type_id)
            event_type.deactivate()
        return event_type

    # Weekly rules

    def list_rules(self, event_type_id: Optional[int] = None) -> List[AvailabilityRule]:
        return self.availability_repository.list_rules(event_type_id)

    @BaseService.measure_operation("admin.create_rule")
    def create_rule(self, data: RuleCreate) -> AvailabilityRule:
        with self._store_errors(), self.transaction():
            self._require_event_type(data.event_type_id)
            rule = self.availability_repository.create_rule(**data.model_dump(), is_active=True)
        self.log_operation("admin.create_rule", rule_id=rule.id, event_type_id=rule.event_type_id)
        return rule

    @BaseService.measure_operation("admin.deactivate_rule")
    def deactivate_rule(self, rule_id: int) -> AvailabilityRule:
        """Soft-delete a rule; existing bookings are unaffected."""
        with self._store_errors(), self.transaction():
            rule = self.availability_repository.get_by_id(rule_id)
            if rule is None:
                raise NotFoundException(
                    "Availability rule not found",
                    code="RULE_NOT_FOUND",
                    details={"rule_id": rule_id},
                )
            rule.is_active = False
        return rule

    # Date exceptions

    def list_exceptions(
        self,
        event_type_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[AvailabilityException]:
        return self.availability_repository.list_exceptions(event_type_id, start_date, end_date)

    @BaseService.measure_operation("admin.upsert_exception")
    def upsert_exception(self, data: ExceptionUpsert) -> AvailabilityException:
        """Create or replace the exception for (event type, date)."""
        is_custom = data.exception_type == "custom_hours"
        with self._store_errors(), self.transaction():
            self._require_event_type(data.event_type_id)
            exception = self.availability_repository.upsert_exception(
                data.event_type_id,
                data.exception_date,
                exception_type=data.exception_type,
                start_time=data.start_time if is_custom else None,
                end_time=data.end_time if is_custom else None,
                timezone=data.timezone,
                reason=data.reason,
            )
        self.log_operation(
            "admin.upsert_exception",
            event_type_id=data.event_type_id,
            exception_date=data.exception_date.isoformat(),
            exception_type=data.exception_type,
        )
        return exception

    @BaseService.measure_operation("admin.delete_exception")
    def delete_exception(self, exception_id: int) -> None:
        with self._store_errors(), self.transaction():
            if not self.availability_repository.delete_exception(exception_id):
                raise NotFoundException(
                    "Availability exception not found",
                    code="EXCEPTION_NOT_FOUND",
                    details={"exception_id": exception_id},
                )

    # Bookings

    def list_bookings(
        self,
        *,
        status: Optional[str] = None,
        event_type_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Booking], int]:
        """
        List bookings with filters; dates bound the UTC start day inclusively.

        Returns:
            (page, total) with ``limit`` clamped to 1..200
        """
        limit = max(1, min(limit, MAX_BOOKING_PAGE_SIZE))
        offset = max(0, offset)
        start_from = (
            datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None
        )
        start_before = (
            datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
            if end_date
            else None
        )
        return self.booking_repository.list_with_filters(
            status=status,
            event_type_id=event_type_id,
            start_from=start_from,
            start_before=start_before,
            limit=limit,
            offset=offset,
        )

    @BaseService.measure_operation("admin.get_stats")
    def get_stats(self) -> Dict[str, Any]:
        return {
            "active_event_types": self.event_type_repository.count_active(),
            "active_rules": self.availability_repository.count_active_rules(),
            "total_bookings": self.booking_repository.count_all(),
            "confirmed_bookings": self.booking_repository.count_by_status(
                BookingStatus.CONFIRMED
            ),
            "rescheduled_bookings": self.booking_repository.count_by_status(
                BookingStatus.RESCHEDULED
            ),
            "cancelled_bookings": self.booking_repository.count_by_status(
                BookingStatus.CANCELLED
            ),
        }

    # Internals

    def _require_event_type(self, event_type_id: int) -> EventType:
        event_type = self.event_type_repository.get_by_id(event_type_id)
        if event_type is None:
            raise EventTypeNotFoundException(event_type_id)
        return event_type

    @contextmanager
    def _store_errors(self) -> Iterator[None]:
        """Convert repository and SQLAlchemy failures into ServiceException."""
        try:
            yield
        except (RepositoryException, SQLAlchemyError) as exc:
            if is_store_busy(store_error_cause(exc)):
                self.logger.warning(f"Store busy during admin scheduling write: {exc}")
                raise TransientStoreException() from exc
            self.logger.error(f"Admin scheduling write failed: {exc}")
            raise ServiceException(
                "Database operation failed", code="DATABASE_ERROR", details={"error": str(exc)}
            ) from exc
