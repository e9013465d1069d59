# backend/app/services/booking_service.py
"""
Booking Service for the scheduling backend.

Handles the booking lifecycle:
- Creation inside a serialized transaction (one winner per window)
- Token-authorized reschedule and cancel for invitees
- Admin reschedule and cancel without tokens

State machine: confirmed -> {rescheduled, cancelled}; rescheduled ->
{rescheduled, cancelled}; cancelled is terminal. Every transition bumps
the booking version.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ..core.exceptions import (
    AlreadyCancelledException,
    BookingNotFoundException,
    DurationMismatchException,
    EventTypeNotFoundException,
    InvalidTokenException,
    NotConfirmedException,
    RepositoryException,
    SlotUnavailableException,
    TransientStoreException,
    ValidationException,
    is_store_busy,
    store_error_cause,
)
from ..core.timezone_utils import ensure_utc
from ..database import begin_write
from ..models.booking import Booking, BookingStatus
from ..models.event_type import EventType
from ..models.notification import NotificationKind
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from ..repositories.event_type_repository import EventTypeRepository
from ..schemas.booking import BookingCreateRequest
from .action_token_service import ActionTokenService, TokenAction
from .availability_service import AvailabilityService
from .base import BaseService
from .conflict_checker import ConflictChecker
from .notification_service import NotificationService

logger = logging.getLogger(__name__)

ADMIN_CANCEL_REASON = "Cancelled by admin"


@dataclass
class BookingResult:
    """A booking plus the self-service tokens for its current version."""

    booking: Booking
    tokens: Dict[str, str] = field(default_factory=dict)


class BookingService(BaseService):
    """
    Service layer for booking operations.

    Centralizes the booking transaction and the reschedule/cancel state
    machine so public and admin routes share one implementation.
    """

    def __init__(
        self,
        db: Session,
        notification_service: Optional[NotificationService] = None,
        token_service: Optional[ActionTokenService] = None,
        availability_service: Optional[AvailabilityService] = None,
        repository: Optional[BookingRepository] = None,
        event_type_repository: Optional[EventTypeRepository] = None,
        conflict_checker: Optional[ConflictChecker] = None,
    ):
        """
        Initialize booking service.

        Args:
            db: Database session
            notification_service: Outbox writer and dispatcher
            token_service: Action token issuer/verifier
            availability_service: Slot computation for window validation
            repository: Optional BookingRepository instance
            event_type_repository: Optional EventTypeRepository instance
            conflict_checker: Optional ConflictChecker instance
        """
        super().__init__(db)
        self.repository = repository or RepositoryFactory.create_booking_repository(db)
        self.event_type_repository = (
            event_type_repository or RepositoryFactory.create_event_type_repository(db)
        )
        self.conflict_checker = conflict_checker or ConflictChecker(db, self.repository)
        self.availability_service = availability_service or AvailabilityService(
            db,
            event_type_repository=self.event_type_repository,
            conflict_checker=self.conflict_checker,
        )
        self.notification_service = notification_service or NotificationService(db)
        self.token_service = token_service or ActionTokenService()

    # Creation

    @BaseService.measure_operation("create_booking")
    def create_booking(
        self,
        request: Union[BookingCreateRequest, Mapping[str, Any]],
        now: Optional[datetime] = None,
    ) -> BookingResult:
        """
        Create a booking for an offered slot.

        Args:
            request: Validated request or raw mapping
            now: Reference instant for lead-time checks

        Returns:
            BookingResult with the confirmed booking and its tokens

        Raises:
            ValidationException: Malformed request
            EventTypeNotFoundException: Missing or inactive event type
            DurationMismatchException: Window length differs from the event type
            SlotUnavailableException: Window not offered or already taken
            TransientStoreException: Store busy; retry shortly
        """
        data = self._coerce_request(request)
        reference = ensure_utc(now) if now else datetime.now(timezone.utc)

        self.log_operation(
            "create_booking", event_type_id=data.event_type_id, start=data.start.isoformat()
        )

        with self._translate_store_errors():
            begin_write(self.db)
            event_type = self.event_type_repository.get_active(data.event_type_id)
            if event_type is None:
                raise EventTypeNotFoundException(data.event_type_id)

            self._validate_duration(event_type, data.start, data.end)
            answers = self._validate_answers(event_type, data)

            if not self.availability_service.is_slot_offered(
                event_type, data.start, data.end, now=reference
            ):
                prometheus_metrics.record_booking_outcome("conflict")
                raise SlotUnavailableException(details={"start": data.start.isoformat()})

            with self.transaction():
                locked = self.event_type_repository.lock_for_update(event_type.id)
                if locked is None:
                    raise EventTypeNotFoundException(data.event_type_id)
                if not self.conflict_checker.check_window(locked, data.start, data.end):
                    prometheus_metrics.record_booking_outcome("conflict")
                    raise SlotUnavailableException(details={"start": data.start.isoformat()})

                booking = self.repository.create(
                    event_type_id=locked.id,
                    start_time=data.start,
                    end_time=data.end,
                    status=BookingStatus.CONFIRMED.value,
                )
                self.repository.add_invitee(
                    booking,
                    name=data.name,
                    email=data.email,
                    timezone=data.timezone,
                    notes=data.notes,
                )
                if answers:
                    self.repository.add_answers(booking, answers)
                self.notification_service.enqueue_for_booking(
                    booking, NotificationKind.BOOKING_CONFIRMATION
                )

        prometheus_metrics.record_booking_outcome("created")
        self.logger.info(
            f"Booking {booking.id} confirmed for event type {booking.event_type_id} "
            f"at {booking.start_time.isoformat()}"
        )
        self._handle_post_commit(booking)
        return BookingResult(booking=booking, tokens=self.token_service.issue_pair(booking))

    # Invitee transitions

    @BaseService.measure_operation("reschedule_booking")
    def reschedule_booking(
        self,
        booking_id: str,
        token: str,
        new_start: datetime,
        new_end: datetime,
        now: Optional[datetime] = None,
    ) -> BookingResult:
        """
        Move a booking to a new window using its reschedule token.

        The token must match the booking's current version, so each
        reschedule link works once.
        """
        claims = self.token_service.verify(token, booking_id, TokenAction.RESCHEDULE)
        return self._reschedule(
            booking_id, new_start, new_end, now=now, token_version=claims.get("ver")
        )

    @BaseService.measure_operation("cancel_booking")
    def cancel_booking(
        self, booking_id: str, token: str, reason: Optional[str] = None
    ) -> Booking:
        """Cancel a booking using its cancel token."""
        self.token_service.verify(token, booking_id, TokenAction.CANCEL)
        return self._cancel(booking_id, reason)

    # Admin transitions

    @BaseService.measure_operation("admin_reschedule_booking")
    def admin_reschedule_booking(
        self,
        booking_id: str,
        new_start: datetime,
        new_end: datetime,
        now: Optional[datetime] = None,
    ) -> BookingResult:
        """Reschedule without a token; every other rule still applies."""
        self.log_operation("admin_reschedule_booking", booking_id=booking_id)
        return self._reschedule(booking_id, new_start, new_end, now=now)

    @BaseService.measure_operation("admin_cancel_booking")
    def admin_cancel_booking(self, booking_id: str, reason: Optional[str] = None) -> Booking:
        self.log_operation("admin_cancel_booking", booking_id=booking_id)
        return self._cancel(booking_id, reason or ADMIN_CANCEL_REASON)

    # Queries

    def get_booking(self, booking_id: str) -> Booking:
        """
        Get public booking details.

        Raises:
            BookingNotFoundException: Unknown UUID
        """
        booking = self.repository.get_with_details(booking_id)
        if booking is None:
            raise BookingNotFoundException(booking_id)
        return booking

    # Internals

    def _reschedule(
        self,
        booking_id: str,
        new_start: datetime,
        new_end: datetime,
        *,
        now: Optional[datetime],
        token_version: Optional[int] = None,
    ) -> BookingResult:
        start, end = ensure_utc(new_start), ensure_utc(new_end)
        if start >= end:
            raise ValidationException("End time must be after start time")
        reference = ensure_utc(now) if now else datetime.now(timezone.utc)

        with self._translate_store_errors():
            begin_write(self.db)
            booking = self._load_reschedulable(booking_id, token_version)
            event_type = self.event_type_repository.get_active(booking.event_type_id)
            if event_type is None:
                raise EventTypeNotFoundException(booking.event_type_id)

            self._validate_duration(event_type, start, end)
            if not self.availability_service.is_slot_offered(
                event_type, start, end, exclude_booking_id=booking.id, now=reference
            ):
                prometheus_metrics.record_booking_outcome("conflict")
                raise SlotUnavailableException(details={"start": start.isoformat()})

            with self.transaction():
                locked = self.event_type_repository.lock_for_update(event_type.id)
                if locked is None:
                    raise EventTypeNotFoundException(event_type.id)
                booking = self._load_reschedulable(booking_id, token_version, for_update=True)
                if not self.conflict_checker.check_window(
                    locked, start, end, exclude_booking_id=booking.id
                ):
                    prometheus_metrics.record_booking_outcome("conflict")
                    raise SlotUnavailableException(details={"start": start.isoformat()})

                booking.reschedule(start, end)
                self.repository.flush()
                self.notification_service.enqueue_for_booking(booking, NotificationKind.RESCHEDULE)

        prometheus_metrics.record_booking_outcome("rescheduled")
        self._handle_post_commit(booking)
        return BookingResult(booking=booking, tokens=self.token_service.issue_pair(booking))

    def _load_reschedulable(
        self, booking_id: str, token_version: Optional[int], for_update: bool = False
    ) -> Booking:
        booking = (
            self.repository.get_for_update(booking_id)
            if for_update
            else self.repository.get_by_id(booking_id)
        )
        if booking is None:
            raise BookingNotFoundException(booking_id)
        if booking.is_cancelled:
            raise NotConfirmedException(booking.id, booking.status)
        if token_version is not None and token_version != booking.version:
            raise InvalidTokenException("stale")
        return booking

    def _cancel(self, booking_id: str, reason: Optional[str]) -> Booking:
        with self._translate_store_errors():
            with self.transaction():
                booking = self.repository.get_for_update(booking_id)
                if booking is None:
                    raise BookingNotFoundException(booking_id)
                if booking.is_cancelled:
                    raise AlreadyCancelledException(booking.id)
                booking.cancel(reason)
                self.repository.flush()
                self.notification_service.enqueue_for_booking(
                    booking, NotificationKind.CANCELLATION
                )

        prometheus_metrics.record_booking_outcome("cancelled")
        self._handle_post_commit(booking)
        return booking

    def _coerce_request(
        self, request: Union[BookingCreateRequest, Mapping[str, Any]]
    ) -> BookingCreateRequest:
        if isinstance(request, BookingCreateRequest):
            return request
        try:
            return BookingCreateRequest.model_validate(dict(request))
        except ValidationError as exc:
            raise ValidationException(
                "Invalid booking request",
                details={"errors": exc.errors(include_url=False, include_context=False)},
            ) from None

    @staticmethod
    def _validate_duration(event_type: EventType, start: datetime, end: datetime) -> None:
        expected = timedelta(minutes=event_type.duration_minutes)
        if end - start != expected:
            raise DurationMismatchException(
                expected_minutes=event_type.duration_minutes,
                provided_minutes=(end - start).total_seconds() / 60,
            )

    def _validate_answers(
        self, event_type: EventType, data: BookingCreateRequest
    ) -> List[Tuple[int, str]]:
        """Check answers against the event type's questions."""
        questions = {q.id: q for q in self.event_type_repository.get_questions(event_type.id)}
        answers: Dict[int, str] = {}
        for item in data.answers:
            if item.question_id not in questions:
                raise ValidationException(
                    "Answer references an unknown question",
                    details={"question_id": item.question_id},
                )
            answers[item.question_id] = item.answer

        missing = [
            q.id for q in questions.values() if q.is_required and not answers.get(q.id, "").strip()
        ]
        if missing:
            raise ValidationException(
                "Required questions were not answered", details={"question_ids": missing}
            )
        return list(answers.items())

    @contextmanager
    def _translate_store_errors(self) -> Iterator[None]:
        """Map integrity and lock failures from the store onto domain errors."""
        try:
            yield
        except (IntegrityError, OperationalError, RepositoryException) as exc:
            self.db.rollback()
            cause = store_error_cause(exc)
            if isinstance(cause, IntegrityError):
                prometheus_metrics.record_booking_outcome("conflict")
                self.logger.info(f"Booking insert lost a race: {cause.orig}")
                raise SlotUnavailableException() from exc
            if isinstance(cause, OperationalError) and is_store_busy(cause):
                prometheus_metrics.record_booking_outcome("busy")
                self.logger.warning(f"Store busy during booking transaction: {cause.orig}")
                raise TransientStoreException() from exc
            raise
        except Exception:
            self.db.rollback()
            raise

    def _handle_post_commit(self, booking: Booking) -> None:
        """Deliver outbox rows for the booking; failures are logged, never raised."""
        try:
            self.notification_service.dispatch_for_booking(booking.id)
        except Exception as e:
            self.logger.error(
                f"Failed to dispatch notifications for booking {booking.id}: {str(e)}"
            )
