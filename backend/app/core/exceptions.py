# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the scheduling backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
Every error carries a stable ``code`` so clients can branch on the
kind of failure instead of parsing messages.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationException(DomainException):
    """Raised when request or business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, code=code or "VALIDATION_ERROR", details=details)


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedException(DomainException):
    """Raised when a caller presents no valid credential."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific scheduling exceptions


class EventTypeNotFoundException(NotFoundException):
    """Raised when an event type is missing or deactivated."""

    def __init__(self, event_type_id: Any):
        super().__init__(
            message="Event type not found or not active",
            code="EVENT_TYPE_NOT_FOUND",
            details={"event_type_id": event_type_id},
        )


class BookingNotFoundException(NotFoundException):
    """Raised when a booking UUID does not resolve."""

    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking not found",
            code="BOOKING_NOT_FOUND",
            details={"booking_id": booking_id},
        )


class InvalidTimezoneException(ValidationException):
    """Raised for names that are not IANA zones."""

    def __init__(self, timezone_name: Any):
        super().__init__(
            message=f"Invalid timezone: {timezone_name}",
            code="INVALID_TIMEZONE",
            details={"timezone": timezone_name},
        )


class InvalidDateRangeException(ValidationException):
    """Raised when an availability range is reversed or too long."""

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="INVALID_DATE_RANGE", details=details)


class DurationMismatchException(BusinessRuleException):
    """Raised when a requested window does not match the event type duration."""

    def __init__(self, expected_minutes: int, provided_minutes: float):
        super().__init__(
            message="Duration does not match event type",
            code="DURATION_MISMATCH",
            details={
                "expected_minutes": expected_minutes,
                "provided_minutes": provided_minutes,
            },
        )


class SlotUnavailableException(ConflictException):
    """Raised when a requested window is not (or no longer) bookable."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "Selected time slot is no longer available",
            code="SLOT_UNAVAILABLE",
            details=details or {},
        )


class InvalidTokenException(UnauthorizedException):
    """Raised when an action token fails verification."""

    def __init__(self, reason: str = "invalid"):
        super().__init__(
            message="Invalid or expired action token",
            code="INVALID_TOKEN",
            details={"reason": reason},
        )


class AlreadyCancelledException(ConflictException):
    """Raised when cancelling a booking that is already cancelled."""

    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking is already cancelled",
            code="ALREADY_CANCELLED",
            details={"booking_id": booking_id},
        )


class NotConfirmedException(BusinessRuleException):
    """Raised when a booking is not in a state that allows the transition."""

    def __init__(self, booking_id: str, current_status: str):
        super().__init__(
            message=f"Booking cannot be rescheduled - current status: {current_status}",
            code="NOT_CONFIRMED",
            details={"booking_id": booking_id, "status": current_status},
        )


class TransientStoreException(ServiceException):
    """Raised when the store is busy; the caller should retry shortly."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message=message or "Service temporarily busy. Please retry.",
            code="STORE_BUSY",
            details={"retry_after_seconds": 2},
        )

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail=self.to_dict(),
            headers={"Retry-After": "2"},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


def is_store_busy(exc: Exception) -> bool:
    """
    Check if an exception indicates the store could not take the write lock.

    SQLite reports ``database is locked`` when the busy timeout elapses;
    PostgreSQL reports deadlocks and serialization failures.
    """
    error_str = str(exc).lower()
    return (
        "database is locked" in error_str
        or "deadlock detected" in error_str
        or "could not serialize" in error_str
    )


def store_error_cause(exc: BaseException) -> BaseException:
    """Return the driver-level error behind a ``RepositoryException`` chain."""
    cause = exc
    while isinstance(cause, RepositoryException) and cause.__cause__ is not None:
        cause = cause.__cause__
    return cause
