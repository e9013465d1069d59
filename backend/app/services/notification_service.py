# backend/app/services/notification_service.py
"""
Notification Service for the scheduling backend.

Bookings write outbox rows inside their own transaction; this service
delivers them afterwards through a pluggable sender. Delivery failures are
recorded on the row and logged, and never touch booking state.

Also owns the reminder sweep: active bookings starting within the reminder
window get exactly one reminder row each (idempotency key per booking and
start time, so a rescheduled booking is reminded again for its new slot).
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
import logging
from typing import Dict, Iterable, Optional, Protocol

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.timezone_utils import ensure_utc, utc_to_local
from ..database import begin_write
from ..models.booking import Booking
from ..models.notification import (
    Notification,
    NotificationKind,
    NotificationStatus,
    reminder_key,
)
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories import RepositoryFactory
from ..repositories.booking_repository import BookingRepository
from ..repositories.notification_repository import NotificationRepository
from .base import BaseService

logger = logging.getLogger(__name__)


class NotificationSender(Protocol):
    """Delivery backend (SMTP, provider API, ...) plugged into the dispatcher."""

    def send(self, recipient: str, subject: str, body: str) -> None:
        ...


class LoggingNotificationSender:
    """Sender that only logs; used when no delivery provider is configured."""

    def send(self, recipient: str, subject: str, body: str) -> None:
        logger.info(f"Notification to {recipient}: {subject}")


_SUBJECTS = {
    NotificationKind.BOOKING_CONFIRMATION.value: "Booking confirmed: {event}",
    NotificationKind.CANCELLATION.value: "Booking cancelled: {event}",
    NotificationKind.RESCHEDULE.value: "Booking rescheduled: {event}",
    NotificationKind.REMINDER.value: "Reminder: {event} is coming up",
}


def render_notification(notification: Notification, booking: Booking) -> tuple[str, str]:
    """Build subject and plain-text body for an outbox row."""
    event_name = booking.event_type.name if booking.event_type else "Meeting"
    zone_name = (booking.invitee.timezone if booking.invitee else None) or "UTC"
    start_local = utc_to_local(booking.start_time, zone_name)
    end_local = utc_to_local(booking.end_time, zone_name)
    name = booking.invitee.name if booking.invitee else ""

    subject = _SUBJECTS.get(notification.notification_type, "{event}").format(event=event_name)
    lines = [
        f"Hi {name},",
        "",
        f"{event_name}: {start_local:%A %d %B %Y %H:%M} - {end_local:%H:%M} ({zone_name})",
        f"Status: {booking.status}",
        f"Reference: {booking.id}",
    ]
    if booking.cancellation_reason:
        lines.append(f"Reason: {booking.cancellation_reason}")
    return subject, "\n".join(lines)


class NotificationService(BaseService):
    """Writes and dispatches notification outbox rows."""

    def __init__(
        self,
        db: Session,
        sender: Optional[NotificationSender] = None,
        repository: Optional[NotificationRepository] = None,
        booking_repository: Optional[BookingRepository] = None,
        max_attempts: Optional[int] = None,
    ):
        super().__init__(db)
        self.sender: NotificationSender = sender or LoggingNotificationSender()
        self.repository = repository or RepositoryFactory.create_notification_repository(db)
        self.booking_repository = (
            booking_repository or RepositoryFactory.create_booking_repository(db)
        )
        self.max_attempts = max_attempts or settings.notification_max_attempts

    def enqueue_for_booking(
        self,
        booking: Booking,
        kind: NotificationKind,
        idempotency_key: Optional[str] = None,
    ) -> Optional[Notification]:
        """
        Add an outbox row for a booking in the caller's transaction.

        Returns None when the booking has no invitee email.
        """
        recipient = booking.invitee.email if booking.invitee else None
        if not recipient:
            self.logger.warning(
                f"Booking {booking.id} has no invitee email; skipping {kind.value}"
            )
            return None
        key = idempotency_key or f"{kind.value}:{booking.id}:{booking.version}"
        return self.repository.enqueue(
            booking_id=booking.id,
            notification_type=kind.value,
            recipient_email=recipient,
            idempotency_key=key,
        )

    @BaseService.measure_operation("dispatch_pending")
    def dispatch_pending(self, limit: int = 100) -> Dict[str, int]:
        """
        Deliver pending outbox rows.

        Returns:
            Counts of ``sent``, ``failed`` (terminal) and ``retry`` rows
        """
        begin_write(self.db)
        counts = self._deliver_all(self.repository.fetch_pending(limit=limit))
        if any(counts.values()):
            self.log_operation("dispatch_pending", **counts)
        return counts

    def dispatch_for_booking(self, booking_id: str) -> Dict[str, int]:
        """Deliver pending rows belonging to one booking."""
        begin_write(self.db)
        return self._deliver_all(
            n
            for n in self.repository.list_for_booking(booking_id)
            if n.status == NotificationStatus.PENDING.value
        )

    @BaseService.measure_operation("enqueue_due_reminders")
    def enqueue_due_reminders(
        self, now: Optional[datetime] = None, window_hours: Optional[int] = None
    ) -> int:
        """
        Create reminder rows for active bookings starting within the window.

        Args:
            now: Reference instant (defaults to the current time)
            window_hours: Look-ahead in hours (defaults to settings)

        Returns:
            Number of reminders newly enqueued
        """
        reference = ensure_utc(now) if now else datetime.now(timezone.utc)
        window = timedelta(hours=window_hours or settings.reminder_window_hours)

        created = 0
        with self.transaction():
            for booking in self.booking_repository.get_upcoming_active(
                reference, reference + window
            ):
                key = reminder_key(booking.id, booking.start_time)
                if self.repository.get_by_key(key) is not None:
                    continue
                if self.enqueue_for_booking(booking, NotificationKind.REMINDER, key) is not None:
                    created += 1

        if created:
            self.logger.info(f"Enqueued {created} booking reminders")
        return created

    def run_reminder_cycle(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Enqueue due reminders and deliver everything pending."""
        enqueued = self.enqueue_due_reminders(now=now)
        counts = self.dispatch_pending()
        return {"enqueued": enqueued, **counts}

    def _deliver_all(self, notifications: Iterable[Notification]) -> Dict[str, int]:
        """
        Deliver rows fetched under the write lock.

        Each delivery commits its status change, which ends the fetch
        transaction; when there was nothing to deliver it is closed here.
        """
        counts = {"sent": 0, "failed": 0, "retry": 0}
        for notification in notifications:
            counts[self._deliver(notification)] += 1
        if self.db.in_transaction():
            self.db.commit()
        return counts

    def _deliver(self, notification: Notification) -> str:
        attempt = (notification.attempt_count or 0) + 1
        prometheus_metrics.record_notification_attempt(notification.notification_type)
        booking = notification.booking

        if notification.notification_type == NotificationKind.REMINDER.value and (
            booking.is_cancelled
        ):
            with self.transaction():
                notification.mark_failed(attempt, "booking cancelled", terminal=True)
            prometheus_metrics.record_notification_outcome(
                notification.notification_type, "skipped"
            )
            return "failed"

        try:
            subject, body = render_notification(notification, booking)
            self.sender.send(notification.recipient_email, subject, body)
        except Exception as exc:
            terminal = attempt >= self.max_attempts
            self.logger.error(
                f"Notification {notification.id} ({notification.notification_type}) "
                f"attempt {attempt} failed: {exc}"
            )
            with self.transaction():
                notification.mark_failed(attempt, str(exc), terminal=terminal)
            if terminal:
                prometheus_metrics.record_notification_outcome(
                    notification.notification_type, "failed"
                )
                return "failed"
            return "retry"

        with self.transaction():
            notification.mark_sent(attempt)
        prometheus_metrics.record_notification_outcome(notification.notification_type, "sent")
        return "sent"
