# backend/app/repositories/notification_repository.py
"""
Repository for the notification outbox.

Implements transactional enqueue keyed by idempotency key, pending fetch
with locking, and status updates required by the dispatcher.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.models.booking import Booking
from app.models.notification import Notification, NotificationStatus

from .base_repository import BaseRepository

logger = logging.getLogger(__name__)

# Everything rendering needs, so delivery issues no reads after the fetch.
_DELIVERY_LOADS = (
    selectinload(Notification.booking).selectinload(Booking.invitee),
    selectinload(Notification.booking).selectinload(Booking.event_type),
)


class NotificationRepository(BaseRepository[Notification]):
    """Data access helpers for notification outbox rows."""

    def __init__(self, db: Session):
        super().__init__(db, Notification)

    def get_by_key(self, idempotency_key: str) -> Optional[Notification]:
        result = self.db.execute(
            select(Notification).where(Notification.idempotency_key == idempotency_key)
        )
        return result.scalar_one_or_none()

    def enqueue(
        self,
        *,
        booking_id: str,
        notification_type: str,
        recipient_email: str,
        idempotency_key: str,
    ) -> Notification:
        """
        Insert a pending row unless one already exists for the idempotency key.

        Returns the persisted row (existing or newly created).
        """
        existing = self.get_by_key(idempotency_key)
        if existing is not None:
            return existing

        row = Notification(
            booking_id=booking_id,
            notification_type=notification_type,
            recipient_email=recipient_email,
            idempotency_key=idempotency_key,
            status=NotificationStatus.PENDING.value,
            attempt_count=0,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def fetch_pending(self, limit: int = 100) -> list[Notification]:
        """Return pending rows oldest first, with their booking loaded."""
        stmt = (
            select(Notification)
            .options(*_DELIVERY_LOADS)
            .where(Notification.status == NotificationStatus.PENDING.value)
            .order_by(Notification.created_at.asc(), Notification.id.asc())
            .limit(limit)
        )
        if self.dialect_name == "postgresql":
            stmt = stmt.with_for_update(skip_locked=True)
        return list(self.db.execute(stmt).scalars().all())

    def list_for_booking(self, booking_id: str) -> list[Notification]:
        stmt = (
            select(Notification)
            .options(*_DELIVERY_LOADS)
            .where(Notification.booking_id == booking_id)
            .order_by(Notification.created_at.asc(), Notification.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())
