# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.action_token_service import ActionTokenService
from ...services.admin_scheduling_service import AdminSchedulingService
from ...services.availability_service import AvailabilityService
from ...services.booking_service import BookingService
from ...services.notification_service import NotificationService
from .database import get_db

logger = logging.getLogger(__name__)


def get_token_service() -> ActionTokenService:
    """Get the action token service configured from settings."""
    return ActionTokenService()


def get_notification_service(db: Session = Depends(get_db)) -> NotificationService:
    """
    Get notification service instance.

    Args:
        db: Database session

    Returns:
        NotificationService instance using the default sender
    """
    return NotificationService(db)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    return AvailabilityService(db)


def get_booking_service(
    db: Session = Depends(get_db),
    notification_service: NotificationService = Depends(get_notification_service),
    token_service: ActionTokenService = Depends(get_token_service),
) -> BookingService:
    """
    Get booking service instance with all dependencies.

    Args:
        db: Database session
        notification_service: Outbox writer and dispatcher
        token_service: Action token issuer/verifier

    Returns:
        BookingService instance
    """
    return BookingService(
        db, notification_service=notification_service, token_service=token_service
    )


def get_admin_scheduling_service(db: Session = Depends(get_db)) -> AdminSchedulingService:
    return AdminSchedulingService(db)
