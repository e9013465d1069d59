# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the scheduling backend.

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- RepositoryFactory: Factory for creating repository instances
- EventTypeRepository: Event types, questions and the booking row lock
- AvailabilityRepository: Weekly rules and date exceptions
- BookingRepository: Bookings, invitees and answers
- NotificationRepository: Notification outbox

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    repository = RepositoryFactory.create_availability_repository(db)
    rules = repository.get_rules(event_type_id)
"""

from .availability_repository import AvailabilityRepository
from .base_repository import BaseRepository
from .booking_repository import BookingRepository
from .event_type_repository import EventTypeRepository
from .factory import RepositoryFactory
from .notification_repository import NotificationRepository

__all__ = [
    "AvailabilityRepository",
    "BaseRepository",
    "BookingRepository",
    "EventTypeRepository",
    "NotificationRepository",
    "RepositoryFactory",
]
