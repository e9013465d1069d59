# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .authz import require_admin
from .database import get_db
from .services import (
    get_admin_scheduling_service,
    get_availability_service,
    get_booking_service,
    get_notification_service,
    get_token_service,
)

__all__ = [
    # Auth
    "require_admin",
    # Database
    "get_db",
    # Services
    "get_admin_scheduling_service",
    "get_availability_service",
    "get_booking_service",
    "get_notification_service",
    "get_token_service",
]
