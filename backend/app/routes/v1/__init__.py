# backend/app/routes/v1/__init__.py
"""
API v1 Routes

Versioned API endpoints under /api/v1.
All new endpoints should be added here.
"""

from . import admin_scheduling, prometheus, scheduling

__all__ = [
    "admin_scheduling",
    "prometheus",
    "scheduling",
]
