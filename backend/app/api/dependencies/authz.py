# backend/app/api/dependencies/authz.py
"""
Authorization helpers for admin scheduling routes.

Admin endpoints are guarded by a shared API key sent in the
``X-Admin-Key`` header. When no key is configured every admin request is
refused.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import Header, HTTPException, status

from app.core.config import settings

logger = logging.getLogger(__name__)

ADMIN_KEY_HEADER = "X-Admin-Key"


def _configured_admin_key() -> str:
    secret = settings.admin_api_key
    if secret is None:
        return ""
    return secret.get_secret_value() or ""


def require_admin(
    x_admin_key: Optional[str] = Header(default=None, alias=ADMIN_KEY_HEADER),
) -> None:
    """Reject requests whose admin key is missing or wrong (constant-time compare)."""
    expected = _configured_admin_key()
    if not expected:
        logger.warning("Admin request refused: no admin API key configured")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Admin access is not configured", "code": "ADMIN_DISABLED"},
        )
    provided = x_admin_key or ""
    if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"message": "Invalid admin key", "code": "ADMIN_UNAUTHORIZED"},
        )
