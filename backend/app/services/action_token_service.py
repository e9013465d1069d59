"""Signed self-service tokens for rescheduling and cancelling bookings."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
import logging
from typing import Any, Dict, Optional, cast

import jwt

from app.core.config import settings
from app.core.exceptions import InvalidTokenException, ServiceException
from app.models.booking import Booking

logger = logging.getLogger(__name__)


class TokenAction(str, Enum):
    RESCHEDULE = "reschedule"
    CANCEL = "cancel"


# Only reschedule links are pinned to the booking version; a cancel link
# keeps resolving so a repeat cancel reports the booking as already cancelled.
VERSION_BOUND_ACTIONS = frozenset({TokenAction.RESCHEDULE.value})


def _secret_value(value: Any) -> str:
    if value is None:
        return ""
    if hasattr(value, "get_secret_value"):
        return value.get_secret_value() or ""
    return str(value)


class ActionTokenService:
    """
    Issues and verifies JWT action tokens embedded in invitee links.

    Claims: ``sub`` (booking uuid), ``action``, ``ver`` (booking version),
    ``iat`` and ``exp``.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        ttl_hours: Optional[int] = None,
        algorithm: Optional[str] = None,
    ):
        self._secret = secret or _secret_value(settings.action_token_secret)
        if not self._secret:
            raise ServiceException(
                "Action token secret not configured", code="action_token_secret_missing"
            )
        self.ttl = timedelta(hours=ttl_hours or settings.action_token_ttl_hours)
        self.algorithm = algorithm or settings.action_token_algorithm

    def issue(self, booking: Booking, action: str, now: Optional[datetime] = None) -> str:
        """Create a token allowing ``action`` on ``booking``."""
        action_value = TokenAction(action).value
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "sub": str(booking.id),
            "action": action_value,
            "ver": int(booking.version or 1),
            "iat": issued_at,
            "exp": issued_at + self.ttl,
        }
        return cast(str, jwt.encode(claims, self._secret, algorithm=self.algorithm))

    def issue_pair(self, booking: Booking, now: Optional[datetime] = None) -> Dict[str, str]:
        """Reschedule and cancel tokens for a booking's current version."""
        return {
            "reschedule_token": self.issue(booking, TokenAction.RESCHEDULE, now=now),
            "cancel_token": self.issue(booking, TokenAction.CANCEL, now=now),
        }

    def verify(
        self,
        token: str,
        booking_id: str,
        expected_action: str,
        current_version: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Verify a token for a booking and action.

        Args:
            token: Encoded token from the invitee link
            booking_id: Booking the caller is acting on
            expected_action: Action being performed
            current_version: Booking version to enforce for version-bound actions

        Returns:
            Decoded claims

        Raises:
            InvalidTokenException: Bad signature, expired, or wrong booking/action/version
        """
        if not token:
            raise InvalidTokenException("missing")
        try:
            claims = cast(
                Dict[str, Any],
                jwt.decode(
                    token,
                    self._secret,
                    algorithms=[self.algorithm],
                    options={"require": ["sub", "exp", "iat"]},
                ),
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenException("expired") from None
        except jwt.InvalidTokenError as exc:
            logger.info(f"Rejected action token: {exc}")
            raise InvalidTokenException("invalid_signature") from None

        action = TokenAction(expected_action).value
        if claims.get("action") != action:
            raise InvalidTokenException("action_mismatch")
        if claims.get("sub") != str(booking_id):
            raise InvalidTokenException("booking_mismatch")
        if (
            action in VERSION_BOUND_ACTIONS
            and current_version is not None
            and claims.get("ver") != int(current_version)
        ):
            raise InvalidTokenException("stale")
        return claims
