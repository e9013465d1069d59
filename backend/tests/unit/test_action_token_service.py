from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import jwt
import pytest

from app.core.exceptions import InvalidTokenException
from app.services.action_token_service import ActionTokenService, TokenAction

pytestmark = pytest.mark.unit

SECRET = "unit-test-secret"


@pytest.fixture
def service() -> ActionTokenService:
    return ActionTokenService(secret=SECRET, ttl_hours=24)


@pytest.fixture
def booking():
    return SimpleNamespace(id="5f0c6a3e-2f7e-4a53-9d61-4c9c0c1f7a10", version=1)


def _reason(exc_info) -> str:
    return exc_info.value.details["reason"]


def test_issue_and_verify_round_trip(service, booking) -> None:
    token = service.issue(booking, TokenAction.RESCHEDULE)
    claims = service.verify(token, booking.id, TokenAction.RESCHEDULE, current_version=1)

    assert claims["sub"] == booking.id
    assert claims["action"] == "reschedule"
    assert claims["ver"] == 1


def test_issue_pair_returns_both_tokens(service, booking) -> None:
    tokens = service.issue_pair(booking)
    assert set(tokens) == {"reschedule_token", "cancel_token"}
    service.verify(tokens["cancel_token"], booking.id, TokenAction.CANCEL)


def test_expired_token(service, booking) -> None:
    issued = datetime.now(timezone.utc) - timedelta(hours=25)
    token = service.issue(booking, TokenAction.CANCEL, now=issued)

    with pytest.raises(InvalidTokenException) as exc_info:
        service.verify(token, booking.id, TokenAction.CANCEL)
    assert _reason(exc_info) == "expired"


def test_foreign_signature_is_rejected(booking) -> None:
    token = ActionTokenService(secret="someone-else").issue(booking, TokenAction.CANCEL)

    with pytest.raises(InvalidTokenException) as exc_info:
        ActionTokenService(secret=SECRET).verify(token, booking.id, TokenAction.CANCEL)
    assert _reason(exc_info) == "invalid_signature"


def test_garbage_and_missing_tokens(service, booking) -> None:
    with pytest.raises(InvalidTokenException) as exc_info:
        service.verify("not-a-token", booking.id, TokenAction.CANCEL)
    assert _reason(exc_info) == "invalid_signature"

    with pytest.raises(InvalidTokenException) as exc_info:
        service.verify("", booking.id, TokenAction.CANCEL)
    assert _reason(exc_info) == "missing"


def test_token_without_required_claims_is_rejected(service, booking) -> None:
    token = jwt.encode({"sub": booking.id, "action": "cancel"}, SECRET, algorithm="HS256")
    with pytest.raises(InvalidTokenException):
        service.verify(token, booking.id, TokenAction.CANCEL)


def test_action_and_booking_must_match(service, booking) -> None:
    token = service.issue(booking, TokenAction.CANCEL)

    with pytest.raises(InvalidTokenException) as exc_info:
        service.verify(token, booking.id, TokenAction.RESCHEDULE)
    assert _reason(exc_info) == "action_mismatch"

    with pytest.raises(InvalidTokenException) as exc_info:
        service.verify(token, "another-booking", TokenAction.CANCEL)
    assert _reason(exc_info) == "booking_mismatch"


def test_only_reschedule_tokens_are_version_bound(service, booking) -> None:
    reschedule = service.issue(booking, TokenAction.RESCHEDULE)
    cancel = service.issue(booking, TokenAction.CANCEL)

    with pytest.raises(InvalidTokenException) as exc_info:
        service.verify(reschedule, booking.id, TokenAction.RESCHEDULE, current_version=2)
    assert _reason(exc_info) == "stale"

    claims = service.verify(cancel, booking.id, TokenAction.CANCEL, current_version=2)
    assert claims["ver"] == 1


def test_invalid_token_maps_to_401(service, booking) -> None:
    with pytest.raises(InvalidTokenException) as exc_info:
        service.verify("", booking.id, TokenAction.CANCEL)
    http_exc = exc_info.value.to_http_exception()
    assert http_exc.status_code == 401
    assert http_exc.detail["code"] == "INVALID_TOKEN"
