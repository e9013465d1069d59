"""HTTP tests for /api/v1/admin/scheduling and /metrics."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from fastapi.testclient import TestClient
import pytest

from app.core.config import settings

ADMIN = "/api/v1/admin/scheduling"
PUBLIC = "/api/v1/scheduling"


@pytest.fixture
def open_event_type(make_event_type, add_rule):
    event_type = make_event_type()
    for dow in range(7):
        add_rule(event_type, dow, "09:00", "17:00")
    return event_type


def _slots(client: TestClient, event_type_id: int, start: date, end: date) -> list[dict]:
    response = client.get(
        f"{PUBLIC}/availability",
        params={"event_type_id": event_type_id, "start": start.isoformat(), "end": end.isoformat()},
    )
    assert response.status_code == 200
    return response.json()["slots"]


def _book(client: TestClient, event_type_id: int, slot: dict, email: str = "ada@example.com"):
    response = client.post(
        f"{PUBLIC}/book",
        json={
            "event_type_id": event_type_id,
            "start": slot["start_utc"],
            "end": slot["end_utc"],
            "name": "Ada Lovelace",
            "email": email,
        },
    )
    assert response.status_code == 201
    return response.json()


def test_admin_disabled_without_configured_key(client, monkeypatch) -> None:
    monkeypatch.setattr(settings, "admin_api_key", None)

    response = client.get(f"{ADMIN}/stats", headers={"X-Admin-Key": "anything"})

    assert response.status_code == 403
    assert response.json()["code"] == "ADMIN_DISABLED"


@pytest.mark.parametrize("headers", [{}, {"X-Admin-Key": "wrong-key"}])
def test_admin_rejects_bad_keys(client, admin_key, headers) -> None:
    response = client.get(f"{ADMIN}/stats", headers=headers)

    assert response.status_code == 401
    assert response.json()["code"] == "ADMIN_UNAUTHORIZED"


def test_event_type_crud(client, admin_headers) -> None:
    created = client.post(
        f"{ADMIN}/event-types",
        headers=admin_headers,
        json={
            "name": "Strategy session",
            "duration_minutes": 60,
            "location_kind": "phone",
            "buffer_after_minutes": 15,
            "questions": [{"question_text": "Company name?", "is_required": True}],
        },
    )
    assert created.status_code == 201
    event_type = created.json()
    assert event_type["buffer_after_minutes"] == 15
    assert event_type["is_active"] is True

    public = client.get(f"{PUBLIC}/event-types").json()
    assert public[0]["questions"][0]["question_text"] == "Company name?"

    patched = client.patch(
        f"{ADMIN}/event-types/{event_type['id']}",
        headers=admin_headers,
        json={"name": "Strategy call"},
    )
    assert patched.status_code == 200
    assert patched.json()["name"] == "Strategy call"
    assert patched.json()["duration_minutes"] == 60

    removed = client.delete(f"{ADMIN}/event-types/{event_type['id']}", headers=admin_headers)
    assert removed.status_code == 200
    assert removed.json()["is_active"] is False
    assert client.get(f"{PUBLIC}/event-types").json() == []

    listed = client.get(f"{ADMIN}/event-types", headers=admin_headers).json()
    assert [et["id"] for et in listed] == [event_type["id"]]


def test_event_type_validation(client, admin_headers) -> None:
    response = client.post(
        f"{ADMIN}/event-types",
        headers=admin_headers,
        json={"name": "Zero", "duration_minutes": 0},
    )
    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"

    missing = client.patch(
        f"{ADMIN}/event-types/999", headers=admin_headers, json={"name": "Ghost"}
    )
    assert missing.status_code == 404
    assert missing.json()["code"] == "EVENT_TYPE_NOT_FOUND"


def test_rules_and_exceptions(client, admin_headers, make_event_type) -> None:
    event_type = make_event_type()
    day = datetime.now(timezone.utc).date() + timedelta(days=7)
    # Python weekday(): Monday=0; rules use Sunday=0
    dow = (day.weekday() + 1) % 7

    rule = client.post(
        f"{ADMIN}/rules",
        headers=admin_headers,
        json={
            "event_type_id": event_type.id,
            "day_of_week": dow,
            "start_time": "09:00",
            "end_time": "10:00",
        },
    )
    assert rule.status_code == 201
    assert len(_slots(client, event_type.id, day, day)) == 3

    bad_rule = client.post(
        f"{ADMIN}/rules",
        headers=admin_headers,
        json={
            "event_type_id": event_type.id,
            "day_of_week": dow,
            "start_time": "10:00",
            "end_time": "09:00",
        },
    )
    assert bad_rule.status_code == 422

    exception = client.put(
        f"{ADMIN}/exceptions",
        headers=admin_headers,
        json={
            "event_type_id": event_type.id,
            "exception_date": day.isoformat(),
            "exception_type": "unavailable",
            "reason": "Offsite",
        },
    )
    assert exception.status_code == 200
    assert _slots(client, event_type.id, day, day) == []

    listed = client.get(
        f"{ADMIN}/exceptions", headers=admin_headers, params={"event_type_id": event_type.id}
    ).json()
    assert [e["reason"] for e in listed] == ["Offsite"]

    deleted = client.delete(f"{ADMIN}/exceptions/{listed[0]['id']}", headers=admin_headers)
    assert deleted.status_code == 204
    assert len(_slots(client, event_type.id, day, day)) == 3

    deleted_again = client.delete(f"{ADMIN}/exceptions/{listed[0]['id']}", headers=admin_headers)
    assert deleted_again.status_code == 404

    deactivated = client.delete(f"{ADMIN}/rules/{rule.json()['id']}", headers=admin_headers)
    assert deactivated.status_code == 200
    assert deactivated.json()["is_active"] is False
    assert _slots(client, event_type.id, day, day) == []

    assert client.delete(f"{ADMIN}/rules/9999", headers=admin_headers).status_code == 404


def test_booking_management(client, admin_headers, open_event_type) -> None:
    day = datetime.now(timezone.utc).date() + timedelta(days=7)
    slots = _slots(client, open_event_type.id, day, day)
    first = _book(client, open_event_type.id, slots[0])
    second = _book(client, open_event_type.id, slots[4], email="grace@example.com")

    listing = client.get(f"{ADMIN}/bookings", headers=admin_headers, params={"limit": 1})
    assert listing.status_code == 200
    assert listing.json()["total"] == 2
    assert len(listing.json()["items"]) == 1

    detail = client.get(f"{ADMIN}/bookings/{first['uuid']}", headers=admin_headers)
    assert detail.json()["invitee"]["email"] == "ada@example.com"

    moved = client.post(
        f"{ADMIN}/bookings/{first['uuid']}/reschedule",
        headers=admin_headers,
        json={"new_start": slots[8]["start_utc"], "new_end": slots[8]["end_utc"]},
    )
    assert moved.status_code == 200
    assert moved.json()["status"] == "rescheduled"

    clash = client.post(
        f"{ADMIN}/bookings/{first['uuid']}/reschedule",
        headers=admin_headers,
        json={"new_start": slots[4]["start_utc"], "new_end": slots[4]["end_utc"]},
    )
    assert clash.status_code == 409

    cancelled = client.post(
        f"{ADMIN}/bookings/{second['uuid']}/cancel",
        headers=admin_headers,
        json={"reason": "Host unavailable"},
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["cancellation_reason"] == "Host unavailable"

    cancelled_no_body = client.post(
        f"{ADMIN}/bookings/{first['uuid']}/cancel", headers=admin_headers
    )
    assert cancelled_no_body.status_code == 200
    assert cancelled_no_body.json()["status"] == "cancelled"

    only_cancelled = client.get(
        f"{ADMIN}/bookings", headers=admin_headers, params={"status": "cancelled"}
    ).json()
    assert only_cancelled["total"] == 2

    stats = client.get(f"{ADMIN}/stats", headers=admin_headers).json()
    assert stats["total_bookings"] == 2
    assert stats["cancelled_bookings"] == 2
    assert stats["active_rules"] == 7


def test_reminder_run(client, admin_headers, open_event_type) -> None:
    today = datetime.now(timezone.utc).date()
    # The earliest offered slot always starts within the next 24 hours
    slot = _slots(client, open_event_type.id, today, today + timedelta(days=1))[0]
    _book(client, open_event_type.id, slot)

    first = client.post(f"{ADMIN}/reminders/run", headers=admin_headers)
    assert first.status_code == 200
    assert first.json() == {"enqueued": 1, "sent": 1, "failed": 0, "retry": 0}

    second = client.post(f"{ADMIN}/reminders/run", headers=admin_headers)
    assert second.json()["enqueued"] == 0


def test_metrics_endpoint(client: TestClient) -> None:
    client.get(f"{PUBLIC}/health")

    response = client.get("/metrics")

    assert response.status_code == 200
    assert "scheduling_" in response.text
