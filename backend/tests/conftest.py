# backend/tests/conftest.py
"""
Shared pytest fixtures for the scheduling backend.

Every test gets its own file-backed SQLite database under ``tmp_path`` so
tests never share state and concurrency tests can open several
connections to the same file.

Write transactions take the SQLite write lock with BEGIN IMMEDIATE and any
open transaction keeps other writers from committing. Tests that mix the
``db`` session with other sessions (HTTP requests, worker threads) must
commit or roll back ``db`` first.
"""

from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
import os
import sqlite3
from typing import Any, Callable, ContextManager, Dict, Generator, List, Optional

# Keep the application engine away from any real database before app imports.
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")

from fastapi.testclient import TestClient  # noqa: E402
from pydantic import SecretStr  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app import models  # noqa: E402,F401
from app.api.dependencies.database import get_db  # noqa: E402
from app.core.config import settings  # noqa: E402
from app.database import Base, build_engine, build_session_factory  # noqa: E402
from app.main import app  # noqa: E402
from app.models.availability import AvailabilityException, AvailabilityRule  # noqa: E402
from app.models.event_type import EventType, EventTypeQuestion  # noqa: E402

TEST_ADMIN_KEY = "test-admin-key"

# Monday 6 January 2025, 00:00 UTC: a fixed "now" for deterministic slot math.
REFERENCE_NOW = datetime(2025, 1, 6, 0, 0, tzinfo=timezone.utc)


class RecordingSender:
    """Notification sender that records deliveries instead of sending them."""

    def __init__(self, fail_times: int = 0) -> None:
        self.sent: List[Dict[str, str]] = []
        self.fail_times = fail_times
        self.calls = 0

    def send(self, recipient: str, subject: str, body: str) -> None:
        self.calls += 1
        if self.calls <= self.fail_times:
            raise RuntimeError("provider unavailable")
        self.sent.append({"recipient": recipient, "subject": subject, "body": body})


@pytest.fixture
def engine(tmp_path) -> Generator[Engine, None, None]:
    test_engine = build_engine(f"sqlite:///{tmp_path / 'scheduling_test.db'}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return build_session_factory(engine)


@pytest.fixture
def impatient_session_factory(engine: Engine, monkeypatch) -> Generator[sessionmaker, None, None]:
    """Sessions on the test database that give up on a held lock after 0.2s."""
    monkeypatch.setattr(settings, "sqlite_busy_timeout_seconds", 0.2)
    impatient_engine = build_engine(engine.url.render_as_string(hide_password=False))
    yield build_session_factory(impatient_engine)
    impatient_engine.dispose()


@pytest.fixture
def hold_write_lock(engine: Engine) -> Callable[[], ContextManager[None]]:
    """Context manager in which another connection holds the SQLite write lock."""

    @contextmanager
    def _hold() -> Generator[None, None, None]:
        other_writer = sqlite3.connect(engine.url.database, isolation_level=None)
        other_writer.execute("BEGIN IMMEDIATE")
        try:
            yield
        finally:
            other_writer.execute("ROLLBACK")
            other_writer.close()

    return _hold


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Create a new database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def admin_key(monkeypatch) -> str:
    monkeypatch.setattr(settings, "admin_api_key", SecretStr(TEST_ADMIN_KEY))
    return TEST_ADMIN_KEY


@pytest.fixture
def admin_headers(admin_key: str) -> Dict[str, str]:
    return {"X-Admin-Key": admin_key}


@pytest.fixture
def client(session_factory: sessionmaker) -> Generator[TestClient, None, None]:
    """Test client whose requests each get their own session on the test database."""

    def override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db

    # Don't use context manager: lifespan would create tables on the app engine
    test_client = TestClient(app)

    yield test_client

    app.dependency_overrides.clear()
    test_client.close()


# ============================================================================
# Seed helpers
# ============================================================================


@pytest.fixture
def make_event_type(db: Session) -> Callable[..., EventType]:
    def _make(**overrides: Any) -> EventType:
        fields: Dict[str, Any] = {
            "name": "Intro call",
            "duration_minutes": 30,
            "location_kind": "video",
            "buffer_before_minutes": 0,
            "buffer_after_minutes": 0,
            "min_lead_time_hours": 0,
            "max_advance_days": 60,
            "is_active": True,
        }
        fields.update(overrides)
        event_type = EventType(**fields)
        db.add(event_type)
        db.commit()
        return event_type

    return _make


@pytest.fixture
def add_rule(db: Session) -> Callable[..., AvailabilityRule]:
    def _add(
        event_type: EventType,
        day_of_week: int,
        start_time: str,
        end_time: str,
        timezone_name: str = "UTC",
        is_active: bool = True,
    ) -> AvailabilityRule:
        rule = AvailabilityRule(
            event_type_id=event_type.id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            timezone=timezone_name,
            is_active=is_active,
        )
        db.add(rule)
        db.commit()
        return rule

    return _add


@pytest.fixture
def add_exception(db: Session) -> Callable[..., AvailabilityException]:
    def _add(
        event_type: EventType,
        exception_date,
        exception_type: str = "unavailable",
        start_time: Optional[str] = None,
        end_time: Optional[str] = None,
        timezone_name: str = "UTC",
    ) -> AvailabilityException:
        exception = AvailabilityException(
            event_type_id=event_type.id,
            exception_date=exception_date,
            exception_type=exception_type,
            start_time=start_time,
            end_time=end_time,
            timezone=timezone_name,
        )
        db.add(exception)
        db.commit()
        return exception

    return _add


@pytest.fixture
def add_question(db: Session) -> Callable[..., EventTypeQuestion]:
    def _add(event_type: EventType, text: str, is_required: bool = False) -> EventTypeQuestion:
        question = EventTypeQuestion(
            event_type_id=event_type.id,
            question_text=text,
            question_type="text",
            is_required=is_required,
        )
        db.add(question)
        db.commit()
        return question

    return _add


@pytest.fixture
def weekday_event_type(make_event_type, add_rule) -> EventType:
    """30 minute event type open 09:00-17:00 UTC Monday to Friday."""
    event_type = make_event_type()
    for dow in range(1, 6):
        add_rule(event_type, dow, "09:00", "17:00")
    return event_type


def _booking_payload(event_type_id: int, start: datetime, minutes: int = 30, **extra: Any) -> dict:
    payload = {
        "event_type_id": event_type_id,
        "start": start,
        "end": start + timedelta(minutes=minutes),
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "timezone": "Europe/London",
    }
    payload.update(extra)
    return payload


@pytest.fixture
def booking_payload() -> Callable[..., dict]:
    """Builder for a valid booking request body."""
    return _booking_payload


@pytest.fixture
def reference_now() -> datetime:
    return REFERENCE_NOW


@pytest.fixture
def recording_sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def make_sender() -> Callable[..., RecordingSender]:
    """Builder for senders that fail their first ``fail_times`` deliveries."""
    return RecordingSender
