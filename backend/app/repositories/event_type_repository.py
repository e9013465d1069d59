# backend/app/repositories/event_type_repository.py
"""
Event Type Repository.

Data access for bookable event types and their booking questions,
including the row lock that serializes concurrent bookings.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from ..core.exceptions import RepositoryException
from ..models.event_type import EventType, EventTypeQuestion
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class EventTypeRepository(BaseRepository[EventType]):
    """Repository for event types."""

    def __init__(self, db: Session):
        super().__init__(db, EventType)

    def get_active(self, event_type_id: int) -> Optional[EventType]:
        """Return the event type when it exists and is active."""
        try:
            return (
                self.db.query(EventType)
                .filter(EventType.id == event_type_id, EventType.is_active.is_(True))
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading event type {event_type_id}: {str(e)}")
            raise RepositoryException(f"Failed to load event type: {str(e)}") from e

    def lock_for_update(self, event_type_id: int) -> Optional[EventType]:
        """
        Load an active event type holding its row lock until commit.

        PostgreSQL takes ``SELECT ... FOR UPDATE``; SQLite already holds the
        database write lock from ``BEGIN IMMEDIATE`` so a plain read suffices.
        """
        query = self.db.query(EventType).filter(
            EventType.id == event_type_id, EventType.is_active.is_(True)
        )
        if self.dialect_name == "postgresql":
            query = query.with_for_update()
        return query.populate_existing().first()

    def list_active(self) -> List[EventType]:
        """Active event types ordered by duration then name."""
        return (
            self.db.query(EventType)
            .options(selectinload(EventType.questions))
            .filter(EventType.is_active.is_(True))
            .order_by(EventType.duration_minutes, EventType.name)
            .all()
        )

    def list_all(self) -> List[EventType]:
        return self.db.query(EventType).order_by(EventType.id).all()

    def count_active(self) -> int:
        return self.count(is_active=True)

    def get_questions(self, event_type_id: int) -> List[EventTypeQuestion]:
        """Booking questions for an event type in display order."""
        return (
            self.db.query(EventTypeQuestion)
            .filter(EventTypeQuestion.event_type_id == event_type_id)
            .order_by(EventTypeQuestion.display_order, EventTypeQuestion.id)
            .all()
        )

    def add_question(self, event_type_id: int, **fields: object) -> EventTypeQuestion:
        question = EventTypeQuestion(event_type_id=event_type_id, **fields)
        self.db.add(question)
        self.db.flush()
        return question
