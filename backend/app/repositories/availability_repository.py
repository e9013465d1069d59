# backend/app/repositories/availability_repository.py
"""
Availability Repository.

Reads the weekly rules and date exceptions that feed slot generation, and
provides the write helpers used by the admin service.
"""

from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.availability import AvailabilityException, AvailabilityRule
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class AvailabilityRepository(BaseRepository[AvailabilityRule]):
    """
    Repository for availability rules and exceptions.

    Rules are soft-deleted through ``is_active``; exceptions are keyed by
    (event type, date) and replaced on upsert.
    """

    def __init__(self, db: Session):
        super().__init__(db, AvailabilityRule)

    # Read path

    def get_rules(self, event_type_id: int) -> List[AvailabilityRule]:
        """
        Get active weekly rules for an event type.

        Args:
            event_type_id: Event type to load rules for

        Returns:
            Rules ordered by weekday and start time
        """
        try:
            return (
                self.db.query(AvailabilityRule)
                .filter(
                    AvailabilityRule.event_type_id == event_type_id,
                    AvailabilityRule.is_active.is_(True),
                )
                .order_by(AvailabilityRule.day_of_week, AvailabilityRule.start_time)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error getting rules for event type {event_type_id}: {str(e)}")
            raise RepositoryException(f"Failed to get availability rules: {str(e)}") from e

    def get_exceptions(
        self, event_type_id: int, start_date: date, end_date: date
    ) -> List[AvailabilityException]:
        """
        Get date exceptions whose date falls in the inclusive range.

        Args:
            event_type_id: Event type to load exceptions for
            start_date: First date (inclusive)
            end_date: Last date (inclusive)
        """
        try:
            return (
                self.db.query(AvailabilityException)
                .filter(
                    AvailabilityException.event_type_id == event_type_id,
                    AvailabilityException.exception_date >= start_date,
                    AvailabilityException.exception_date <= end_date,
                )
                .order_by(AvailabilityException.exception_date)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(
                f"Error getting exceptions for event type {event_type_id} "
                f"between {start_date} and {end_date}: {str(e)}"
            )
            raise RepositoryException(f"Failed to get availability exceptions: {str(e)}") from e

    def list_rules(self, event_type_id: Optional[int] = None) -> List[AvailabilityRule]:
        """All rules (active or not), optionally for a single event type."""
        query = self.db.query(AvailabilityRule)
        if event_type_id is not None:
            query = query.filter(AvailabilityRule.event_type_id == event_type_id)
        return query.order_by(
            AvailabilityRule.event_type_id,
            AvailabilityRule.day_of_week,
            AvailabilityRule.start_time,
        ).all()

    def count_active_rules(self) -> int:
        return self.count(is_active=True)

    # Admin write path

    def create_rule(self, **fields: object) -> AvailabilityRule:
        return self.create(**fields)

    def get_exception(self, exception_id: int) -> Optional[AvailabilityException]:
        return self.db.get(AvailabilityException, exception_id)

    def get_exception_for_date(
        self, event_type_id: int, exception_date: date
    ) -> Optional[AvailabilityException]:
        return (
            self.db.query(AvailabilityException)
            .filter(
                AvailabilityException.event_type_id == event_type_id,
                AvailabilityException.exception_date == exception_date,
            )
            .first()
        )

    def upsert_exception(
        self, event_type_id: int, exception_date: date, **fields: object
    ) -> AvailabilityException:
        """Create or replace the exception for (event type, date)."""
        existing = self.get_exception_for_date(event_type_id, exception_date)
        if existing is None:
            existing = AvailabilityException(
                event_type_id=event_type_id, exception_date=exception_date
            )
            self.db.add(existing)
        for key, value in fields.items():
            setattr(existing, key, value)
        self.db.flush()
        return existing

    def delete_exception(self, exception_id: int) -> bool:
        exception = self.get_exception(exception_id)
        if exception is None:
            return False
        self.db.delete(exception)
        self.db.flush()
        return True

    def list_exceptions(
        self,
        event_type_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[AvailabilityException]:
        query = self.db.query(AvailabilityException)
        if event_type_id is not None:
            query = query.filter(AvailabilityException.event_type_id == event_type_id)
        if start_date is not None:
            query = query.filter(AvailabilityException.exception_date >= start_date)
        if end_date is not None:
            query = query.filter(AvailabilityException.exception_date <= end_date)
        return query.order_by(AvailabilityException.exception_date).all()
