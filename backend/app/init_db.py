# backend/app/init_db.py
"""Create scheduling tables on the configured database."""

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from app import models  # noqa: F401  (registers mappers on Base.metadata)
from app.database import Base, engine

logger = logging.getLogger(__name__)


def init_db(bind: Optional[Engine] = None) -> None:
    """Create any missing tables. Existing tables are left untouched."""
    target = bind or engine
    Base.metadata.create_all(bind=target)
    logger.info(f"Database tables ensured on {target.url.render_as_string(hide_password=True)}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
