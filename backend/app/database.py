# backend/app/database.py
"""
Database engine, session factory, and metadata shared across the application.
"""

from datetime import datetime
import logging
from typing import Any, Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeMeta, Session, declarative_base, sessionmaker

from .core.config import settings

logger = logging.getLogger(__name__)

# Connection execution option asking SQLite for the write lock at BEGIN.
WRITE_LOCK_OPTION = "scheduling_write_lock"


def _install_sqlite_write_serialization(engine: Engine) -> None:
    """
    Issue SQLite BEGIN statements ourselves.

    pysqlite defers BEGIN until the first DML statement, which lets two
    writers read the same snapshot before either inserts. Reads get a plain
    deferred BEGIN; connections opened by ``begin_write`` take the reserved
    lock up front with ``BEGIN IMMEDIATE`` so read-check-insert sequences are
    serialized and the busy timeout makes the loser wait instead of failing.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
        connection_record.info["connect_time"] = datetime.now()
        logger.debug("SQLite connection established")

    @event.listens_for(engine, "begin")
    def _begin(conn: Any) -> None:
        if conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str, **kwargs: Any) -> Engine:
    """Create an engine configured for the dialect in ``database_url``."""
    if database_url.startswith("sqlite"):
        connect_args = {
            "check_same_thread": False,
            "timeout": settings.sqlite_busy_timeout_seconds,
        }
        engine = create_engine(database_url, connect_args=connect_args, **kwargs)
        _install_sqlite_write_serialization(engine)
        return engine

    engine = create_engine(
        database_url,
        pool_size=5,
        max_overflow=5,
        pool_timeout=5,
        pool_recycle=1800,
        pool_pre_ping=True,
        **kwargs,
    )

    @event.listens_for(engine, "connect")
    def receive_connect(dbapi_connection: Any, connection_record: Any) -> None:
        connection_record.info["connect_time"] = datetime.now()
        logger.debug("Database connection established")

    return engine


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind, expire_on_commit=False)


engine: Engine = build_engine(settings.get_database_url())

SessionLocal = build_session_factory(engine)

Base: DeclarativeMeta = declarative_base()


def get_dialect_name(session: Session, default: str = "sqlite") -> str:
    """Return SQLAlchemy dialect name for the engine bound to ``session``."""
    try:
        bind = session.get_bind()
    except Exception:
        return default
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", None) or default


def get_db() -> Generator[Session, None, None]:
    """Get database session with proper cleanup."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def begin_write(session: Session) -> None:
    """
    Open the session's transaction holding the store's write lock.

    SQLite refuses to wait when a transaction that has already read tries to
    write while another writer holds the lock, so writers must ask for the
    lock before their first statement. Other dialects ignore the option and
    rely on row locks. Does nothing when a transaction is already open.
    """
    if not session.in_transaction():
        session.connection(execution_options={WRITE_LOCK_OPTION: True})
