"""
LingoTutor - Database Engine
SQLAlchemy setup. Works with SQLite (dev/tests) and PostgreSQL (prod).
"""

import logging

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from lingotutor.config import DATABASE_URL

logger = logging.getLogger(__name__)


# ─── Engine Setup ────────────────────────────────────────────────────────────

def make_engine(url: str = DATABASE_URL) -> Engine:
    if url.startswith("sqlite"):
        # One shared connection so ":memory:" databases survive across sessions
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, _connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        echo=False,
    )


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False, expire_on_commit=False)


engine = make_engine()
SessionLocal = make_session_factory(engine)


# ─── Base Class ──────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


def init_db(bind: Engine = engine) -> None:
    """Create all tables. Called once at startup."""
    # Registers the ORM classes on Base.metadata
    from lingotutor import models  # noqa: F401

    Base.metadata.create_all(bind=bind)
    logger.info("Database tables ready")
