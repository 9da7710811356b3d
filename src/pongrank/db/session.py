"""
Database session management for pongrank.

Provides SQLAlchemy engine and session factory with connection pooling
configured from settings.

Usage:
    from pongrank.db import get_session

    with get_session() as session:
        competitors = session.query(Competitor).all()
        # Commits automatically on exit, rolls back on exception
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from pongrank.config import settings


def get_engine(database_url: str | None = None) -> Engine:
    """
    Create SQLAlchemy engine.

    The engine is configured with:
    - Connection pool for efficient reuse (server databases only)
    - A busy timeout for SQLite so a locked file fails instead of hanging
    - Pre-ping to verify connections before use (handles stale connections)
    - Echo mode only when LOG_LEVEL=DEBUG
    """
    url = database_url or settings.database_url
    kwargs: dict = {
        "pool_pre_ping": True,
        "echo": settings.log_level == "DEBUG",
    }
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"timeout": settings.store_timeout_seconds}
    else:
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow
    return create_engine(url, **kwargs)


# Created on first use (singleton via module-level variable)
_engine: Engine | None = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


# Session factory; bound to the engine when the first session is opened
SessionLocal = sessionmaker(
    autocommit=False,  # We'll handle commits explicitly
    autoflush=False,  # Don't auto-flush before queries (more control)
)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically commits on successful exit, rolls back on exception.

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = SessionLocal(bind=_get_engine())
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
