"""
Pytest configuration and fixtures.

This file is automatically loaded by pytest and provides
shared fixtures for all tests.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pongrank.db.models import Base
from pongrank.elo.engine import RatingEngine, RatingParams
from pongrank.elo.orchestrator import RecomputeOrchestrator
from pongrank.locks import ScopeLockRegistry
from pongrank.services.rankings import RankingService
from pongrank.store.sql import SqlRankingStore


@pytest.fixture
def test_engine():
    """
    Create a test database engine.

    Uses SQLite in-memory with a single shared connection, so every
    session in a test sees the same data and each test starts empty.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session(test_engine):
    """Create a database session for a test."""
    Session = sessionmaker(bind=test_engine, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def rating_engine():
    """Rating engine with the default parameters (K=32, baseline 1200)."""
    return RatingEngine(RatingParams())


@pytest.fixture
def store(db_session):
    return SqlRankingStore(db_session)


@pytest.fixture
def orchestrator(store, rating_engine):
    """Orchestrator with its own lock registry so tests stay independent."""
    return RecomputeOrchestrator(
        store,
        engine=rating_engine,
        lock_timeout_seconds=1.0,
        locks=ScopeLockRegistry(),
    )


@pytest.fixture
def service(store, orchestrator):
    return RankingService(store, orchestrator, scope="default")


@pytest.fixture
def clock():
    """Returns successive, strictly increasing match times."""
    start = datetime(2024, 5, 1, 18, 0, 0)
    ticks = iter(range(10_000))

    def next_time() -> datetime:
        return start + timedelta(minutes=next(ticks))

    return next_time
