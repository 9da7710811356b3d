"""
Database module for pongrank.

Provides SQLAlchemy ORM models and session management.

Usage:
    from pongrank.db import get_session, Competitor

    with get_session() as session:
        competitors = session.query(Competitor).all()
"""

from pongrank.db.models import Base, Competitor, MatchRecord
from pongrank.db.session import SessionLocal, get_engine, get_session

__all__ = [
    # Base
    "Base",
    # Models
    "Competitor",
    "MatchRecord",
    # Session
    "get_session",
    "get_engine",
    "SessionLocal",
]
