"""
pongrank - Head-to-head match rankings

Tracks match results between competitors and keeps an ELO ranking
(rating, win streaks, match counts) consistent with the full match history.

Main components:
- elo: Rating engine (pure replay) and recompute orchestrator (full rebuild)
- store: Store contract and its SQLAlchemy implementation
- services: Application layer that validates, writes and re-ranks
- db: ORM models and session management
"""

__version__ = "1.0.0"
