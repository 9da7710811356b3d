"""
SQLAlchemy ORM models for pongrank.

Tables:
- competitors: Registered competitors and their derived ranking fields
- matches: Head-to-head results, one row per match

Key design decisions:
- Every row belongs to a scope (an independent league); ranking is
  computed per scope
- Display names are unique per scope, case-insensitively (enforced with an
  index on lower(name) and checked before insert by the service layer)
- rating, streaks and counters on competitors, and rating_change on matches,
  are derived data: only a full rebuild writes them
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from pongrank.elo.constants import DEFAULT_RATING


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Competitor Models
# =============================================================================

class Competitor(Base):
    """
    A ranked competitor.

    name is owned by the service layer. The remaining ranking columns are
    overwritten wholesale by every rebuild of the competitor's scope.
    """
    __tablename__ = "competitors"

    id: Mapped[int] = mapped_column(primary_key=True)
    scope: Mapped[str] = mapped_column(String(50), nullable=False, default="default")

    # Display name, stored trimmed
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # Derived ranking fields
    rating: Mapped[int] = mapped_column(Integer, nullable=False, default=DEFAULT_RATING)
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    matches_won: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Metadata
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    __table_args__ = (
        CheckConstraint("current_streak >= 0", name="ck_competitor_current_streak"),
        CheckConstraint("max_streak >= current_streak", name="ck_competitor_max_streak"),
        CheckConstraint("matches_won >= 0", name="ck_competitor_matches_won"),
        CheckConstraint("matches_played >= matches_won", name="ck_competitor_matches_played"),
    )

    def __repr__(self) -> str:
        return f"<Competitor(id={self.id}, name='{self.name}', rating={self.rating})>"


# Case-insensitive uniqueness of display names within a scope
Index(
    "uq_competitor_scope_name_lower",
    Competitor.scope,
    func.lower(Competitor.name),
    unique=True,
)


# =============================================================================
# Match Models
# =============================================================================

class MatchRecord(Base):
    """
    Result of one head-to-head match.

    Scores are optional. When present they only confirm the winner; the
    rating change depends on who won, not by how much.
    """
    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    scope: Mapped[str] = mapped_column(String(50), nullable=False, default="default")

    participant_a_id: Mapped[int] = mapped_column(
        ForeignKey("competitors.id", ondelete="RESTRICT"), nullable=False
    )
    participant_b_id: Mapped[int] = mapped_column(
        ForeignKey("competitors.id", ondelete="RESTRICT"), nullable=False
    )
    winner_id: Mapped[int] = mapped_column(
        ForeignKey("competitors.id", ondelete="RESTRICT"), nullable=False
    )

    score_a: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    score_b: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # When the match was played; the replay order key together with id
    played_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)

    # Points the winner took from the loser in the last rebuild
    rating_change: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    participant_a: Mapped["Competitor"] = relationship(foreign_keys=[participant_a_id])
    participant_b: Mapped["Competitor"] = relationship(foreign_keys=[participant_b_id])
    winner: Mapped["Competitor"] = relationship(foreign_keys=[winner_id])

    __table_args__ = (
        CheckConstraint("participant_a_id <> participant_b_id", name="ck_match_distinct_participants"),
        CheckConstraint(
            "winner_id = participant_a_id OR winner_id = participant_b_id",
            name="ck_match_winner_is_participant",
        ),
        CheckConstraint(
            "(score_a IS NULL AND score_b IS NULL) OR "
            "(score_a >= 0 AND score_b >= 0 AND score_a <> score_b)",
            name="ck_match_scores",
        ),
        Index("idx_matches_scope_order", "scope", "played_at", "id"),
    )

    def __repr__(self) -> str:
        return (
            f"<MatchRecord(id={self.id}, a={self.participant_a_id}, "
            f"b={self.participant_b_id}, winner={self.winner_id})>"
        )
