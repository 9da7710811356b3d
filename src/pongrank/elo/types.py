"""Plain value types passed between the store, the engine and the orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import NamedTuple, Optional

from pongrank.elo.constants import DEFAULT_RATING


@dataclass(frozen=True)
class CompetitorStats:
    """Derived ranking fields for one competitor."""

    rating: int = DEFAULT_RATING
    current_streak: int = 0
    max_streak: int = 0
    matches_played: int = 0
    matches_won: int = 0

    @classmethod
    def baseline(cls, rating: int = DEFAULT_RATING) -> "CompetitorStats":
        """Stats of a competitor with no matches."""
        return cls(rating=rating)


class MatchSnapshot(NamedTuple):
    """Lightweight match record loaded from the store for replay."""

    id: int
    participant_a: int
    participant_b: int
    winner: int
    played_at: datetime
    score_a: Optional[int] = None
    score_b: Optional[int] = None

    @property
    def loser(self) -> int:
        return self.participant_b if self.winner == self.participant_a else self.participant_a


def match_order_key(match: MatchSnapshot) -> tuple[datetime, int]:
    """Total replay order: oldest first, match id breaks timestamp ties."""
    return (match.played_at, match.id)
