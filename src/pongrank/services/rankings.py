"""
Ranking service: the application layer around the rating core.

This is the single entry point for anything that changes competitors or
match history. It handles:
- Validating input before anything is written
- Registering and renaming competitors (names are unique per scope,
  case-insensitively)
- Recording, editing and deleting matches, each followed by a full
  rebuild of the scope's rankings
- Read models for the leaderboard and the match history

Usage:
    with get_session() as session:
        store = SqlRankingStore(session)
        service = RankingService(store, RecomputeOrchestrator(store))

        ana = service.register_competitor("Ana")
        ben = service.register_competitor("Ben")
        service.record_match(ana.id, ben.id, winner=ana.id, score_a=11, score_b=7)

        for entry in service.leaderboard():
            print(entry.position, entry.name, entry.rating, entry.tier)

If the rebuild after a match write fails, the write itself stays committed
and the RankingInconsistentError propagates; calling recompute() again
brings the rankings back in line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from pongrank.config import settings
from pongrank.elo.constants import rank_tier
from pongrank.elo.orchestrator import RecomputeOrchestrator, RecomputeResult
from pongrank.elo.types import CompetitorStats
from pongrank.exceptions import RankingInconsistentError, ValidationError
from pongrank.store.base import RankingStore
from pongrank.validation import validate_competitor_name, validate_match

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaderboardEntry:
    """One row of the ranking table."""
    position: int
    competitor_id: int
    name: str
    rating: int
    tier: str
    current_streak: int
    max_streak: int
    matches_played: int
    matches_won: int

    @property
    def matches_lost(self) -> int:
        return self.matches_played - self.matches_won

    @property
    def win_rate(self) -> float:
        if not self.matches_played:
            return 0.0
        return self.matches_won / self.matches_played


@dataclass(frozen=True)
class MatchHistoryEntry:
    """One row of the match history, newest first."""
    match_id: int
    played_at: datetime
    participant_a_id: int
    participant_a_name: str
    participant_b_id: int
    participant_b_name: str
    winner_id: int
    winner_name: str
    score_a: Optional[int]
    score_b: Optional[int]
    rating_change: Optional[int]


class RankingService:
    """Validates, writes and re-ranks."""

    def __init__(
        self,
        store: RankingStore,
        orchestrator: RecomputeOrchestrator,
        scope: Optional[str] = None,
    ):
        self.store = store
        self.orchestrator = orchestrator
        self.scope = scope or settings.default_scope

    # =========================================================================
    # Competitors
    # =========================================================================

    def register_competitor(self, name: str) -> Any:
        """
        Register a new competitor at the baseline rating.

        Raises:
            ValidationError: If the name is blank or already taken.
        """
        taken = [c.name for c in self.store.list_competitors(self.scope)]
        cleaned = validate_competitor_name(name, taken)
        baseline = CompetitorStats.baseline(self.orchestrator.engine.params.baseline_rating)
        competitor = self.store.create_competitor(self.scope, cleaned, baseline)
        logger.info("Registered competitor %s (%s)", competitor.id, cleaned)
        return competitor

    def rename_competitor(self, competitor_id: int, name: str) -> Any:
        """Change a competitor's display name. Ratings are unaffected."""
        competitor = self.store.get_competitor(competitor_id)
        taken = [
            c.name
            for c in self.store.list_competitors(competitor.scope)
            if c.id != competitor_id
        ]
        cleaned = validate_competitor_name(name, taken)
        return self.store.update_competitor(competitor_id, cleaned)

    # =========================================================================
    # Matches
    # =========================================================================

    def record_match(
        self,
        participant_a: int,
        participant_b: int,
        winner: int,
        score_a: Optional[int] = None,
        score_b: Optional[int] = None,
        played_at: Optional[datetime] = None,
    ) -> Any:
        """
        Record a match result and rebuild the rankings.

        Raises:
            ValidationError: If the result is invalid (nothing is written).
            NotFoundError: If a participant does not exist.
            RankingInconsistentError: If the rebuild failed after the write.
        """
        validate_match(participant_a, participant_b, winner, score_a, score_b)
        self._check_participants(participant_a, participant_b)

        match = self.store.create_match(
            self.scope,
            participant_a,
            participant_b,
            winner,
            played_at or datetime.utcnow(),
            score_a,
            score_b,
        )
        logger.info("Recorded match %s (winner=%s)", match.id, winner)
        self._rebuild_after_write("create", match.id)
        return match

    def edit_match(self, match_id: int, **changes: Any) -> Any:
        """
        Edit a recorded match and rebuild the rankings.

        Accepts any of participant_a_id, participant_b_id, winner_id,
        score_a, score_b and played_at. The merged result is validated as a
        whole before anything is written.
        """
        match = self.store.get_match(match_id)
        merged = {
            "participant_a_id": match.participant_a_id,
            "participant_b_id": match.participant_b_id,
            "winner_id": match.winner_id,
            "score_a": match.score_a,
            "score_b": match.score_b,
            "played_at": match.played_at,
        }
        unknown = set(changes) - set(merged)
        if unknown:
            raise ValidationError(f"Unknown match fields: {', '.join(sorted(unknown))}")
        merged.update(changes)

        validate_match(
            merged["participant_a_id"],
            merged["participant_b_id"],
            merged["winner_id"],
            merged["score_a"],
            merged["score_b"],
        )
        if merged["played_at"] is None:
            raise ValidationError("A match needs a time it was played.")
        self._check_participants(merged["participant_a_id"], merged["participant_b_id"])

        match = self.store.update_match(match_id, **merged)
        self._rebuild_after_write("update", match_id)
        return match

    def delete_match(self, match_id: int) -> None:
        """Delete a match and rebuild the rankings without it."""
        self.store.delete_match(match_id)
        self._rebuild_after_write("delete", match_id)

    def recompute(self) -> RecomputeResult:
        """Rebuild the rankings on demand (e.g. retry after a failure)."""
        return self.orchestrator.trigger(self.scope)

    # =========================================================================
    # Read models
    # =========================================================================

    def leaderboard(self) -> list[LeaderboardEntry]:
        """Competitors ranked by rating, highest first."""
        return [
            LeaderboardEntry(
                position=position,
                competitor_id=c.id,
                name=c.name,
                rating=c.rating,
                tier=rank_tier(c.rating),
                current_streak=c.current_streak,
                max_streak=c.max_streak,
                matches_played=c.matches_played,
                matches_won=c.matches_won,
            )
            for position, c in enumerate(self.store.list_competitors(self.scope), start=1)
        ]

    def match_history(self) -> list[MatchHistoryEntry]:
        """All matches in the scope, newest first."""
        names = {c.id: c.name for c in self.store.list_competitors(self.scope)}
        return [
            MatchHistoryEntry(
                match_id=m.id,
                played_at=m.played_at,
                participant_a_id=m.participant_a_id,
                participant_a_name=names.get(m.participant_a_id, "?"),
                participant_b_id=m.participant_b_id,
                participant_b_name=names.get(m.participant_b_id, "?"),
                winner_id=m.winner_id,
                winner_name=names.get(m.winner_id, "?"),
                score_a=m.score_a,
                score_b=m.score_b,
                rating_change=m.rating_change,
            )
            for m in self.store.list_match_history(self.scope)
        ]

    # =========================================================================
    # Internals
    # =========================================================================

    def _check_participants(self, *competitor_ids: int) -> None:
        """Participants must exist and belong to this service's scope."""
        for cid in competitor_ids:
            competitor = self.store.get_competitor(cid)
            if competitor.scope != self.scope:
                raise ValidationError(
                    f"Competitor '{competitor.name}' is not part of scope '{self.scope}'."
                )

    def _rebuild_after_write(self, action: str, match_id: int) -> None:
        try:
            self.orchestrator.trigger(self.scope)
        except RankingInconsistentError:
            logger.warning(
                "Match %s %s committed but rankings are stale for scope=%s; retry recompute",
                match_id, action, self.scope,
            )
            raise
