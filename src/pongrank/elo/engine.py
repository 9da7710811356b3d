"""
Rating engine: replays an ordered match history into per-competitor stats.

The engine is a pure function of its inputs:

    stats = RatingEngine(params).recompute(baseline, matches)

- baseline maps competitor id -> CompetitorStats the replay starts from
  (normally every competitor reset to the default rating)
- matches is the full match history; the engine sorts it by
  (played_at, id) so the result never depends on storage order

Per match, in order:
1. Validate the result (winner is a participant, scores agree with winner)
2. Compute the ELO delta from the two current ratings
3. Move the delta from loser to winner
4. Update played/won counters and win streaks

Nothing is read from the database or from module state, so calling it
twice with the same input always returns the same output.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from pongrank.config import settings
from pongrank.elo.calculator import EloCalculator
from pongrank.elo.constants import DEFAULT_K_FACTOR, DEFAULT_RATING, DEFAULT_SPREAD
from pongrank.elo.types import CompetitorStats, MatchSnapshot, match_order_key
from pongrank.validation import validate_match


@dataclass(frozen=True)
class RatingParams:
    """All tunable rating parameters in one object."""

    k_factor: int = DEFAULT_K_FACTOR
    spread: int = DEFAULT_SPREAD
    baseline_rating: int = DEFAULT_RATING

    @classmethod
    def from_settings(cls) -> "RatingParams":
        return cls(
            k_factor=settings.rating_k_factor,
            spread=settings.rating_spread,
            baseline_rating=settings.rating_baseline,
        )


@dataclass
class _CompetitorState:
    """Internal tracking of a competitor's stats during a replay."""
    rating: int
    current_streak: int = 0
    max_streak: int = 0
    matches_played: int = 0
    matches_won: int = 0

    @classmethod
    def from_stats(cls, stats: CompetitorStats) -> "_CompetitorState":
        return cls(
            rating=stats.rating,
            current_streak=stats.current_streak,
            max_streak=stats.max_streak,
            matches_played=stats.matches_played,
            matches_won=stats.matches_won,
        )

    def freeze(self) -> CompetitorStats:
        return CompetitorStats(
            rating=self.rating,
            current_streak=self.current_streak,
            max_streak=self.max_streak,
            matches_played=self.matches_played,
            matches_won=self.matches_won,
        )


@dataclass
class ReplayResult:
    """Final stats plus the delta applied by each match."""
    stats: dict[int, CompetitorStats] = field(default_factory=dict)
    match_changes: dict[int, int] = field(default_factory=dict)

    @property
    def matches_replayed(self) -> int:
        return len(self.match_changes)


class RatingEngine:
    """
    Stateless full-history rating computation.

    Usage:
        engine = RatingEngine(RatingParams(k_factor=32))
        stats = engine.recompute(
            {1: CompetitorStats.baseline(), 2: CompetitorStats.baseline()},
            [MatchSnapshot(id=1, participant_a=1, participant_b=2, winner=1,
                           played_at=datetime(2024, 5, 1))],
        )
        stats[1].rating  # 1216
    """

    def __init__(self, params: RatingParams | None = None) -> None:
        self.params = params or RatingParams()
        self.calculator = EloCalculator(
            k_factor=self.params.k_factor,
            spread=self.params.spread,
        )

    def baseline_for(self, competitor_ids: Iterable[int]) -> dict[int, CompetitorStats]:
        """Reset stats for every given competitor."""
        reset = CompetitorStats.baseline(self.params.baseline_rating)
        return {cid: reset for cid in competitor_ids}

    def recompute(
        self,
        baseline: Mapping[int, CompetitorStats],
        matches: Iterable[MatchSnapshot],
    ) -> dict[int, CompetitorStats]:
        """
        Replay the match history and return final stats per competitor.

        Competitors without matches keep their baseline stats untouched.

        Raises:
            ValidationError: If a match has an invalid result.
        """
        return self.replay(baseline, matches).stats

    def replay(
        self,
        baseline: Mapping[int, CompetitorStats],
        matches: Iterable[MatchSnapshot],
    ) -> ReplayResult:
        """
        Same as recompute(), also returning the rating delta of each match.

        This is the hot path: no I/O, O(n log n) for the sort, O(n) after.
        """
        states: dict[int, _CompetitorState] = {
            cid: _CompetitorState.from_stats(stats) for cid, stats in baseline.items()
        }
        changes: dict[int, int] = {}

        for match in sorted(matches, key=match_order_key):
            validate_match(
                match.participant_a,
                match.participant_b,
                match.winner,
                match.score_a,
                match.score_b,
            )

            # Participants missing from the baseline start from scratch
            for cid in (match.participant_a, match.participant_b):
                if cid not in states:
                    states[cid] = _CompetitorState(rating=self.params.baseline_rating)

            winner = states[match.winner]
            loser = states[match.loser]

            update = self.calculator.calculate(winner.rating, loser.rating)
            winner.rating = update.winner_after
            loser.rating = update.loser_after

            winner.matches_played += 1
            loser.matches_played += 1
            winner.matches_won += 1

            winner.current_streak += 1
            loser.current_streak = 0
            winner.max_streak = max(winner.max_streak, winner.current_streak)
            loser.max_streak = max(loser.max_streak, loser.current_streak)

            changes[match.id] = update.delta

        return ReplayResult(
            stats={cid: state.freeze() for cid, state in states.items()},
            match_changes=changes,
        )
