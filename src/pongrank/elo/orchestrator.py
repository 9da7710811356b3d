"""
Recompute orchestrator: keeps stored rankings consistent with match history.

Every create, edit or delete of a match can change every rating that comes
after it, so instead of patching ratings incrementally the orchestrator
performs a full rebuild of the affected scope:

1. Reset every competitor's derived fields to the baseline
2. Load the full match history in replay order
3. Run RatingEngine over the whole history
4. Write competitor stats and per-match rating changes

All four steps run inside a single store transaction while holding the
scope's rebuild lock. Either the whole new snapshot commits, or the store
rolls back and the previously committed snapshot stays authoritative.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from time import perf_counter
from typing import TYPE_CHECKING

from pongrank.config import settings
from pongrank.elo.engine import RatingEngine, RatingParams
from pongrank.elo.types import CompetitorStats
from pongrank.exceptions import RankingInconsistentError, RecomputeError
from pongrank.locks import ScopeLockRegistry

if TYPE_CHECKING:
    from pongrank.store.base import RankingStore

logger = logging.getLogger(__name__)

# Shared by every orchestrator in this process, so that two orchestrators
# wrapping different sessions still serialize rebuilds of the same scope.
_scope_locks = ScopeLockRegistry()


@dataclass
class RecomputeResult:
    """Summary returned by RecomputeOrchestrator.trigger()."""
    scope: str
    matches_replayed: int = 0
    competitors_written: int = 0
    elapsed_s: float = 0.0

    def to_dict(self) -> dict:
        return {
            "scope": self.scope,
            "matches_replayed": self.matches_replayed,
            "competitors_written": self.competitors_written,
            "elapsed_s": round(self.elapsed_s, 3),
        }


class RecomputeOrchestrator:
    """
    Runs lock-guarded full rebuilds of a scope's rankings.

    Usage:
        orchestrator = RecomputeOrchestrator(SqlRankingStore(session))
        result = orchestrator.trigger("default")

    Raises from trigger():
        StoreError: the store failed to read or write
        RecomputeError: anything else (lock timeout, invalid stored match, ...)
    Both are RankingInconsistentError: the caller should report the ranking
    as out of date and retry.
    """

    def __init__(
        self,
        store: RankingStore,
        engine: RatingEngine | None = None,
        lock_timeout_seconds: float | None = None,
        locks: ScopeLockRegistry | None = None,
    ) -> None:
        self.store = store
        self.engine = engine or RatingEngine(RatingParams.from_settings())
        self.lock_timeout_seconds = (
            settings.recompute_lock_timeout_seconds
            if lock_timeout_seconds is None
            else lock_timeout_seconds
        )
        self.locks = locks or _scope_locks

    def trigger(self, scope: str | None = None) -> RecomputeResult:
        """
        Rebuild all derived ranking data for a scope from its match history.

        Args:
            scope: Dataset scope to rebuild. Defaults to settings.default_scope.

        Returns:
            RecomputeResult with counts and timing.
        """
        scope = scope or settings.default_scope
        started = perf_counter()
        logger.info("Rebuilding rankings for scope=%s", scope)

        try:
            with self.locks.hold(scope, self.lock_timeout_seconds):
                result = self._rebuild(scope)
        except RankingInconsistentError as exc:
            logger.error("Ranking rebuild failed for scope=%s: %s", scope, exc.detail)
            raise
        except TimeoutError as exc:
            logger.error("Ranking rebuild timed out for scope=%s: %s", scope, exc)
            raise RecomputeError(
                f"Timed out waiting for another rebuild of scope '{scope}'", scope=scope
            ) from exc
        except Exception as exc:
            logger.exception("Ranking rebuild failed for scope=%s", scope)
            raise RecomputeError(
                f"Ranking rebuild failed for scope '{scope}': {exc}", scope=scope
            ) from exc

        result.elapsed_s = perf_counter() - started
        logger.info(
            "Rebuilt rankings for scope=%s: %d matches, %d competitors in %.3fs",
            scope, result.matches_replayed, result.competitors_written, result.elapsed_s,
        )
        return result

    def _rebuild(self, scope: str) -> RecomputeResult:
        result = RecomputeResult(scope=scope)
        reset = CompetitorStats.baseline(self.engine.params.baseline_rating)

        with self.store.transaction(scope):
            # ---- Step 1: Reset derived fields ----
            baseline = self.store.reset_competitors(scope, reset)

            # ---- Step 2: Load ordered history ----
            matches = self.store.list_matches(scope)
            outsiders = {
                cid
                for match in matches
                for cid in (match.participant_a, match.participant_b)
                if cid not in baseline
            }
            if outsiders:
                raise RecomputeError(
                    f"Match history of scope '{scope}' references competitors "
                    f"outside it: {sorted(outsiders)}",
                    scope=scope,
                )

            # ---- Step 3: Replay (pure, in memory) ----
            replay = self.engine.replay(baseline, matches)

            # ---- Step 4: Persist the snapshot ----
            result.competitors_written = self.store.write_competitor_stats(scope, replay.stats)
            self.store.write_match_changes(scope, replay.match_changes)
            result.matches_replayed = replay.matches_replayed

        return result
