"""
SQLAlchemy implementation of the ranking store.

One SqlRankingStore wraps one Session. CRUD methods commit their own
write; rebuild methods run inside transaction(), which commits once at the
end or rolls everything back.

On PostgreSQL the rebuild transaction also:
- takes a transaction-level advisory lock keyed on the scope, so rebuilds
  from separate processes serialize
- sets a statement timeout, so a stalled database fails the rebuild
  instead of holding the lock open
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generator, Mapping, Optional

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pongrank.config import settings
from pongrank.db.models import Competitor, MatchRecord
from pongrank.elo.types import CompetitorStats, MatchSnapshot
from pongrank.exceptions import NotFoundError, StoreError
from pongrank.locks import acquire_xact_advisory_lock, advisory_lock_key

logger = logging.getLogger(__name__)

# Columns a match edit may change
EDITABLE_MATCH_FIELDS = frozenset(
    {"participant_a_id", "participant_b_id", "winner_id", "score_a", "score_b", "played_at"}
)


class SqlRankingStore:
    """
    Ranking store backed by a SQLAlchemy session.

    Usage:
        with get_session() as session:
            store = SqlRankingStore(session)
            orchestrator = RecomputeOrchestrator(store)
            service = RankingService(store, orchestrator)
    """

    def __init__(self, session: Session, timeout_seconds: float | None = None):
        self.session = session
        self.timeout_seconds = (
            settings.store_timeout_seconds if timeout_seconds is None else timeout_seconds
        )

    # =========================================================================
    # Rebuild contract
    # =========================================================================

    @contextmanager
    def transaction(self, scope: str) -> Generator[None, None, None]:
        """
        Run the enclosed reads and writes as one atomic unit.

        The session must be clean on entry: pending changes that were not
        committed are rolled back before the rebuild starts.

        Raises:
            StoreError: If the database fails at any point, including commit.
        """
        if self.session.new or self.session.dirty or self.session.deleted:
            logger.debug(
                "Discarding %d pending change(s) before rebuild of scope=%s",
                len(self.session.new) + len(self.session.dirty) + len(self.session.deleted),
                scope,
            )
        self.session.rollback()
        try:
            if self._is_postgres():
                self._prepare_postgres_transaction(scope)
            yield
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(f"Database error during rebuild: {exc}", scope=scope) from exc
        except BaseException:
            # Includes interrupts: nothing partial may stay pending
            self.session.rollback()
            raise

    def list_matches(self, scope: str) -> list[MatchSnapshot]:
        stmt = (
            select(
                MatchRecord.id,
                MatchRecord.participant_a_id,
                MatchRecord.participant_b_id,
                MatchRecord.winner_id,
                MatchRecord.played_at,
                MatchRecord.score_a,
                MatchRecord.score_b,
            )
            .where(MatchRecord.scope == scope)
            .order_by(MatchRecord.played_at.asc(), MatchRecord.id.asc())
        )
        with self._errors("list matches", scope):
            rows = self.session.execute(stmt).all()

        return [
            MatchSnapshot(
                id=row.id,
                participant_a=row.participant_a_id,
                participant_b=row.participant_b_id,
                winner=row.winner_id,
                played_at=row.played_at,
                score_a=row.score_a,
                score_b=row.score_b,
            )
            for row in rows
        ]

    def reset_competitors(
        self, scope: str, baseline: CompetitorStats
    ) -> dict[int, CompetitorStats]:
        with self._errors("reset competitors", scope):
            self.session.execute(
                update(Competitor)
                .where(Competitor.scope == scope)
                .values(**_stats_columns(baseline))
                .execution_options(synchronize_session=False)
            )
            ids = self.session.scalars(
                select(Competitor.id).where(Competitor.scope == scope)
            ).all()
            self.session.flush()
        return {cid: baseline for cid in ids}

    def write_competitor_stats(
        self, scope: str, stats: Mapping[int, CompetitorStats]
    ) -> int:
        """Rows belonging to another scope are left untouched."""
        if not stats:
            return 0
        with self._errors("write competitor stats", scope):
            in_scope = self._ids_in_scope(Competitor, scope, stats)
            rows = [
                {"id": cid, **_stats_columns(values), "updated_at": datetime.utcnow()}
                for cid, values in stats.items()
                if cid in in_scope
            ]
            if rows:
                # ORM bulk UPDATE by primary key (executemany)
                self.session.execute(update(Competitor), rows)
                self.session.flush()
        return len(rows)

    def write_match_changes(self, scope: str, changes: Mapping[int, int]) -> int:
        if not changes:
            return 0
        with self._errors("write match changes", scope):
            in_scope = self._ids_in_scope(MatchRecord, scope, changes)
            rows = [
                {"id": mid, "rating_change": delta}
                for mid, delta in changes.items()
                if mid in in_scope
            ]
            if rows:
                self.session.execute(update(MatchRecord), rows)
                self.session.flush()
        return len(rows)

    # =========================================================================
    # Competitors
    # =========================================================================

    def get_competitor(self, competitor_id: int) -> Competitor:
        with self._errors("load competitor"):
            competitor = self.session.get(Competitor, competitor_id)
        if competitor is None:
            raise NotFoundError("competitor", competitor_id)
        return competitor

    def list_competitors(self, scope: str) -> list[Competitor]:
        """Competitors ordered by rating (highest first), then name."""
        stmt = (
            select(Competitor)
            .where(Competitor.scope == scope)
            .order_by(Competitor.rating.desc(), func.lower(Competitor.name), Competitor.id)
        )
        with self._errors("list competitors", scope):
            return list(self.session.scalars(stmt).all())

    def create_competitor(
        self, scope: str, name: str, baseline: CompetitorStats | None = None
    ) -> Competitor:
        """New competitor starting from `baseline` (default rating if omitted)."""
        competitor = Competitor(
            scope=scope, name=name, **_stats_columns(baseline or CompetitorStats.baseline())
        )
        with self._write("create competitor", scope):
            self.session.add(competitor)
        return competitor

    def update_competitor(self, competitor_id: int, name: str) -> Competitor:
        competitor = self.get_competitor(competitor_id)
        with self._write("update competitor", competitor.scope):
            competitor.name = name
        return competitor

    # =========================================================================
    # Matches
    # =========================================================================

    def get_match(self, match_id: int) -> MatchRecord:
        with self._errors("load match"):
            match = self.session.get(MatchRecord, match_id)
        if match is None:
            raise NotFoundError("match", match_id)
        return match

    def list_match_history(self, scope: str) -> list[MatchRecord]:
        """Matches newest first, for display."""
        stmt = (
            select(MatchRecord)
            .where(MatchRecord.scope == scope)
            .order_by(MatchRecord.played_at.desc(), MatchRecord.id.desc())
        )
        with self._errors("list match history", scope):
            return list(self.session.scalars(stmt).all())

    def create_match(
        self,
        scope: str,
        participant_a: int,
        participant_b: int,
        winner: int,
        played_at: datetime,
        score_a: Optional[int] = None,
        score_b: Optional[int] = None,
    ) -> MatchRecord:
        match = MatchRecord(
            scope=scope,
            participant_a_id=participant_a,
            participant_b_id=participant_b,
            winner_id=winner,
            played_at=played_at,
            score_a=score_a,
            score_b=score_b,
        )
        with self._write("create match", scope):
            self.session.add(match)
        return match

    def update_match(self, match_id: int, **fields: Any) -> MatchRecord:
        unknown = set(fields) - EDITABLE_MATCH_FIELDS
        if unknown:
            raise ValueError(f"Cannot edit match fields: {sorted(unknown)}")
        match = self.get_match(match_id)
        with self._write("update match", match.scope):
            for key, value in fields.items():
                setattr(match, key, value)
        return match

    def delete_match(self, match_id: int) -> None:
        match = self.get_match(match_id)
        with self._write("delete match", match.scope):
            self.session.delete(match)

    # =========================================================================
    # Internals
    # =========================================================================

    @contextmanager
    def _errors(self, action: str, scope: str | None = None) -> Generator[None, None, None]:
        """Translate SQLAlchemy failures into StoreError."""
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error("Store failed to %s (scope=%s): %s", action, scope, exc)
            raise StoreError(f"Failed to {action}: {exc}", scope=scope) from exc

    @contextmanager
    def _write(self, action: str, scope: str | None = None) -> Generator[None, None, None]:
        """Apply a single CRUD write and commit it, or roll it back."""
        try:
            with self._errors(action, scope):
                yield
                self.session.commit()
        except BaseException:
            self.session.rollback()
            raise

    def _ids_in_scope(self, model: Any, scope: str, ids: Mapping[int, Any]) -> set[int]:
        return set(
            self.session.scalars(
                select(model.id).where(model.scope == scope, model.id.in_(list(ids)))
            ).all()
        )

    def _is_postgres(self) -> bool:
        return self.session.get_bind().dialect.name == "postgresql"

    def _prepare_postgres_transaction(self, scope: str) -> None:
        timeout_ms = int(self.timeout_seconds * 1000)
        connection = self.session.connection()
        # SET does not accept bind parameters
        connection.execute(text(f"SET LOCAL statement_timeout = {timeout_ms}"))
        try:
            acquire_xact_advisory_lock(
                connection,
                key=advisory_lock_key(f"pongrank:{scope}"),
                timeout_seconds=self.timeout_seconds,
            )
        except TimeoutError as exc:
            raise StoreError(str(exc), scope=scope) from exc


def _stats_columns(stats: CompetitorStats) -> dict[str, int]:
    return {
        "rating": stats.rating,
        "current_streak": stats.current_streak,
        "max_streak": stats.max_streak,
        "matches_played": stats.matches_played,
        "matches_won": stats.matches_won,
    }
