"""
Unit tests for RecomputeOrchestrator against the SQLAlchemy store.

Verifies full rebuilds, idempotence, retroactive edits, and that a failed
rebuild leaves the previously committed snapshot untouched.
"""

import logging

import pytest
from sqlalchemy.exc import OperationalError

from pongrank.db.models import Competitor, MatchRecord
from pongrank.elo.engine import RatingEngine, RatingParams
from pongrank.elo.orchestrator import RecomputeOrchestrator
from pongrank.elo.types import CompetitorStats
from pongrank.exceptions import RecomputeError, StoreError
from pongrank.locks import ScopeLockRegistry
from pongrank.store.sql import SqlRankingStore


def _competitors(store, *names, scope="default"):
    return [store.create_competitor(scope, name).id for name in names]


def _snapshot(session):
    """Derived fields of every competitor, read fresh from the database."""
    session.expire_all()
    return {
        c.id: (c.rating, c.current_streak, c.max_streak, c.matches_played, c.matches_won)
        for c in session.query(Competitor).order_by(Competitor.id)
    }


class _FailingWriteStore(SqlRankingStore):
    """Writes part of the snapshot, then fails."""

    def write_competitor_stats(self, scope, stats):
        super().write_competitor_stats(scope, stats)
        raise StoreError("disk full", scope=scope)


def _raise_operational_error(*args, **kwargs):
    raise OperationalError("COMMIT", None, Exception("disk I/O error"))


class _ExplodingEngine(RatingEngine):
    def replay(self, baseline, matches):
        raise RuntimeError("boom")


class TestTrigger:

    def test_single_match(self, store, orchestrator, db_session, clock):
        ana, ben = _competitors(store, "Ana", "Ben")
        store.create_match("default", ana, ben, ana, clock())

        result = orchestrator.trigger("default")

        assert result.matches_replayed == 1
        assert result.competitors_written == 2
        snapshot = _snapshot(db_session)
        assert snapshot[ana] == (1216, 1, 1, 1, 1)
        assert snapshot[ben] == (1184, 0, 0, 1, 0)

    def test_match_rating_change_is_stored(self, store, orchestrator, db_session, clock):
        ana, ben = _competitors(store, "Ana", "Ben")
        match = store.create_match("default", ana, ben, ben, clock())

        orchestrator.trigger("default")

        db_session.expire_all()
        assert db_session.get(MatchRecord, match.id).rating_change == 16

    def test_trigger_twice_is_idempotent(self, store, orchestrator, db_session, clock):
        ids = _competitors(store, "Ana", "Ben", "Cleo")
        for a, b in [(0, 1), (1, 2), (2, 0), (0, 1), (1, 2)]:
            store.create_match("default", ids[a], ids[b], ids[b], clock())

        orchestrator.trigger("default")
        first = _snapshot(db_session)
        orchestrator.trigger("default")
        assert _snapshot(db_session) == first

    def test_stats_not_left_from_previous_history(self, store, orchestrator, db_session, clock):
        """A rebuild starts from the baseline, not from the stored values."""
        ana, ben = _competitors(store, "Ana", "Ben")
        match = store.create_match("default", ana, ben, ana, clock())
        orchestrator.trigger("default")

        store.delete_match(match.id)
        orchestrator.trigger("default")

        snapshot = _snapshot(db_session)
        assert snapshot[ana] == (1200, 0, 0, 0, 0)
        assert snapshot[ben] == (1200, 0, 0, 0, 0)

    def test_deleting_earliest_match_matches_independent_replay(
        self, store, orchestrator, db_session, clock
    ):
        ids = _competitors(store, "Ana", "Ben", "Cleo", "Dan")
        pairs = [(0, 1, 0), (2, 3, 3), (0, 2, 2), (1, 3, 1), (0, 3, 0), (1, 2, 2)]
        matches = [
            store.create_match("default", ids[a], ids[b], ids[w], clock())
            for a, b, w in pairs
        ]
        orchestrator.trigger("default")

        store.delete_match(matches[0].id)
        orchestrator.trigger("default")

        engine = RatingEngine(RatingParams())
        expected = engine.recompute(engine.baseline_for(ids), store.list_matches("default"))
        snapshot = _snapshot(db_session)
        for cid, stats in expected.items():
            assert snapshot[cid] == (
                stats.rating,
                stats.current_streak,
                stats.max_streak,
                stats.matches_played,
                stats.matches_won,
            )

    def test_invariants_after_trigger(self, store, orchestrator, db_session, clock):
        ids = _competitors(store, "Ana", "Ben", "Cleo")
        for i in range(12):
            a, b = ids[i % 3], ids[(i + 1) % 3]
            store.create_match("default", a, b, a if i % 4 else b, clock())

        orchestrator.trigger("default")

        snapshot = _snapshot(db_session)
        assert sum(s[3] for s in snapshot.values()) == 24
        assert sum(s[4] for s in snapshot.values()) == 12
        for rating, current, best, played, won in snapshot.values():
            assert won <= played
            assert current <= best

    def test_scopes_are_independent(self, store, orchestrator, db_session, clock):
        ana, ben = _competitors(store, "Ana", "Ben")
        cleo, dan = _competitors(store, "Cleo", "Dan", scope="other")
        store.create_match("default", ana, ben, ana, clock())
        store.create_match("other", cleo, dan, dan, clock())

        orchestrator.trigger("default")

        snapshot = _snapshot(db_session)
        assert snapshot[ana][0] == 1216
        assert snapshot[cleo][0] == 1200
        assert snapshot[dan][0] == 1200


class TestFailures:

    def test_store_failure_keeps_previous_snapshot(self, db_session, store, orchestrator, clock):
        ana, ben = _competitors(store, "Ana", "Ben")
        store.create_match("default", ana, ben, ana, clock())
        orchestrator.trigger("default")
        before = _snapshot(db_session)

        # New match written, but the rebuild fails midway through persisting
        late = store.create_match("default", ana, ben, ben, clock())
        failing = RecomputeOrchestrator(
            _FailingWriteStore(db_session), lock_timeout_seconds=1.0, locks=ScopeLockRegistry()
        )
        with pytest.raises(StoreError) as exc_info:
            failing.trigger("default")

        assert exc_info.value.retryable
        assert _snapshot(db_session) == before
        assert db_session.get(MatchRecord, late.id).rating_change is None

        # A successful retry brings the ranking back in line
        orchestrator.trigger("default")
        assert _snapshot(db_session)[ben][1] == 1

    def test_unexpected_error_becomes_recompute_error(self, db_session, store, clock):
        ana, ben = _competitors(store, "Ana", "Ben")
        store.create_match("default", ana, ben, ana, clock())
        orchestrator = RecomputeOrchestrator(
            store,
            engine=_ExplodingEngine(),
            lock_timeout_seconds=1.0,
            locks=ScopeLockRegistry(),
        )

        with pytest.raises(RecomputeError) as exc_info:
            orchestrator.trigger("default")

        assert exc_info.value.retryable
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert _snapshot(db_session)[ana] == (1200, 0, 0, 0, 0)

    def test_invalid_stored_match_aborts_rebuild(self, store, orchestrator, db_session, clock):
        """Stored history that contradicts itself is surfaced, not skipped."""
        ana, ben = _competitors(store, "Ana", "Ben")
        store.create_match("default", ana, ben, ana, clock())
        orchestrator.trigger("default")
        before = _snapshot(db_session)

        # Written past the service layer: winner holds the lower score
        store.create_match("default", ana, ben, ana, clock(), score_a=3, score_b=11)

        with pytest.raises(RecomputeError):
            orchestrator.trigger("default")
        assert _snapshot(db_session) == before

    def test_lock_timeout(self, store, rating_engine):
        locks = ScopeLockRegistry()
        orchestrator = RecomputeOrchestrator(
            store, engine=rating_engine, lock_timeout_seconds=0.0, locks=locks
        )

        with locks.hold("default", timeout_seconds=0.0):
            with pytest.raises(RecomputeError, match="Timed out"):
                orchestrator.trigger("default")
            # Other scopes are not blocked
            assert orchestrator.trigger("other").scope == "other"

    def test_failed_commit_becomes_store_error(
        self, db_session, store, orchestrator, clock, monkeypatch
    ):
        ana, ben = _competitors(store, "Ana", "Ben")
        store.create_match("default", ana, ben, ana, clock())
        orchestrator.trigger("default")
        before = _snapshot(db_session)
        late = store.create_match("default", ana, ben, ben, clock())

        monkeypatch.setattr(db_session, "commit", _raise_operational_error)
        with pytest.raises(StoreError) as exc_info:
            orchestrator.trigger("default")
        monkeypatch.undo()

        assert exc_info.value.retryable
        assert isinstance(exc_info.value.__cause__, OperationalError)
        assert _snapshot(db_session) == before
        assert db_session.get(MatchRecord, late.id).rating_change is None

    def test_failed_query_becomes_store_error(
        self, db_session, store, orchestrator, clock, monkeypatch
    ):
        ana, ben = _competitors(store, "Ana", "Ben")
        store.create_match("default", ana, ben, ana, clock())
        orchestrator.trigger("default")
        before = _snapshot(db_session)

        monkeypatch.setattr(db_session, "execute", _raise_operational_error)
        with pytest.raises(StoreError) as exc_info:
            orchestrator.trigger("default")
        monkeypatch.undo()

        assert exc_info.value.retryable
        assert _snapshot(db_session) == before


class TestScopeIsolation:

    def test_history_pointing_outside_scope_aborts_rebuild(
        self, store, orchestrator, db_session, clock
    ):
        (ana,) = _competitors(store, "Ana")
        cleo, dan = _competitors(store, "Cleo", "Dan", scope="other")
        store.create_match("other", cleo, dan, cleo, clock())
        orchestrator.trigger("other")
        before = _snapshot(db_session)

        # Written past the service layer, which checks participant scopes
        store.create_match("default", ana, cleo, ana, clock())

        with pytest.raises(RecomputeError, match="outside it"):
            orchestrator.trigger("default")
        assert _snapshot(db_session) == before
        assert before[cleo][0] == 1216

    def test_stats_write_skips_other_scope(self, store, db_session):
        (ana,) = _competitors(store, "Ana")
        (cleo,) = _competitors(store, "Cleo", scope="other")

        with store.transaction("default"):
            written = store.write_competitor_stats(
                "default",
                {ana: CompetitorStats(rating=1300), cleo: CompetitorStats(rating=999)},
            )

        assert written == 1
        snapshot = _snapshot(db_session)
        assert snapshot[ana][0] == 1300
        assert snapshot[cleo][0] == 1200

    def test_pending_changes_are_logged_and_discarded(
        self, store, orchestrator, db_session, caplog
    ):
        _competitors(store, "Ana")
        db_session.add(Competitor(scope="default", name="Ghost"))

        with caplog.at_level(logging.DEBUG, logger="pongrank.store.sql"):
            orchestrator.trigger("default")

        assert "Discarding 1 pending change(s)" in caplog.text
        assert [c.name for c in store.list_competitors("default")] == ["Ana"]
