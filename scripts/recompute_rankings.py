#!/usr/bin/env python3
"""
Rebuild rankings from the full match history.

Normal usage (rebuild the default scope):
    python scripts/recompute_rankings.py

Rebuild a specific scope:
    python scripts/recompute_rankings.py --scope office-league

Dry run (compute and report, but roll back instead of committing):
    python scripts/recompute_rankings.py --dry-run

Create tables first on a fresh database:
    python scripts/recompute_rankings.py --create-tables
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

# Add src to path so this script can be run directly
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from pongrank.config import settings
from pongrank.db import Base, get_engine, get_session
from pongrank.elo.orchestrator import RecomputeOrchestrator
from pongrank.exceptions import RankingError
from pongrank.store.sql import SqlRankingStore


class _DryRunRollback(Exception):
    """Raised inside the rebuild transaction to discard it."""


class _DryRunStore(SqlRankingStore):
    """Store whose rebuild transaction always rolls back."""

    @contextmanager
    def transaction(self, scope):
        try:
            with super().transaction(scope):
                yield
                raise _DryRunRollback()
        except _DryRunRollback:
            pass


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rebuild competitor rankings from match history.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--scope",
        default=settings.default_scope,
        help=f"Dataset scope to rebuild (default: {settings.default_scope}).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute the rebuild but do not commit it.",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before rebuilding.",
    )
    parser.add_argument(
        "--metrics-json",
        default=None,
        help="Write a JSON summary to this path on completion.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    logging.basicConfig(level=settings.log_level, format=settings.log_format)

    if args.create_tables:
        Base.metadata.create_all(get_engine())

    started_at = _utc_now_iso()
    print(f"RANKING REBUILD  scope={args.scope}  dry_run={args.dry_run}  started={started_at}")
    print("-" * 60)

    try:
        with get_session() as session:
            store_cls = _DryRunStore if args.dry_run else SqlRankingStore
            orchestrator = RecomputeOrchestrator(store_cls(session))
            result = orchestrator.trigger(args.scope)
    except RankingError as exc:
        print(f"ERROR: {exc.detail}")
        if exc.retryable:
            print("Rankings were left at their last committed values; retry the rebuild.")
        return 1

    if args.dry_run:
        print("(dry run: changes rolled back)")

    print(f"Matches replayed:       {result.matches_replayed}")
    print(f"Competitors written:    {result.competitors_written}")
    print(f"Elapsed:                {result.elapsed_s:.2f}s")

    if args.metrics_json:
        payload = {
            "status": "success",
            "dry_run": args.dry_run,
            "started_at": started_at,
            **result.to_dict(),
        }
        metrics_path = Path(args.metrics_json)
        metrics_path.parent.mkdir(parents=True, exist_ok=True)
        metrics_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
