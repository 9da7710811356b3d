"""
Store contract consumed by the rating core.

The orchestrator only needs the rebuild half of this protocol
(transaction / list_matches / reset_competitors / write_*). The CRUD half
is used by the service layer, which must call
RecomputeOrchestrator.trigger(scope) after every successful write that
touches match history.

Implementations raise StoreError for any read or write failure.
"""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol, Sequence

from pongrank.elo.types import CompetitorStats, MatchSnapshot


class RankingStore(Protocol):
    """Read/write contract for competitors and match history."""

    # ------------------------------------------------------------------
    # Rebuild contract
    # ------------------------------------------------------------------

    def transaction(self, scope: str) -> AbstractContextManager[None]:
        """
        Delimit one atomic write scope.

        Everything written inside commits together when the block exits
        normally, and is discarded if it raises.
        """
        ...

    def list_matches(self, scope: str) -> list[MatchSnapshot]:
        """Full match history, ascending by played_at then id."""
        ...

    def reset_competitors(
        self, scope: str, baseline: CompetitorStats
    ) -> dict[int, CompetitorStats]:
        """Overwrite every competitor's derived fields; return the new baseline map."""
        ...

    def write_competitor_stats(
        self, scope: str, stats: Mapping[int, CompetitorStats]
    ) -> int:
        """
        Bulk-write derived fields; return the number of competitors written.

        Ids outside the scope are skipped.
        """
        ...

    def write_match_changes(self, scope: str, changes: Mapping[int, int]) -> int:
        """Bulk-write the rating delta applied by each match."""
        ...

    # ------------------------------------------------------------------
    # CRUD (service layer)
    # ------------------------------------------------------------------

    def get_competitor(self, competitor_id: int) -> Any:
        ...

    def list_competitors(self, scope: str) -> Sequence[Any]:
        ...

    def create_competitor(
        self, scope: str, name: str, baseline: Optional[CompetitorStats] = None
    ) -> Any:
        ...

    def update_competitor(self, competitor_id: int, name: str) -> Any:
        ...

    def get_match(self, match_id: int) -> Any:
        ...

    def list_match_history(self, scope: str) -> Sequence[Any]:
        ...

    def create_match(
        self,
        scope: str,
        participant_a: int,
        participant_b: int,
        winner: int,
        played_at: datetime,
        score_a: Optional[int] = None,
        score_b: Optional[int] = None,
    ) -> Any:
        ...

    def update_match(self, match_id: int, **fields: Any) -> Any:
        ...

    def delete_match(self, match_id: int) -> None:
        ...
