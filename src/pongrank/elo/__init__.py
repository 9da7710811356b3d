"""
ELO rating module.

Implements head-to-head ELO rankings with:
- Integer ratings starting at 1200 and a configurable K-factor
- Win streak and match count tracking
- Full-history replay in (played_at, id) order
- Lock-guarded, all-or-nothing rebuilds after every history edit
"""

from pongrank.elo.calculator import EloCalculator, EloUpdate
from pongrank.elo.constants import DEFAULT_K_FACTOR, DEFAULT_RATING, rank_tier
from pongrank.elo.engine import RatingEngine, RatingParams, ReplayResult
from pongrank.elo.orchestrator import RecomputeOrchestrator, RecomputeResult
from pongrank.elo.types import CompetitorStats, MatchSnapshot, match_order_key

__all__ = [
    "EloCalculator",
    "EloUpdate",
    "DEFAULT_K_FACTOR",
    "DEFAULT_RATING",
    "rank_tier",
    "RatingEngine",
    "RatingParams",
    "ReplayResult",
    "RecomputeOrchestrator",
    "RecomputeResult",
    "CompetitorStats",
    "MatchSnapshot",
    "match_order_key",
]
