"""Application services built on top of the rating core."""

from pongrank.services.rankings import LeaderboardEntry, MatchHistoryEntry, RankingService

__all__ = ["LeaderboardEntry", "MatchHistoryEntry", "RankingService"]
