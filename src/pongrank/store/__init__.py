"""Store contract and implementations."""

from pongrank.store.base import RankingStore
from pongrank.store.sql import SqlRankingStore

__all__ = ["RankingStore", "SqlRankingStore"]
