"""
Exception hierarchy for pongrank.

    RankingError
    ├── ValidationError            bad input, raised before any write
    ├── NotFoundError              unknown competitor or match id
    └── RankingInconsistentError   rebuild failed; retry later
        ├── StoreError             storage read/write failure
        └── RecomputeError         anything else during reset -> replay -> write

A RankingInconsistentError means the last committed snapshot is still in
place but may not reflect the latest edit to match history.
"""


class RankingError(Exception):
    """Base class for all pongrank errors."""

    retryable = False

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(RankingError):
    """Raised when a competitor or match fails validation."""


class NotFoundError(RankingError):
    """Raised when a competitor or match id does not exist."""

    def __init__(self, kind: str, identifier: object) -> None:
        super().__init__(f"{kind} '{identifier}' not found")
        self.kind = kind
        self.identifier = identifier


class RankingInconsistentError(RankingError):
    """Ranking may be stale: the rebuild did not commit and should be retried."""

    retryable = True

    def __init__(self, detail: str, scope: str | None = None) -> None:
        super().__init__(detail)
        self.scope = scope


class StoreError(RankingInconsistentError):
    """Raised when the store fails to read or write."""


class RecomputeError(RankingInconsistentError):
    """Raised for unclassified failures during a full rebuild."""
