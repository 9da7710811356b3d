"""Lock helpers that serialize full rebuilds of the same scope."""

from __future__ import annotations

import hashlib
import threading
import time
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import text
from sqlalchemy.engine import Connection


def advisory_lock_key(name: str) -> int:
    """Return a deterministic signed 64-bit lock key from a scope name."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


class ScopeLockRegistry:
    """
    One in-process lock per dataset scope.

    Rebuilds of different scopes run in parallel; rebuilds of the same
    scope queue up behind each other.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, scope: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(scope)
            if lock is None:
                lock = self._locks[scope] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, scope: str, timeout_seconds: float) -> Generator[None, None, None]:
        """
        Hold the scope's lock for the life of this context.

        Raises:
            TimeoutError: if the lock cannot be acquired before timeout.
        """
        lock = self._lock_for(scope)
        if not lock.acquire(timeout=max(timeout_seconds, 0.0)):
            raise TimeoutError(f"Could not acquire rebuild lock for scope={scope!r}")
        try:
            yield
        finally:
            lock.release()


def acquire_xact_advisory_lock(
    connection: Connection,
    *,
    key: int,
    timeout_seconds: float = 0.0,
    poll_interval_seconds: float = 0.25,
) -> None:
    """
    Acquire a PostgreSQL transaction-level advisory lock on `connection`.

    The lock is released automatically when the surrounding transaction
    commits or rolls back.

    Raises:
        TimeoutError: if lock cannot be acquired before timeout.
    """
    deadline = time.monotonic() + max(timeout_seconds, 0.0)
    while True:
        acquired = bool(
            connection.execute(
                text("SELECT pg_try_advisory_xact_lock(:key)"),
                {"key": key},
            ).scalar()
        )
        if acquired:
            return
        if timeout_seconds <= 0 or time.monotonic() >= deadline:
            raise TimeoutError(f"Could not acquire advisory lock key={key}")
        time.sleep(max(poll_interval_seconds, 0.05))
