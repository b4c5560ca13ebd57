"""Per-season writer locks.

Mutations of one season are serialized; different seasons never block
each other. Inside one process this is a registry of threading locks
keyed by season id. When the database is PostgreSQL, a session-level
advisory lock with the same key is taken as well so that several worker
processes sharing the database also take turns.
"""

from __future__ import annotations

import hashlib
import threading
import time
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import text
from sqlalchemy.engine import Engine


def advisory_lock_key(name: str) -> int:
    """Return a deterministic signed 64-bit lock key from a lock name."""
    digest = hashlib.sha256(name.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], byteorder="big", signed=True)


def season_lock_name(season_id: int) -> str:
    return f"seasonelo:season:{season_id}"


@contextmanager
def postgres_advisory_lock(
    engine: Engine,
    *,
    key: int,
    timeout_seconds: float = 0.0,
    poll_interval_seconds: float = 0.1,
) -> Generator[bool, None, None]:
    """
    Acquire a PostgreSQL advisory lock for the life of this context.

    Yields:
        True if lock acquired.

    Raises:
        TimeoutError: if lock cannot be acquired before timeout.
    """
    connection = engine.connect()
    acquired = False
    try:
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while True:
            acquired = bool(
                connection.execute(
                    text("SELECT pg_try_advisory_lock(:key)"),
                    {"key": key},
                ).scalar()
            )
            if acquired:
                break
            if timeout_seconds <= 0:
                break
            if time.monotonic() >= deadline:
                break
            time.sleep(max(poll_interval_seconds, 0.05))

        if not acquired:
            raise TimeoutError(f"Could not acquire advisory lock key={key}")

        yield True
    finally:
        if acquired:
            connection.execute(
                text("SELECT pg_advisory_unlock(:key)"),
                {"key": key},
            )
        connection.close()


class SeasonLockRegistry:
    """
    One lock per season id, created on first use.

    Usage:
        locks = SeasonLockRegistry()
        with locks.hold(season_id, timeout_seconds=30):
            ...  # only writer for this season
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def lock_for(self, season_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(season_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[season_id] = lock
            return lock

    def is_held(self, season_id: int) -> bool:
        return self.lock_for(season_id).locked()

    @contextmanager
    def hold(
        self,
        season_id: int,
        *,
        timeout_seconds: float = 30.0,
        engine: Engine | None = None,
    ) -> Generator[None, None, None]:
        """
        Hold the season's writer slot for the life of this context.

        Args:
            season_id: Season to serialize on
            timeout_seconds: How long to wait for the slot (0 = try once)
            engine: When given and PostgreSQL, also take the advisory lock

        Raises:
            TimeoutError: If the slot cannot be acquired in time
        """
        lock = self.lock_for(season_id)
        # 0 means try once, like the advisory lock
        if timeout_seconds > 0:
            acquired = lock.acquire(timeout=timeout_seconds)
        else:
            acquired = lock.acquire(blocking=False)
        if not acquired:
            raise TimeoutError(f"Could not acquire writer lock for season {season_id}")
        try:
            if engine is not None and engine.dialect.name == "postgresql":
                with postgres_advisory_lock(
                    engine,
                    key=advisory_lock_key(season_lock_name(season_id)),
                    timeout_seconds=timeout_seconds,
                ):
                    yield
            else:
                yield
        finally:
            lock.release()
