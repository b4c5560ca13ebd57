"""Locking utilities for serialized season mutations."""

from seasonelo.tasks.locks import (
    SeasonLockRegistry,
    advisory_lock_key,
    postgres_advisory_lock,
    season_lock_name,
)

__all__ = [
    "SeasonLockRegistry",
    "advisory_lock_key",
    "postgres_advisory_lock",
    "season_lock_name",
]
