"""
Services for SeasonElo.

- coordinator: Serialized season mutations with rating recomputation
"""

from seasonelo.services.coordinator import (
    CoordinatorState,
    LeaderboardEntry,
    RecomputationCoordinator,
)

__all__ = [
    "CoordinatorState",
    "LeaderboardEntry",
    "RecomputationCoordinator",
]
