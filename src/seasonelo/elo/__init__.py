"""
ELO rating system module.

Implements team ELO for doubles matches with:
- Mean team rating (one-player sides use the player's own rating)
- Margin-of-victory K-factor scaling, clamped
- Zero-sum deltas split equally between teammates
- A season ledger that replays matches in creation order
"""

from seasonelo.elo.calculator import (
    EloParams,
    RatingModel,
    RatingUpdate,
    expected_score,
    per_player_delta,
    team_rating,
)
from seasonelo.elo.constants import DEFAULT_ELO, ELO_CONSTANTS, MARGIN_DEFAULTS
from seasonelo.elo.ledger import (
    Checkpoint,
    MatchRow,
    RatingLedger,
    RecomputeResult,
    fold_ratings,
    replay_matches,
)
from seasonelo.elo.margin import MarginResult, calculate_margin_multiplier

__all__ = [
    "EloParams",
    "RatingModel",
    "RatingUpdate",
    "expected_score",
    "per_player_delta",
    "team_rating",
    "DEFAULT_ELO",
    "ELO_CONSTANTS",
    "MARGIN_DEFAULTS",
    "Checkpoint",
    "MatchRow",
    "RatingLedger",
    "RecomputeResult",
    "fold_ratings",
    "replay_matches",
    "MarginResult",
    "calculate_margin_multiplier",
]
