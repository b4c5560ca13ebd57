"""
ELO rating model for doubles matches.

Implements the standard ELO formula applied team-vs-team:
- A side's rating is the mean of its players' ratings (a one-player side
  uses that player's rating directly)
- Margin-of-victory scaling of K (see margin.py)
- Zero-sum: side B's delta is always the negation of side A's

The ELO formula:
  Expected score: E_A = 1 / (1 + 10^((R_B - R_A) / S))
  Side delta:     D_A = K * M * (actual - E_A),  D_B = -D_A

Where:
  R_A, R_B = Team ratings of sides A and B
  K = Base volatility factor
  S = Spread factor (how rating difference maps to win probability)
  M = Margin multiplier from the score difference (1.0 for draws)

A side's delta is divided equally among its members, so teammates always
move together and the per-player deltas of a match sum to zero.

Everything here is pure: same inputs, same outputs, no I/O. Replaying a
season relies on that.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from seasonelo.elo.constants import DEFAULT_ELO, ELO_CONSTANTS, MARGIN_DEFAULTS
from seasonelo.elo.margin import calculate_margin_multiplier
from seasonelo.match_results import MatchResult, normalize_result


@dataclass(frozen=True)
class EloParams:
    """
    All rating constants in one object.

    Fixed for a deployment; RatingModel never takes them per call.
    """
    k_factor: float = ELO_CONSTANTS["K"]
    spread: float = ELO_CONSTANTS["S"]
    baseline: float = DEFAULT_ELO
    margin_scale: float = MARGIN_DEFAULTS["margin_scale"]
    max_margin_multiplier: float = MARGIN_DEFAULTS["max_multiplier"]

    @classmethod
    def from_settings(cls, config=None) -> "EloParams":
        """Build params from application settings."""
        if config is None:
            from seasonelo.config import settings as config
        return cls(
            k_factor=config.k_factor,
            spread=config.spread,
            baseline=config.baseline_rating,
            margin_scale=config.margin_scale,
            max_margin_multiplier=config.max_margin_multiplier,
        )


@dataclass
class RatingUpdate:
    """
    Result of applying the model to one match at team level.

    delta_a and delta_b are side totals; use per_player_delta() for the
    amount each member actually moves.
    """
    # Team ratings before the match
    side_a_rating: float
    side_b_rating: float

    # Expected score for side A (before the match)
    expected_a: float

    # Side deltas (delta_b == -delta_a)
    delta_a: float
    delta_b: float

    result: MatchResult
    margin_multiplier: float
    k_factor: float

    @property
    def expected_b(self) -> float:
        return 1.0 - self.expected_a

    @property
    def was_upset(self) -> bool:
        """Whether the lower-rated side won."""
        if self.result == MatchResult.SIDE_A:
            return self.side_a_rating < self.side_b_rating
        if self.result == MatchResult.SIDE_B:
            return self.side_b_rating < self.side_a_rating
        return False

    def __repr__(self) -> str:
        return (
            f"<RatingUpdate(A: {self.side_a_rating:.1f} {self.delta_a:+.2f}, "
            f"B: {self.side_b_rating:.1f} {self.delta_b:+.2f}, "
            f"result={self.result.value})>"
        )


def expected_score(rating_a: float, rating_b: float, spread: float) -> float:
    """Expected score for A against B on the base-10 logistic curve."""
    try:
        return 1.0 / (1.0 + 10.0 ** ((rating_b - rating_a) / spread))
    except OverflowError:
        # Only reachable with absurd gaps; A is a hopeless underdog
        return 0.0


def team_rating(ratings: Sequence[float]) -> float:
    """
    Effective rating of a side: the mean of its members.

    A one-player side returns that player's rating unchanged.
    """
    if not ratings:
        raise ValueError("a side needs at least one player")
    if len(ratings) == 1:
        return float(ratings[0])
    return sum(ratings) / len(ratings)


def per_player_delta(side_delta: float, side_size: int) -> float:
    """Share of a side's delta received by each of its members."""
    if side_size < 1:
        raise ValueError("a side needs at least one player")
    return side_delta / side_size


class RatingModel:
    """
    Team ELO model with margin-of-victory scaling.

    Usage:
        model = RatingModel()

        update = model.apply(
            side_a_rating=1000.0,
            side_b_rating=1000.0,
            result=MatchResult.SIDE_A,
            score_diff=20,
        )
        print(update.delta_a)   # 16.8 with default constants

        new_a, new_b, update = model.apply_sides(
            [1000.0, 1000.0], [1000.0, 1000.0], MatchResult.SIDE_A, 20,
        )
        # new_a == [1008.4, 1008.4]
    """

    def __init__(self, params: Optional[EloParams] = None):
        self.params = params or EloParams()

    def apply(
        self,
        side_a_rating: float,
        side_b_rating: float,
        result: MatchResult | str,
        score_diff: int,
    ) -> RatingUpdate:
        """
        Calculate the team-level rating deltas for one match.

        Args:
            side_a_rating: Team rating of side A before the match
            side_b_rating: Team rating of side B before the match
            result: Who won (or draw)
            score_diff: Non-negative margin; ignored for draws

        Returns:
            RatingUpdate with deltas and calculation details

        Raises:
            ValueError: If result is unknown or score_diff is negative
        """
        result = normalize_result(result)
        params = self.params

        margin = calculate_margin_multiplier(
            score_diff,
            is_draw=result == MatchResult.DRAW,
            margin_scale=params.margin_scale,
            max_multiplier=params.max_margin_multiplier,
        )
        k = params.k_factor * margin.multiplier

        exp_a = expected_score(side_a_rating, side_b_rating, params.spread)
        delta_a = k * (result.score_a - exp_a)

        return RatingUpdate(
            side_a_rating=float(side_a_rating),
            side_b_rating=float(side_b_rating),
            expected_a=exp_a,
            delta_a=delta_a,
            delta_b=-delta_a,
            result=result,
            margin_multiplier=margin.multiplier,
            k_factor=k,
        )

    def apply_sides(
        self,
        side_a_ratings: Sequence[float],
        side_b_ratings: Sequence[float],
        result: MatchResult | str,
        score_diff: int,
    ) -> tuple[list[float], list[float], RatingUpdate]:
        """
        Apply one match to individual player ratings.

        Args:
            side_a_ratings: Ratings of side A's players (one or two)
            side_b_ratings: Ratings of side B's players (one or two)
            result: Who won (or draw)
            score_diff: Non-negative margin; ignored for draws

        Returns:
            Tuple of (new side A ratings, new side B ratings, RatingUpdate),
            ratings in the same order they were passed
        """
        update = self.apply(
            team_rating(side_a_ratings),
            team_rating(side_b_ratings),
            result,
            score_diff,
        )
        share_a = per_player_delta(update.delta_a, len(side_a_ratings))
        share_b = per_player_delta(update.delta_b, len(side_b_ratings))

        new_a = [r + share_a for r in side_a_ratings]
        new_b = [r + share_b for r in side_b_ratings]
        return new_a, new_b, update

    def win_probability(
        self,
        side_a_ratings: Sequence[float],
        side_b_ratings: Sequence[float],
    ) -> float:
        """
        Probability of side A winning, from current player ratings.

        Useful for showing the expected outcome before a match is played.
        """
        return expected_score(
            team_rating(side_a_ratings),
            team_rating(side_b_ratings),
            self.params.spread,
        )
