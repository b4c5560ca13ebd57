"""
Match submission validation.

Every insert and edit passes through validate_match() before the store is
touched, so a rejected match never has a partial effect.

Rules:
- Each side needs a first player; the second player is optional
- Player ids are at most MAX_PLAYER_ID_LENGTH characters after stripping
- A player may appear only once across both sides
- result must be a known MatchResult (form aliases accepted)
- score_diff must be an integer in [0, max_score_diff] and a multiple
  of score_diff_step (booleans are rejected)
- A draw must carry score_diff 0
"""

from dataclasses import dataclass
from typing import Any, Optional

from seasonelo.elo.constants import MAX_PLAYER_ID_LENGTH, MAX_SCORE_DIFF, SCORE_DIFF_STEP
from seasonelo.exceptions import ValidationError
from seasonelo.match_results import MatchResult, normalize_result


@dataclass(frozen=True)
class Side:
    """One team in a match: a required first player and an optional second."""

    player1: str
    player2: Optional[str] = None

    @property
    def players(self) -> tuple[str, ...]:
        if self.player2:
            return (self.player1, self.player2)
        return (self.player1,)

    @classmethod
    def coerce(cls, value: Any) -> "Side":
        """Accept a Side, a single player id, or a 1-2 item sequence."""
        if isinstance(value, Side):
            return value
        if value is None:
            return cls(player1="")
        if isinstance(value, str):
            return cls(player1=value)
        items = list(value)
        if not items or len(items) > 2:
            raise ValidationError("A side must have one or two players.")
        return cls(player1=items[0], player2=items[1] if len(items) == 2 else None)


@dataclass(frozen=True)
class MatchInput:
    """A validated, normalized match submission."""

    side_a: Side
    side_b: Side
    result: MatchResult
    score_diff: int

    @property
    def participants(self) -> tuple[str, ...]:
        return self.side_a.players + self.side_b.players


def _clean_player_id(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    cleaned = str(raw).strip()
    return cleaned or None


def _normalize_side(raw: Any, label: str) -> Side:
    side = Side.coerce(raw)
    player1 = _clean_player_id(side.player1)
    player2 = _clean_player_id(side.player2)

    if player1 is None:
        raise ValidationError(f"Side {label} needs a first player.")
    for player_id in (player1, player2):
        if player_id is not None and len(player_id) > MAX_PLAYER_ID_LENGTH:
            raise ValidationError(
                f"Player id on side {label} is longer than {MAX_PLAYER_ID_LENGTH} characters."
            )
    if player2 is not None and player2 == player1:
        raise ValidationError(f"Side {label} lists player '{player1}' twice.")

    return Side(player1=player1, player2=player2)


def _normalize_score_diff(raw: Any, max_score_diff: int, step: int) -> int:
    # Reject booleans explicitly (bool is a subclass of int in Python)
    if isinstance(raw, bool):
        raise ValidationError("score_diff must be an integer (not a boolean).")
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("score_diff must be an integer.") from None
    if isinstance(raw, float) and raw != value:
        raise ValidationError("score_diff must be a whole number.")

    if value < 0:
        raise ValidationError("score_diff must be >= 0.")
    if value > max_score_diff:
        raise ValidationError(f"score_diff must be <= {max_score_diff}.")
    if step > 1 and value % step != 0:
        raise ValidationError(f"score_diff must be a multiple of {step}.")
    return value


def validate_match(
    side_a: Any,
    side_b: Any,
    result: Any,
    score_diff: Any,
    *,
    max_score_diff: int = MAX_SCORE_DIFF,
    score_diff_step: int = SCORE_DIFF_STEP,
) -> MatchInput:
    """
    Validate and normalize a match submission.

    Args:
        side_a: Side, player id, or sequence of one or two player ids
        side_b: Same forms as side_a
        result: MatchResult or an accepted alias string
        score_diff: Margin of the result
        max_score_diff: Upper bound for score_diff
        score_diff_step: score_diff must be a multiple of this

    Returns:
        MatchInput with stripped player ids and a MatchResult

    Raises:
        ValidationError: On any rule violation
    """
    a = _normalize_side(side_a, "A")
    b = _normalize_side(side_b, "B")

    overlap = set(a.players) & set(b.players)
    if overlap:
        names = ", ".join(sorted(overlap))
        raise ValidationError(f"Player(s) {names} cannot play on both sides.")

    try:
        normalized_result = normalize_result(result)
    except ValueError as exc:
        raise ValidationError(str(exc)) from None

    diff = _normalize_score_diff(score_diff, max_score_diff, score_diff_step)
    if normalized_result == MatchResult.DRAW and diff != 0:
        raise ValidationError("A draw cannot carry a score difference.")

    return MatchInput(side_a=a, side_b=b, result=normalized_result, score_diff=diff)
