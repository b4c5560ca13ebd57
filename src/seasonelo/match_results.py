"""Shared match-result definitions and helpers.

This module is the single source of truth for result values used by the
rating model, the match store and the database schema.
"""

from __future__ import annotations

from enum import Enum


class MatchResult(str, Enum):
    """Outcome of a match from side A's point of view."""

    SIDE_A = "side_a"
    SIDE_B = "side_b"
    DRAW = "draw"

    @property
    def score_a(self) -> float:
        """Actual score for side A (1 win, 0 loss, 0.5 draw)."""
        return _ACTUAL_SCORE_A[self]


_ACTUAL_SCORE_A: dict[MatchResult, float] = {
    MatchResult.SIDE_A: 1.0,
    MatchResult.SIDE_B: 0.0,
    MatchResult.DRAW: 0.5,
}

# Alternative spellings accepted from submission forms. The admin form
# labels the sides White and Black.
RESULT_ALIASES: dict[str, MatchResult] = {
    "side_a": MatchResult.SIDE_A,
    "a": MatchResult.SIDE_A,
    "white": MatchResult.SIDE_A,
    "side_b": MatchResult.SIDE_B,
    "b": MatchResult.SIDE_B,
    "black": MatchResult.SIDE_B,
    "draw": MatchResult.DRAW,
}


def normalize_result(raw: MatchResult | str) -> MatchResult:
    """Normalize a submitted result to a MatchResult.

    Raises ValueError for unknown values.
    """
    if isinstance(raw, MatchResult):
        return raw
    key = str(raw).strip().lower()
    try:
        return RESULT_ALIASES[key]
    except KeyError:
        raise ValueError(f"unknown match result '{raw}'") from None
