"""
Margin of victory calculations for ELO K-factor adjustment.

In standard ELO, winning by 5 points and winning by 500 produce the same
rating change. This module scales the K-factor by the recorded score
difference, so blowouts move ratings more than narrow wins.

The margin multiplier is applied to K: effective_K = K * margin_multiplier

The formula:
    multiplier = 1 + score_diff / margin_scale, clamped to max_multiplier

The multiplier never drops below 1.0 and is monotonically non-decreasing
in score_diff. Draws always use 1.0: a draw has no winning margin.
"""

from dataclasses import dataclass
from typing import Optional

from seasonelo.elo.constants import MARGIN_DEFAULTS


@dataclass
class MarginResult:
    """
    Result of margin-of-victory calculation.

    Attributes:
        multiplier: K-factor multiplier in [1.0, max_multiplier]
        score_diff: The score difference that was actually used (0 for draws)
        clamped: Whether the clamp limited the multiplier
    """
    multiplier: float
    score_diff: int
    clamped: bool


def calculate_margin_multiplier(
    score_diff: int,
    is_draw: bool = False,
    margin_scale: Optional[float] = None,
    max_multiplier: Optional[float] = None,
) -> MarginResult:
    """
    Calculate a K-factor multiplier from a match's score difference.

    Args:
        score_diff: Non-negative margin of the result
        is_draw: Draws ignore score_diff entirely
        margin_scale: Score difference that adds 1.0 (default from constants)
        max_multiplier: Upper clamp (default from constants)

    Returns:
        MarginResult with the multiplier

    Raises:
        ValueError: If score_diff is negative

    Examples:
        calculate_margin_multiplier(0).multiplier    # 1.0
        calculate_margin_multiplier(200).multiplier  # 1.5
        calculate_margin_multiplier(960).multiplier  # 2.5 (clamped)
    """
    scale = margin_scale if margin_scale is not None else MARGIN_DEFAULTS["margin_scale"]
    cap = max_multiplier if max_multiplier is not None else MARGIN_DEFAULTS["max_multiplier"]

    if score_diff < 0:
        raise ValueError(f"score_diff must be non-negative, got {score_diff}")

    if is_draw:
        return MarginResult(multiplier=1.0, score_diff=0, clamped=False)

    raw = 1.0 + score_diff / scale
    multiplier = min(raw, cap)

    return MarginResult(
        multiplier=multiplier,
        score_diff=score_diff,
        clamped=raw > cap,
    )
