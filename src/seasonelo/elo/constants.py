"""
ELO rating system constants.

K factor: Controls rating volatility (how much ratings change per match)
  - Higher K = bigger rating swings
  - Lower K = more stable ratings

S factor (spread): Controls how rating differences translate to win probability
  - A side rated S points higher is expected to win 10 times out of 11
  - Higher S = larger differences needed for a high win probability

These are the documented defaults. Deployments override them through
settings (K_FACTOR, SPREAD, ...), never per call.
"""

# Every player starts each season here
DEFAULT_ELO = 1000.0

ELO_CONSTANTS = {
    "K": 32.0,
    "S": 400.0,
}

# Margin-of-victory K-factor scaling
# margin_scale: score difference that adds 1.0 to the multiplier
# max_multiplier: clamp so a single blowout cannot dominate the ledger
#
# multiplier = min(1 + score_diff / margin_scale, max_multiplier)
#   score_diff 0   -> 1.00
#   score_diff 20  -> 1.05
#   score_diff 200 -> 1.50
#   score_diff 600 -> 2.50 (clamp reached)
MARGIN_DEFAULTS = {
    "margin_scale": 400.0,
    "max_multiplier": 2.5,
}

# Match domain limits
MAX_SCORE_DIFF = 960
SCORE_DIFF_STEP = 5

# Width of the player id columns
MAX_PLAYER_ID_LENGTH = 64
