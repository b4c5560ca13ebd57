"""
Match module for SeasonElo.

Validation of submitted matches and the season-ordered match store.
"""

from seasonelo.matches.store import MatchRecord, MatchStore
from seasonelo.matches.validation import MatchInput, Side, validate_match

__all__ = [
    "MatchStore",
    "MatchRecord",
    "MatchInput",
    "Side",
    "validate_match",
]
