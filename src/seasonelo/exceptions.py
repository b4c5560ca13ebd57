"""
Error taxonomy for the rating ledger.

Callers can tell rejected input (ValidationError, NotFoundError) apart
from internal inconsistencies that need operator attention
(RecomputationError) by type or by the ``code`` attribute.
"""


class LedgerError(Exception):
    """Base class for all ledger errors."""

    code = "ledger_error"

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class ValidationError(LedgerError):
    """Raised when a submitted match violates domain constraints."""

    code = "validation_error"


class NotFoundError(LedgerError):
    """Raised when a match, player or season id does not exist."""

    code = "not_found"


class RecomputationFailure(LedgerError):
    """
    Internal inconsistency found during an incremental recompute.

    The coordinator catches this and falls back to a full season replay.
    """

    code = "recompute_failure"


class RecomputationError(LedgerError):
    """
    Fatal recompute failure. The mutation was rolled back.

    Raised only after the full replay fallback also failed.
    """

    code = "recompute_error"

    def __init__(self, detail: str, season_id: int | None = None) -> None:
        super().__init__(detail)
        self.season_id = season_id
