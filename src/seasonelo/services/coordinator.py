"""
Recomputation coordinator - the public entry point of the ledger.

Every mutation (submit, edit, delete) of a season runs as:

    Idle -> Mutating -> Recomputing -> Idle

1. Take the season's writer lock (other seasons are unaffected)
2. Apply the store operation in a fresh session (Mutating)
3. Re-derive ratings from the lowest affected creation-order index
   (Recomputing): a single forward application for an append, a replay
   from the match's own index for an edit or delete
4. Commit. The match change and the new rating set become visible to
   readers together, or not at all

If the incremental path reports a RecomputationFailure the coordinator
retries with a full season replay in the same transaction. If that fails
too, the transaction is rolled back and RecomputationError is raised.

Reads use their own sessions and only ever see committed state.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Generator, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from seasonelo.db.models import Match
from seasonelo.db.session import get_engine, get_session, make_session_factory
from seasonelo.elo.calculator import EloParams, RatingModel
from seasonelo.elo.ledger import Checkpoint, RatingLedger, RecomputeResult
from seasonelo.exceptions import LedgerError, RecomputationError, RecomputationFailure
from seasonelo.matches.store import MatchRecord, MatchStore
from seasonelo.matches.validation import validate_match
from seasonelo.seasons import resolve_active_season_id
from seasonelo.tasks.locks import SeasonLockRegistry

logger = logging.getLogger(__name__)


class CoordinatorState(str, Enum):
    """Per-season lifecycle of a mutation request."""

    IDLE = "idle"
    MUTATING = "mutating"
    RECOMPUTING = "recomputing"


@dataclass(frozen=True)
class LeaderboardEntry:
    player_id: str
    rating: float
    match_count: int
    peak_rating: float


class RecomputationCoordinator:
    """
    Serializes season mutations and keeps ratings consistent with them.

    Usage:
        coordinator = RecomputationCoordinator(engine=engine)

        match_id = coordinator.submit_match(season_id, ("p1", "p2"), ("p3", "p4"), "side_a", 20)
        coordinator.edit_match(match_id, ("p1", "p2"), ("p3", "p4"), "side_b", 40)
        coordinator.delete_match(match_id)

        coordinator.get_current_rating("p1")
        coordinator.get_recent_matches(limit=8)
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        *,
        session_factory: Optional[Callable[[], Session]] = None,
        model: Optional[RatingModel] = None,
        season_resolver: Callable[[Session], int] = resolve_active_season_id,
        locks: Optional[SeasonLockRegistry] = None,
        recompute_mode: Optional[str] = None,
        lock_timeout_seconds: Optional[float] = None,
        max_score_diff: Optional[int] = None,
        score_diff_step: Optional[int] = None,
        recent_matches_limit: Optional[int] = None,
    ) -> None:
        from seasonelo.config import settings

        self.engine = engine
        if session_factory is None:
            self.engine = engine or get_engine()
            session_factory = make_session_factory(self.engine)
        self._session_factory = session_factory

        self.model = model or RatingModel(EloParams.from_settings(settings))
        self.season_resolver = season_resolver
        self.locks = locks or SeasonLockRegistry()
        self.recompute_mode = recompute_mode or settings.recompute_mode
        if self.recompute_mode not in ("incremental", "full"):
            raise ValueError("recompute_mode must be 'incremental' or 'full'")
        self.lock_timeout_seconds = (
            lock_timeout_seconds
            if lock_timeout_seconds is not None
            else settings.season_lock_timeout_seconds
        )
        self.max_score_diff = max_score_diff if max_score_diff is not None else settings.max_score_diff
        self.score_diff_step = score_diff_step if score_diff_step is not None else settings.score_diff_step
        self.recent_matches_limit = (
            recent_matches_limit
            if recent_matches_limit is not None
            else settings.recent_matches_limit
        )

        self._states: dict[int, CoordinatorState] = {}
        self._states_guard = threading.Lock()

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def state(self, season_id: int) -> CoordinatorState:
        """Current lifecycle state of a season."""
        with self._states_guard:
            return self._states.get(season_id, CoordinatorState.IDLE)

    def _set_state(self, season_id: int, state: CoordinatorState) -> None:
        with self._states_guard:
            if state == CoordinatorState.IDLE:
                self._states.pop(season_id, None)
            else:
                self._states[season_id] = state

    @contextmanager
    def _season_transaction(self, season_id: int) -> Generator[Session, None, None]:
        """
        Writer lock + one transaction for a season mutation.

        Commits on success; on any exception rolls back and re-raises.
        The season always returns to Idle.
        """
        with self.locks.hold(
            season_id,
            timeout_seconds=self.lock_timeout_seconds,
            engine=self.engine,
        ):
            try:
                with get_session(self._session_factory) as session:
                    self._set_state(season_id, CoordinatorState.MUTATING)
                    yield session
            finally:
                self._set_state(season_id, CoordinatorState.IDLE)

    def _make_store(self, session: Session) -> MatchStore:
        return MatchStore(
            session,
            max_score_diff=self.max_score_diff,
            score_diff_step=self.score_diff_step,
        )

    def _make_ledger(self, session: Session) -> RatingLedger:
        return RatingLedger(session, self.model)

    def _recompute(
        self,
        session: Session,
        season_id: int,
        from_index: int,
        appended: Optional[Match] = None,
    ) -> RecomputeResult:
        """
        Bring the season's ratings up to date after a store operation.

        Raises:
            RecomputationError: If the full replay fallback also failed
        """
        self._set_state(season_id, CoordinatorState.RECOMPUTING)
        ledger = self._make_ledger(session)

        if self.recompute_mode == "incremental":
            try:
                if appended is not None:
                    return ledger.apply_match(appended)
                return ledger.recompute_season(season_id, from_index)
            except RecomputationFailure as exc:
                logger.warning(
                    "Incremental recompute of season %s from order %s failed (%s); "
                    "falling back to full replay",
                    season_id, from_index, exc.detail,
                )

        try:
            return ledger.full_recompute(season_id)
        except LedgerError:
            raise
        except Exception as exc:
            logger.exception("Full replay of season %s failed; rolling back", season_id)
            raise RecomputationError(
                f"full replay of season {season_id} failed: {exc}",
                season_id=season_id,
            ) from exc

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def submit_match(
        self,
        season_id: Optional[int],
        side_a: Any,
        side_b: Any,
        result: Any,
        score_diff: Any,
        created_at: Optional[datetime] = None,
    ) -> int:
        """
        Record a new match and apply it to the season's ratings.

        Args:
            season_id: Target season, or None for the active season

        Returns:
            The new match id

        Raises:
            ValidationError: Malformed match (nothing was written)
            NotFoundError: Unknown season
            RecomputationError: Ratings could not be derived (rolled back)
        """
        # Reject bad input before queueing behind other writers
        validate_match(
            side_a, side_b, result, score_diff,
            max_score_diff=self.max_score_diff,
            score_diff_step=self.score_diff_step,
        )
        if season_id is None:
            season_id = self._resolve_season()

        with self._season_transaction(season_id) as session:
            store = self._make_store(session)
            match_id = store.insert(season_id, side_a, side_b, result, score_diff, created_at=created_at)
            match = store.get(match_id)
            outcome = self._recompute(session, season_id, match.order_index, appended=match)
            order_index = match.order_index

        logger.info(
            "Submitted match %s to season %s at order %s (%s, %d replayed)",
            match_id, season_id, order_index, outcome.mode, outcome.replayed,
        )
        return match_id

    def edit_match(
        self,
        match_id: int,
        side_a: Any,
        side_b: Any,
        result: Any,
        score_diff: Any,
    ) -> None:
        """
        Change a match's participants, result and score difference.

        Ratings are replayed from the match's own creation-order index.

        Raises:
            ValidationError: Malformed match (nothing was written)
            NotFoundError: Unknown match
            RecomputationError: Ratings could not be derived (rolled back)
        """
        validate_match(
            side_a, side_b, result, score_diff,
            max_score_diff=self.max_score_diff,
            score_diff_step=self.score_diff_step,
        )
        season_id = self._season_of(match_id)

        with self._season_transaction(season_id) as session:
            store = self._make_store(session)
            match = store.update(
                match_id,
                side_a=side_a,
                side_b=side_b,
                result=result,
                score_diff=score_diff,
            )
            order_index = match.order_index
            outcome = self._recompute(session, season_id, order_index)

        logger.info(
            "Edited match %s in season %s at order %s (%s, %d replayed)",
            match_id, season_id, order_index, outcome.mode, outcome.replayed,
        )

    def delete_match(self, match_id: int) -> None:
        """
        Remove a match and replay ratings from where it stood.

        Raises:
            NotFoundError: Unknown match
            RecomputationError: Ratings could not be derived (rolled back)
        """
        season_id = self._season_of(match_id)

        with self._season_transaction(season_id) as session:
            store = self._make_store(session)
            match = store.delete(match_id)
            order_index = match.order_index
            outcome = self._recompute(session, season_id, order_index)

        logger.info(
            "Deleted match %s from season %s at order %s (%s, %d replayed)",
            match_id, season_id, order_index, outcome.mode, outcome.replayed,
        )

    def recompute(self, season_id: int) -> RecomputeResult:
        """
        Operator entry point: full replay of one season under its lock.

        Raises:
            NotFoundError: Unknown season
            RecomputationError: Replay failed (rolled back)
        """
        with self._season_transaction(season_id) as session:
            self._set_state(season_id, CoordinatorState.RECOMPUTING)
            ledger = self._make_ledger(session)
            try:
                outcome = ledger.full_recompute(season_id)
            except LedgerError:
                raise
            except Exception as exc:
                logger.exception("Full replay of season %s failed; rolling back", season_id)
                raise RecomputationError(
                    f"full replay of season {season_id} failed: {exc}",
                    season_id=season_id,
                ) from exc

        logger.info("Recomputed season %s (%d matches)", season_id, outcome.replayed)
        return outcome

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_current_rating(self, player_id: str, season_id: Optional[int] = None) -> float:
        """
        Committed rating of a player in a season (default: active season).

        Raises:
            NotFoundError: Unknown player or season
        """
        with get_session(self._session_factory) as session:
            if season_id is None:
                season_id = self.season_resolver(session)
            return self._make_ledger(session).current_rating(season_id, player_id)

    def get_recent_matches(
        self,
        season_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[MatchRecord]:
        """Most recent matches by timestamp, newest first. Display only."""
        with get_session(self._session_factory) as session:
            if season_id is None:
                season_id = self.season_resolver(session)
            store = self._make_store(session)
            store.get_season(season_id)
            if limit is None:
                limit = self.recent_matches_limit
            matches = store.list_recent_by_timestamp(season_id, limit)
            return [MatchRecord.from_model(m) for m in matches]

    def get_match(self, match_id: int) -> MatchRecord:
        """
        Raises:
            NotFoundError: Unknown match
        """
        with get_session(self._session_factory) as session:
            return MatchRecord.from_model(self._make_store(session).get(match_id))

    def get_leaderboard(self, season_id: Optional[int] = None) -> list[LeaderboardEntry]:
        """Season standings, highest rating first."""
        with get_session(self._session_factory) as session:
            if season_id is None:
                season_id = self.season_resolver(session)
            return [
                LeaderboardEntry(
                    player_id=row.player_id,
                    rating=row.rating,
                    match_count=row.match_count,
                    peak_rating=row.peak_rating,
                )
                for row in self._make_ledger(session).leaderboard(season_id)
            ]

    def get_rating_timeline(self, player_id: str, season_id: Optional[int] = None) -> list[Checkpoint]:
        """A player's rating before and after each of their matches."""
        with get_session(self._session_factory) as session:
            if season_id is None:
                season_id = self.season_resolver(session)
            return self._make_ledger(session).rating_timeline(season_id, player_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_season(self) -> int:
        with get_session(self._session_factory) as session:
            return self.season_resolver(session)

    def _season_of(self, match_id: int) -> int:
        """Season of a match. Seasons never change, so this is safe to read unlocked."""
        with get_session(self._session_factory) as session:
            return self._make_store(session).get(match_id).season_id
