"""
Season-ordered match store.

MatchStore owns the canonical replay order of a season: the creation-order
index handed out at insertion. Display ordering by timestamp is offered
separately and is never used to drive recomputation.

The store works inside the caller's session and never commits; the
coordinator decides when a mutation and its recompute become visible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from seasonelo.db.models import Match, Player, Season
from seasonelo.exceptions import NotFoundError, ValidationError
from seasonelo.match_results import MatchResult
from seasonelo.matches.validation import MatchInput, Side, validate_match

logger = logging.getLogger(__name__)

# Sentinel for "leave this field as it is" in update()
_UNCHANGED: Any = object()


@dataclass(frozen=True)
class MatchRecord:
    """Immutable copy of a match, safe to hand out after the session closes."""

    id: int
    season_id: int
    side_a: Side
    side_b: Side
    result: MatchResult
    score_diff: int
    order_index: int
    created_at: datetime

    @classmethod
    def from_model(cls, match: Match) -> "MatchRecord":
        return cls(
            id=match.id,
            season_id=match.season_id,
            side_a=Side(match.side_a_player1, match.side_a_player2),
            side_b=Side(match.side_b_player1, match.side_b_player2),
            result=MatchResult(match.result),
            score_diff=match.score_diff,
            order_index=match.order_index,
            created_at=match.created_at,
        )


class MatchStore:
    """
    Insert, edit, delete and list matches of a season.

    Usage:
        store = MatchStore(session)
        match_id = store.insert(season_id, ("p1", "p2"), ("p3", "p4"), "side_a", 20)
        ordered = store.list_ordered(season_id)
    """

    def __init__(
        self,
        session: Session,
        max_score_diff: Optional[int] = None,
        score_diff_step: Optional[int] = None,
    ) -> None:
        if max_score_diff is None or score_diff_step is None:
            from seasonelo.config import settings

            max_score_diff = max_score_diff if max_score_diff is not None else settings.max_score_diff
            score_diff_step = score_diff_step if score_diff_step is not None else settings.score_diff_step
        self.session = session
        self.max_score_diff = max_score_diff
        self.score_diff_step = score_diff_step

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_season(self, season_id: int) -> Season:
        season = self.session.get(Season, season_id)
        if season is None:
            raise NotFoundError(f"season {season_id} not found")
        return season

    def get(self, match_id: int) -> Match:
        match = self.session.get(Match, match_id)
        if match is None:
            raise NotFoundError(f"match {match_id} not found")
        return match

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def insert(
        self,
        season_id: int,
        side_a: Any,
        side_b: Any,
        result: Any,
        score_diff: Any,
        created_at: Optional[datetime] = None,
    ) -> int:
        """
        Validate and append a match to a season.

        Assigns the season's next creation-order index.

        Returns:
            The new match id

        Raises:
            ValidationError: If the match violates domain constraints
            NotFoundError: If the season does not exist
        """
        data = self._validate(side_a, side_b, result, score_diff)
        season = self.get_season(season_id)

        self.ensure_players(data.participants)

        order_index = season.next_order_index
        season.next_order_index = order_index + 1

        match = Match(
            season_id=season.id,
            order_index=order_index,
            created_at=created_at or datetime.utcnow(),
        )
        self._assign(match, data)
        self.session.add(match)
        self.session.flush()

        logger.debug(
            "Inserted match %s into season %s at order %s",
            match.id, season_id, order_index,
        )
        return match.id

    def update(
        self,
        match_id: int,
        side_a: Any = _UNCHANGED,
        side_b: Any = _UNCHANGED,
        result: Any = _UNCHANGED,
        score_diff: Any = _UNCHANGED,
    ) -> Match:
        """
        Edit the mutable fields of a match.

        Only participants, result and score_diff can change. Omitted
        fields keep their current values; the merged match is validated
        as a whole.

        Raises:
            NotFoundError: If the match does not exist
            ValidationError: If the edited match violates domain constraints
        """
        match = self.get(match_id)

        data = self._validate(
            match.side_a if side_a is _UNCHANGED else side_a,
            match.side_b if side_b is _UNCHANGED else side_b,
            match.result if result is _UNCHANGED else result,
            match.score_diff if score_diff is _UNCHANGED else score_diff,
        )
        self.ensure_players(data.participants)
        self._assign(match, data)
        self.session.flush()
        return match

    def delete(self, match_id: int) -> Match:
        """
        Remove a match.

        Returns:
            The deleted match (detached; fields stay readable)

        Raises:
            NotFoundError: If the match does not exist
        """
        match = self.get(match_id)
        self.session.delete(match)
        self.session.flush()
        return match

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_ordered(self, season_id: int, from_index: Optional[int] = None) -> list[Match]:
        """
        Matches of a season in creation order (ascending): the replay order.

        Args:
            from_index: Only return matches with order_index >= from_index
        """
        stmt = select(Match).where(Match.season_id == season_id)
        if from_index is not None:
            stmt = stmt.where(Match.order_index >= from_index)
        stmt = stmt.order_by(Match.order_index.asc())
        return list(self.session.scalars(stmt))

    def list_recent_by_timestamp(self, season_id: int, limit: int) -> list[Match]:
        """
        Most recent matches by timestamp, newest first. Display only.

        Matches sharing a timestamp are ordered by creation order, newest first.

        Raises:
            ValidationError: If limit is negative
        """
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 0:
            raise ValidationError("limit must be a non-negative integer.")
        if limit == 0:
            return []

        stmt = (
            select(Match)
            .where(Match.season_id == season_id)
            .order_by(Match.created_at.desc(), Match.order_index.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def ensure_players(self, player_ids: Iterable[str]) -> None:
        """Register player ids that have not been seen before."""
        for player_id in player_ids:
            if self.session.get(Player, player_id) is None:
                self.session.add(Player(id=player_id))
        self.session.flush()

    def _validate(self, side_a: Any, side_b: Any, result: Any, score_diff: Any) -> MatchInput:
        return validate_match(
            side_a,
            side_b,
            result,
            score_diff,
            max_score_diff=self.max_score_diff,
            score_diff_step=self.score_diff_step,
        )

    @staticmethod
    def _assign(match: Match, data: MatchInput) -> None:
        match.side_a_player1 = data.side_a.player1
        match.side_a_player2 = data.side_a.player2
        match.side_b_player1 = data.side_b.player1
        match.side_b_player2 = data.side_b.player2
        match.result = data.result.value
        match.score_diff = data.score_diff
