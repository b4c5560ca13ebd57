"""
Rating ledger - derives every player's season rating from match order.

A player's rating is RatingModel folded over the season's matches in
creation order, starting from the baseline. The ledger keeps two kinds
of derived state:

- season_ratings: the committed current rating per (season, player)
- rating_checkpoints: each participant's rating before/after each match

Three ways to bring the derived state up to date:

1. apply_match(): a pure append. Only the new match is applied, starting
   from the participants' current ratings.

2. recompute_season(from_index): a match at from_index was edited or
   deleted. Every player touched at or after from_index is reset to their
   rating as of the last checkpoint before from_index (the anchor), then
   all matches from from_index onward are replayed.

3. full_recompute(): wipe the season's derived state and replay every
   match from baseline. Always correct; used as the fallback when the
   checkpoints needed by (2) are missing or inconsistent.

(2) and (3) produce identical ratings for the same final match sequence.

The ledger writes through the caller's session and never commits.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from seasonelo.db.models import Match, Player, RatingCheckpoint, Season, SeasonRating
from seasonelo.elo.calculator import RatingModel
from seasonelo.exceptions import NotFoundError, RecomputationFailure

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Internal data structures - lightweight, avoid ORM overhead in the fold
# ---------------------------------------------------------------------------

@dataclass
class _PlayerState:
    """In-memory rating state for one player during a replay."""
    player_id: str
    rating: float
    peak_rating: float
    match_count: int = 0
    last_order_index: Optional[int] = None


class MatchRow(NamedTuple):
    """Lightweight match record used by the fold."""
    id: int
    order_index: int
    side_a: tuple[str, ...]
    side_b: tuple[str, ...]
    result: str
    score_diff: int

    @classmethod
    def from_match(cls, match: Match) -> "MatchRow":
        return cls(
            id=match.id,
            order_index=match.order_index,
            side_a=match.side_a,
            side_b=match.side_b,
            result=match.result,
            score_diff=match.score_diff,
        )


class Checkpoint(NamedTuple):
    """One participant's rating around one match."""
    match_id: int
    order_index: int
    player_id: str
    rating_before: float
    rating_after: float


@dataclass
class ReplayResult:
    """Output of replay_matches()."""
    states: dict[str, _PlayerState]
    checkpoints: list[Checkpoint] = field(default_factory=list)

    @property
    def ratings(self) -> dict[str, float]:
        return {pid: state.rating for pid, state in self.states.items()}


@dataclass
class RecomputeResult:
    """Summary returned by the ledger's recompute entry points."""
    season_id: int
    mode: str  # 'append', 'incremental' or 'full'
    from_index: Optional[int] = None
    replayed: int = 0
    players_touched: int = 0


# ---------------------------------------------------------------------------
# Pure fold
# ---------------------------------------------------------------------------

def replay_matches(
    matches: Iterable[MatchRow],
    model: RatingModel,
    states: Optional[dict[str, _PlayerState]] = None,
) -> ReplayResult:
    """
    Fold the rating model over matches in the order given.

    Args:
        matches: Matches sorted by order_index
        model: Rating model (its params supply the baseline)
        states: Starting states; players not present start at baseline.
                The dict is updated in place.

    Returns:
        ReplayResult with final states and one checkpoint per participant
        per match
    """
    states = states if states is not None else {}
    checkpoints: list[Checkpoint] = []
    baseline = model.params.baseline

    for m in matches:
        for pid in m.side_a + m.side_b:
            if pid not in states:
                states[pid] = _PlayerState(player_id=pid, rating=baseline, peak_rating=baseline)

        side_a = [states[pid] for pid in m.side_a]
        side_b = [states[pid] for pid in m.side_b]

        new_a, new_b, _ = model.apply_sides(
            [s.rating for s in side_a],
            [s.rating for s in side_b],
            m.result,
            m.score_diff,
        )

        for state, new_rating in zip(side_a + side_b, new_a + new_b):
            checkpoints.append(
                Checkpoint(
                    match_id=m.id,
                    order_index=m.order_index,
                    player_id=state.player_id,
                    rating_before=state.rating,
                    rating_after=new_rating,
                )
            )
            state.rating = new_rating
            state.match_count += 1
            state.last_order_index = m.order_index
            if new_rating > state.peak_rating:
                state.peak_rating = new_rating

    return ReplayResult(states=states, checkpoints=checkpoints)


def fold_ratings(matches: Iterable[MatchRow], model: Optional[RatingModel] = None) -> dict[str, float]:
    """Final rating per player after folding matches from baseline."""
    return replay_matches(matches, model or RatingModel()).ratings


# ---------------------------------------------------------------------------
# Ledger service
# ---------------------------------------------------------------------------

class RatingLedger:
    """
    Maintains committed season ratings and their per-match checkpoints.

    Usage - after inserting a match at the end of a season:

        ledger = RatingLedger(session, model)
        ledger.apply_match(match)

    Usage - after editing or deleting the match at order_index N:

        ledger.recompute_season(season_id, from_index=N)

    Usage - operator rebuild or fallback:

        ledger.full_recompute(season_id)

    The caller owns the transaction; nothing is visible to other sessions
    until it commits.
    """

    def __init__(self, session: Session, model: Optional[RatingModel] = None) -> None:
        self.session = session
        self.model = model or RatingModel()

    @property
    def baseline(self) -> float:
        return self.model.params.baseline

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def current_rating(self, season_id: int, player_id: str) -> float:
        """
        Committed rating of a player in a season.

        Known players without matches in the season read as baseline.

        Raises:
            NotFoundError: If the season or the player is unknown
        """
        self._require_season(season_id)
        row = self.session.scalars(
            select(SeasonRating).where(
                SeasonRating.season_id == season_id,
                SeasonRating.player_id == player_id,
            )
        ).first()
        if row is not None:
            return row.rating
        if self.session.get(Player, player_id) is None:
            raise NotFoundError(f"player '{player_id}' not found")
        return self.baseline

    def season_ratings(self, season_id: int) -> dict[str, float]:
        """Rating of every player with at least one match in the season."""
        rows = self.session.execute(
            select(SeasonRating.player_id, SeasonRating.rating)
            .where(SeasonRating.season_id == season_id)
        ).all()
        return {row.player_id: row.rating for row in rows}

    def leaderboard(self, season_id: int) -> list[SeasonRating]:
        """Season ratings sorted by rating, highest first."""
        self._require_season(season_id)
        stmt = (
            select(SeasonRating)
            .where(SeasonRating.season_id == season_id)
            .order_by(SeasonRating.rating.desc(), SeasonRating.player_id.asc())
        )
        return list(self.session.scalars(stmt))

    def rating_timeline(self, season_id: int, player_id: str) -> list[Checkpoint]:
        """A player's rating before/after each of their matches, in order."""
        rows = self.session.execute(
            select(
                RatingCheckpoint.match_id,
                RatingCheckpoint.order_index,
                RatingCheckpoint.player_id,
                RatingCheckpoint.rating_before,
                RatingCheckpoint.rating_after,
            )
            .where(
                RatingCheckpoint.season_id == season_id,
                RatingCheckpoint.player_id == player_id,
            )
            .order_by(RatingCheckpoint.order_index.asc())
        ).all()
        return [Checkpoint(*row) for row in rows]

    # ------------------------------------------------------------------
    # Recompute entry points
    # ------------------------------------------------------------------

    def apply_match(self, match: Match) -> RecomputeResult:
        """
        Apply a newly appended match on top of the current ratings.

        Raises:
            RecomputationFailure: If a participant already has a rating
                from a later match (the match is not an append)
        """
        row = MatchRow.from_match(match)
        participants = set(row.side_a + row.side_b)
        states = self._load_states(match.season_id, participants)

        for state in states.values():
            if state.last_order_index is not None and state.last_order_index >= row.order_index:
                raise RecomputationFailure(
                    f"match {row.id} at order {row.order_index} is not an append for "
                    f"player '{state.player_id}' (last order {state.last_order_index})"
                )

        replay = replay_matches([row], self.model, states)
        self._write_checkpoints(match.season_id, replay.checkpoints)
        self._write_states(match.season_id, replay.states, participants)

        return RecomputeResult(
            season_id=match.season_id,
            mode="append",
            from_index=row.order_index,
            replayed=1,
            players_touched=len(participants),
        )

    def recompute_season(self, season_id: int, from_index: int) -> RecomputeResult:
        """
        Replay a season from from_index onward, resuming from checkpoints.

        Players touched at or after from_index - by the current matches or
        by the checkpoints of the previous replay - are reset to their
        rating as of the last match before from_index, then every match
        with order_index >= from_index is replayed.

        Raises:
            NotFoundError: If the season does not exist
            RecomputationFailure: If the checkpoints before from_index do
                not account for every earlier match of a touched player.
                Nothing has been written when this is raised.
        """
        self._require_season(season_id)

        rows = self._load_rows(season_id, from_index=from_index)

        touched: set[str] = set()
        for row in rows:
            touched.update(row.side_a + row.side_b)
        touched.update(self._checkpointed_players(season_id, from_index))

        if not touched:
            return RecomputeResult(season_id=season_id, mode="incremental", from_index=from_index)

        states = self._recover_anchors(season_id, from_index, touched)

        # Everything below writes; the anchors above were validated first
        self.session.execute(
            delete(RatingCheckpoint)
            .where(
                RatingCheckpoint.season_id == season_id,
                RatingCheckpoint.order_index >= from_index,
            )
        )

        replay = replay_matches(rows, self.model, states)
        self._write_checkpoints(season_id, replay.checkpoints)
        self._write_states(season_id, replay.states, touched)

        logger.debug(
            "Season %s replayed %d matches from order %s (%d players)",
            season_id, len(rows), from_index, len(touched),
        )
        return RecomputeResult(
            season_id=season_id,
            mode="incremental",
            from_index=from_index,
            replayed=len(rows),
            players_touched=len(touched),
        )

    def full_recompute(self, season_id: int) -> RecomputeResult:
        """
        Reset every participant to baseline and replay the whole season.

        Raises:
            NotFoundError: If the season does not exist
        """
        self._require_season(season_id)

        self.session.execute(
            delete(RatingCheckpoint)
            .where(RatingCheckpoint.season_id == season_id)
        )

        rows = self._load_rows(season_id)
        replay = replay_matches(rows, self.model)
        self._write_checkpoints(season_id, replay.checkpoints)

        existing = set(self.season_ratings(season_id))
        self._write_states(season_id, replay.states, existing | set(replay.states))

        logger.debug("Season %s fully replayed (%d matches)", season_id, len(rows))
        return RecomputeResult(
            season_id=season_id,
            mode="full",
            from_index=rows[0].order_index if rows else None,
            replayed=len(rows),
            players_touched=len(replay.states),
        )

    # ------------------------------------------------------------------
    # DB queries
    # ------------------------------------------------------------------

    def _require_season(self, season_id: int) -> Season:
        season = self.session.get(Season, season_id)
        if season is None:
            raise NotFoundError(f"season {season_id} not found")
        return season

    def _load_rows(
        self,
        season_id: int,
        from_index: Optional[int] = None,
        before_index: Optional[int] = None,
    ) -> list[MatchRow]:
        stmt = select(Match).where(Match.season_id == season_id)
        if from_index is not None:
            stmt = stmt.where(Match.order_index >= from_index)
        if before_index is not None:
            stmt = stmt.where(Match.order_index < before_index)
        stmt = stmt.order_by(Match.order_index.asc())
        return [MatchRow.from_match(m) for m in self.session.scalars(stmt)]

    def _checkpointed_players(self, season_id: int, from_index: int) -> set[str]:
        """Players with a checkpoint at or after from_index (previous replay)."""
        rows = self.session.execute(
            select(RatingCheckpoint.player_id)
            .where(
                RatingCheckpoint.season_id == season_id,
                RatingCheckpoint.order_index >= from_index,
            )
            .distinct()
        ).all()
        return {row.player_id for row in rows}

    def _load_states(self, season_id: int, player_ids: set[str]) -> dict[str, _PlayerState]:
        """
        Bulk load committed SeasonRating rows for a set of players.

        Players without a row get a baseline state.
        """
        rows = self.session.scalars(
            select(SeasonRating).where(
                SeasonRating.season_id == season_id,
                SeasonRating.player_id.in_(player_ids),
            )
        ).all()

        states = {
            row.player_id: _PlayerState(
                player_id=row.player_id,
                rating=row.rating,
                peak_rating=row.peak_rating,
                match_count=row.match_count,
                last_order_index=row.last_order_index,
            )
            for row in rows
        }
        for pid in player_ids:
            if pid not in states:
                states[pid] = _PlayerState(player_id=pid, rating=self.baseline, peak_rating=self.baseline)
        return states

    def _recover_anchors(
        self,
        season_id: int,
        from_index: int,
        player_ids: set[str],
    ) -> dict[str, _PlayerState]:
        """
        Rebuild each player's state as of just before from_index.

        Uses stored checkpoints as anchors: the rating_after of a player's
        latest checkpoint below from_index is their rating going into
        from_index. The number of checkpoints must equal the number of
        earlier matches the player played, otherwise the anchor cannot be
        trusted.
        """
        prior_rows = self._load_rows(season_id, before_index=from_index)
        expected_counts: dict[str, int] = defaultdict(int)
        for row in prior_rows:
            for pid in row.side_a + row.side_b:
                if pid in player_ids:
                    expected_counts[pid] += 1

        checkpoint_rows = self.session.execute(
            select(
                RatingCheckpoint.player_id,
                RatingCheckpoint.order_index,
                RatingCheckpoint.rating_after,
            )
            .where(
                RatingCheckpoint.season_id == season_id,
                RatingCheckpoint.player_id.in_(player_ids),
                RatingCheckpoint.order_index < from_index,
            )
            .order_by(RatingCheckpoint.player_id, RatingCheckpoint.order_index.asc())
        ).all()

        states = {
            pid: _PlayerState(player_id=pid, rating=self.baseline, peak_rating=self.baseline)
            for pid in player_ids
        }
        for row in checkpoint_rows:
            state = states[row.player_id]
            state.rating = row.rating_after
            state.match_count += 1
            state.last_order_index = row.order_index
            if row.rating_after > state.peak_rating:
                state.peak_rating = row.rating_after

        for pid, state in states.items():
            expected = expected_counts.get(pid, 0)
            if state.match_count != expected:
                raise RecomputationFailure(
                    f"season {season_id}: player '{pid}' has {state.match_count} checkpoints "
                    f"before order {from_index} but played {expected} matches"
                )
        return states

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _write_checkpoints(self, season_id: int, checkpoints: list[Checkpoint]) -> None:
        self.session.add_all(
            RatingCheckpoint(
                season_id=season_id,
                order_index=cp.order_index,
                match_id=cp.match_id,
                player_id=cp.player_id,
                rating_before=cp.rating_before,
                rating_after=cp.rating_after,
            )
            for cp in checkpoints
        )
        self.session.flush()

    def _write_states(
        self,
        season_id: int,
        states: dict[str, _PlayerState],
        player_ids: set[str],
    ) -> None:
        """
        Upsert SeasonRating rows for player_ids from states.

        Players whose state has no matches lose their row, so they read
        as baseline exactly like a player who never played.
        """
        if not player_ids:
            return

        existing = {
            row.player_id: row
            for row in self.session.scalars(
                select(SeasonRating).where(
                    SeasonRating.season_id == season_id,
                    SeasonRating.player_id.in_(player_ids),
                )
            )
        }

        for pid in player_ids:
            state = states.get(pid)
            row = existing.get(pid)

            if state is None or state.match_count == 0:
                if row is not None:
                    self.session.delete(row)
                continue

            if row is None:
                row = SeasonRating(season_id=season_id, player_id=pid)
                self.session.add(row)
            row.rating = state.rating
            row.match_count = state.match_count
            row.last_order_index = state.last_order_index
            row.peak_rating = state.peak_rating

        self.session.flush()
