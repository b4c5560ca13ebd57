"""
Unit tests for the rating ledger.

The central property: however the derived state was reached (appends,
incremental replays after edits and deletes, or a full replay), the
ratings equal a fold of the current match sequence from baseline.
"""

import pytest
from sqlalchemy import delete, select

from seasonelo.db.models import Player, RatingCheckpoint, SeasonRating
from seasonelo.elo.ledger import MatchRow, RatingLedger, fold_ratings, replay_matches
from seasonelo.exceptions import NotFoundError, RecomputationFailure
from seasonelo.matches.store import MatchStore
from seasonelo.seasons import create_season


@pytest.fixture
def season(db_session):
    return create_season(db_session, "Spring", active=True)


@pytest.fixture
def store(db_session):
    return MatchStore(db_session, max_score_diff=960, score_diff_step=5)


@pytest.fixture
def ledger(db_session, model):
    return RatingLedger(db_session, model)


def _submit(store, ledger, season_id, side_a, side_b, result, score_diff):
    match_id = store.insert(season_id, side_a, side_b, result, score_diff)
    ledger.apply_match(store.get(match_id))
    return match_id


def _expected(store, model, season_id):
    rows = [MatchRow.from_match(m) for m in store.list_ordered(season_id)]
    return fold_ratings(rows, model)


def _assert_matches_fold(ledger, store, model, season_id):
    expected = _expected(store, model, season_id)
    actual = ledger.season_ratings(season_id)
    assert actual.keys() == expected.keys()
    for pid, rating in expected.items():
        assert actual[pid] == pytest.approx(rating)


SEQUENCE = [
    (("p1", "p2"), ("p3", "p4"), "side_a", 20),
    (("p1", "p3"), ("p2", "p4"), "side_b", 135),
    (("p2", "p3"), ("p1", "p5"), "draw", 0),
    (("p4",), ("p5",), "side_a", 960),
    (("p5", "p1"), ("p2", "p4"), "side_b", 45),
]


class TestFold:
    def test_fold_single_match(self, model):
        rows = [MatchRow(1, 1, ("p1", "p2"), ("p3", "p4"), "side_a", 20)]
        ratings = fold_ratings(rows, model)

        assert ratings["p1"] == pytest.approx(1008.4)
        assert ratings["p3"] == pytest.approx(991.6)

    def test_replay_checkpoints(self, model):
        rows = [
            MatchRow(10, 1, ("p1",), ("p2",), "side_a", 0),
            MatchRow(11, 2, ("p1",), ("p3",), "side_b", 0),
        ]
        replay = replay_matches(rows, model)

        assert len(replay.checkpoints) == 4
        first = replay.checkpoints[0]
        assert (first.match_id, first.player_id, first.rating_before) == (10, "p1", 1000.0)
        assert replay.states["p1"].match_count == 2
        assert replay.states["p1"].peak_rating == pytest.approx(1016.0)
        assert replay.states["p1"].last_order_index == 2

    def test_empty_sequence(self, model):
        assert fold_ratings([], model) == {}


class TestApplyMatch:
    def test_append_matches_fold(self, store, ledger, model, season):
        for match in SEQUENCE:
            _submit(store, ledger, season.id, *match)

        _assert_matches_fold(ledger, store, model, season.id)

    def test_stats(self, store, ledger, season, db_session):
        _submit(store, ledger, season.id, ("p1",), ("p2",), "side_a", 0)
        _submit(store, ledger, season.id, ("p1",), ("p2",), "side_b", 0)

        row = db_session.scalars(
            select(SeasonRating).where(SeasonRating.player_id == "p1")
        ).one()
        assert row.match_count == 2
        assert row.last_order_index == 2
        assert row.peak_rating == pytest.approx(1016.0)
        assert row.rating < row.peak_rating

    def test_non_append_rejected(self, store, ledger, season):
        first = _submit(store, ledger, season.id, ("p1",), ("p2",), "side_a", 0)

        with pytest.raises(RecomputationFailure):
            ledger.apply_match(store.get(first))


class TestRecomputeSeason:
    def test_edit_first_of_three_equals_full_replay(self, store, ledger, model, season):
        ids = [_submit(store, ledger, season.id, *m) for m in SEQUENCE[:3]]

        store.update(ids[0], result="side_b", score_diff=300)
        outcome = ledger.recompute_season(season.id, from_index=1)

        assert outcome.mode == "incremental"
        assert outcome.replayed == 3
        _assert_matches_fold(ledger, store, model, season.id)

    def test_edit_mid_season(self, store, ledger, model, season):
        ids = [_submit(store, ledger, season.id, *m) for m in SEQUENCE]

        # Swap a participant: p6 enters, p2 leaves the match at order 3
        store.update(ids[2], side_a=("p6", "p3"))
        ledger.recompute_season(season.id, from_index=3)

        _assert_matches_fold(ledger, store, model, season.id)
        assert "p6" in ledger.season_ratings(season.id)

    def test_delete_middle_equals_replay_of_rest(self, store, ledger, model, season):
        m1 = _submit(store, ledger, season.id, ("p1", "p2"), ("p3", "p4"), "side_a", 20)
        m2 = _submit(store, ledger, season.id, ("p1", "p5"), ("p3", "p6"), "side_b", 100)
        m3 = _submit(store, ledger, season.id, ("p2", "p4"), ("p1", "p3"), "side_a", 40)

        store.delete(m2)
        ledger.recompute_season(season.id, from_index=2)

        expected = fold_ratings(
            [MatchRow.from_match(store.get(m)) for m in (m1, m3)], model,
        )
        assert ledger.season_ratings(season.id) == pytest.approx(expected)

    def test_delete_only_match_of_player_reverts_to_baseline(
        self, store, ledger, model, season, db_session
    ):
        _submit(store, ledger, season.id, ("p1",), ("p2",), "side_a", 0)
        extra = _submit(store, ledger, season.id, ("p1",), ("p9",), "side_a", 50)

        store.delete(extra)
        ledger.recompute_season(season.id, from_index=2)

        assert "p9" not in ledger.season_ratings(season.id)
        # Known player without matches reads as baseline
        assert db_session.get(Player, "p9") is not None
        assert ledger.current_rating(season.id, "p9") == 1000.0
        _assert_matches_fold(ledger, store, model, season.id)

    def test_edit_then_undo_restores_ratings(self, store, ledger, season):
        ids = [_submit(store, ledger, season.id, *m) for m in SEQUENCE]
        before = ledger.season_ratings(season.id)

        store.update(ids[1], result="side_a", score_diff=500)
        ledger.recompute_season(season.id, from_index=2)
        assert ledger.season_ratings(season.id) != pytest.approx(before)

        store.update(ids[1], side_a=("p1", "p3"), side_b=("p2", "p4"), result="side_b", score_diff=135)
        ledger.recompute_season(season.id, from_index=2)
        assert ledger.season_ratings(season.id) == pytest.approx(before)

    def test_idempotent(self, store, ledger, season):
        for match in SEQUENCE:
            _submit(store, ledger, season.id, *match)
        before = ledger.season_ratings(season.id)

        ledger.recompute_season(season.id, from_index=2)
        ledger.recompute_season(season.id, from_index=2)

        assert ledger.season_ratings(season.id) == pytest.approx(before)

    def test_missing_checkpoint_detected_before_writes(self, store, ledger, season, db_session):
        ids = [_submit(store, ledger, season.id, *m) for m in SEQUENCE[:3]]
        db_session.execute(
            delete(RatingCheckpoint).where(RatingCheckpoint.match_id == ids[0])
        )
        checkpoint_count = len(db_session.scalars(select(RatingCheckpoint)).all())

        with pytest.raises(RecomputationFailure):
            ledger.recompute_season(season.id, from_index=2)

        assert len(db_session.scalars(select(RatingCheckpoint)).all()) == checkpoint_count

    def test_unknown_season(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.recompute_season(999, from_index=1)


class TestFullRecompute:
    def test_full_equals_incremental(self, store, ledger, model, season):
        ids = [_submit(store, ledger, season.id, *m) for m in SEQUENCE]
        store.update(ids[3], side_b=("p6",), result="side_b", score_diff=10)
        ledger.recompute_season(season.id, from_index=4)
        incremental = ledger.season_ratings(season.id)

        outcome = ledger.full_recompute(season.id)

        assert outcome.mode == "full"
        assert outcome.replayed == len(SEQUENCE)
        assert ledger.season_ratings(season.id) == pytest.approx(incremental)
        _assert_matches_fold(ledger, store, model, season.id)

    def test_repairs_missing_checkpoints(self, store, ledger, model, season, db_session):
        ids = [_submit(store, ledger, season.id, *m) for m in SEQUENCE[:3]]
        db_session.execute(delete(RatingCheckpoint).where(RatingCheckpoint.match_id == ids[0]))

        ledger.full_recompute(season.id)

        assert len(db_session.scalars(select(RatingCheckpoint)).all()) == 12
        ledger.recompute_season(season.id, from_index=2)
        _assert_matches_fold(ledger, store, model, season.id)

    def test_empty_season_clears_ratings(self, store, ledger, season):
        only = _submit(store, ledger, season.id, ("p1",), ("p2",), "side_a", 0)
        store.delete(only)

        ledger.full_recompute(season.id)

        assert ledger.season_ratings(season.id) == {}

    def test_seasons_are_independent(self, store, ledger, season, db_session):
        other = create_season(db_session, "Summer")
        _submit(store, ledger, season.id, ("p1",), ("p2",), "side_a", 0)
        _submit(store, ledger, other.id, ("p1",), ("p2",), "side_b", 0)

        assert ledger.current_rating(season.id, "p1") == pytest.approx(1016.0)
        assert ledger.current_rating(other.id, "p1") == pytest.approx(984.0)


class TestReads:
    def test_unknown_player(self, ledger, season):
        with pytest.raises(NotFoundError):
            ledger.current_rating(season.id, "ghost")

    def test_unknown_season(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.current_rating(999, "p1")

    def test_leaderboard_sorted(self, store, ledger, season):
        _submit(store, ledger, season.id, ("p1",), ("p2",), "side_a", 0)
        _submit(store, ledger, season.id, ("p3",), ("p1",), "side_a", 0)

        board = ledger.leaderboard(season.id)
        ratings = [row.rating for row in board]
        assert ratings == sorted(ratings, reverse=True)
        assert {row.player_id for row in board} == {"p1", "p2", "p3"}

    def test_rating_timeline(self, store, ledger, season):
        _submit(store, ledger, season.id, ("p1",), ("p2",), "side_a", 0)
        _submit(store, ledger, season.id, ("p3",), ("p2",), "side_b", 0)

        timeline = ledger.rating_timeline(season.id, "p2")
        assert [cp.order_index for cp in timeline] == [1, 2]
        assert timeline[0].rating_after == pytest.approx(timeline[1].rating_before)
