"""Unit tests for match submission validation."""

import pytest

from seasonelo.exceptions import ValidationError
from seasonelo.match_results import MatchResult
from seasonelo.matches.validation import Side, validate_match


def test_valid_doubles_match():
    data = validate_match(("p1", "p2"), ("p3", "p4"), "side_a", 20)

    assert data.side_a == Side("p1", "p2")
    assert data.side_b == Side("p3", "p4")
    assert data.result == MatchResult.SIDE_A
    assert data.score_diff == 20
    assert data.participants == ("p1", "p2", "p3", "p4")


def test_single_player_sides():
    data = validate_match("p1", ["p2"], "black", 0)

    assert data.side_a.players == ("p1",)
    assert data.side_b.players == ("p2",)
    assert data.result == MatchResult.SIDE_B


def test_player_ids_are_stripped_and_blank_second_slot_dropped():
    data = validate_match(("  p1 ", ""), ("p3", "  "), "white", 5)

    assert data.side_a == Side("p1", None)
    assert data.side_b == Side("p3", None)


def test_missing_first_player():
    with pytest.raises(ValidationError, match="first player"):
        validate_match(("", "p2"), ("p3",), "side_a", 0)


def test_none_side_rejected():
    with pytest.raises(ValidationError):
        validate_match(None, ("p3",), "side_a", 0)


def test_too_many_players_on_a_side():
    with pytest.raises(ValidationError):
        validate_match(("p1", "p2", "p5"), ("p3", "p4"), "side_a", 0)


def test_same_player_twice_on_one_side():
    with pytest.raises(ValidationError, match="twice"):
        validate_match(("p1", "p1"), ("p3", "p4"), "side_a", 0)


def test_same_player_on_both_sides():
    with pytest.raises(ValidationError, match="both sides"):
        validate_match(("p1", "p2"), ("p2", "p4"), "side_a", 0)


def test_unknown_result():
    with pytest.raises(ValidationError):
        validate_match(("p1",), ("p2",), "forfeit", 0)


@pytest.mark.parametrize("score_diff", [-5, 965, 1000, 12, 3])
def test_score_diff_out_of_range_or_off_step(score_diff):
    with pytest.raises(ValidationError):
        validate_match(("p1",), ("p2",), "side_a", score_diff)


@pytest.mark.parametrize("score_diff", [True, False, "abc", None, 2.5])
def test_score_diff_wrong_type(score_diff):
    with pytest.raises(ValidationError):
        validate_match(("p1",), ("p2",), "side_a", score_diff)


def test_score_diff_bounds_accepted():
    assert validate_match(("p1",), ("p2",), "side_a", 0).score_diff == 0
    assert validate_match(("p1",), ("p2",), "side_a", 960).score_diff == 960
    assert validate_match(("p1",), ("p2",), "side_a", 40.0).score_diff == 40


def test_draw_with_score_diff_rejected():
    with pytest.raises(ValidationError, match="draw"):
        validate_match(("p1", "p2"), ("p3", "p4"), "draw", 10)


def test_draw_with_zero_score_diff_accepted():
    data = validate_match(("p1", "p2"), ("p3", "p4"), MatchResult.DRAW, 0)
    assert data.result == MatchResult.DRAW


def test_custom_limits():
    data = validate_match(("p1",), ("p2",), "side_a", 7, max_score_diff=10, score_diff_step=1)
    assert data.score_diff == 7
    with pytest.raises(ValidationError):
        validate_match(("p1",), ("p2",), "side_a", 11, max_score_diff=10, score_diff_step=1)


def test_validation_error_code():
    with pytest.raises(ValidationError) as exc_info:
        validate_match(("p1",), ("p1",), "side_a", 0)
    assert exc_info.value.code == "validation_error"


def test_player_id_length_limit():
    longest = "p" * 64
    data = validate_match((longest,), ("p2",), "side_a", 0)
    assert data.side_a.player1 == longest

    with pytest.raises(ValidationError, match="longer than 64"):
        validate_match(("p1", "x" * 65), ("p2",), "side_a", 0)
    with pytest.raises(ValidationError, match="side B"):
        validate_match(("p1",), ("y" * 65,), "side_a", 0)


def test_player_id_length_checked_after_stripping():
    data = validate_match(("  " + "p" * 64 + "  ",), ("p2",), "side_a", 0)
    assert data.side_a.player1 == "p" * 64
