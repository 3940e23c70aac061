"""Tests for the doubles rating engine."""
import math

import pytest

from dinkers.services.errors import ErrorKind, MatchmakingError
from dinkers.services.rating import (
    apply_match_rating,
    build_edit_adjustments,
    expected_score,
    margin_multiplier,
    normalize_rating_map,
    player_leverage,
    round3,
)

EVEN = {'p1': 3.5, 'p2': 3.5, 'p3': 3.5, 'p4': 3.5}


def test_even_match_winner_gains():
    update = apply_match_rating(EVEN, ['p1', 'p2'], ['p3', 'p4'], 11, 5)
    assert update.deltas == {'p1': 0.155, 'p2': 0.154, 'p3': -0.155, 'p4': -0.154}
    assert update.new_ratings == {'p1': 3.655, 'p2': 3.654, 'p3': 3.345, 'p4': 3.346}
    assert update.diagnostics['team_expected_a'] == 0.5
    assert update.diagnostics['team_total_delta_a'] == 0.309


@pytest.mark.parametrize('ratings', [
    {'p1': 2.9, 'p2': 2.9, 'p3': 2.9, 'p4': 3.1},
    {'p1': 4.2, 'p2': 3.1, 'p3': 3.8, 'p4': 3.6},
    {'p1': 3.05, 'p2': 4.55, 'p3': 3.35, 'p4': 2.95},
    {'p1': 4.55, 'p2': 2.9, 'p3': 3.7, 'p4': 4.15},
    {'p1': 3.333, 'p2': 3.777, 'p3': 4.001, 'p4': 2.999},
])
@pytest.mark.parametrize('score_a, score_b', [(11, 5), (11, 9), (3, 11), (7, 7)])
def test_deltas_are_zero_sum(ratings, score_a, score_b):
    update = apply_match_rating(ratings, ['p1', 'p2'], ['p3', 'p4'], score_a, score_b)
    assert abs(sum(update.deltas.values())) <= 1e-6
    team_a = update.deltas['p1'] + update.deltas['p2']
    assert abs(team_a - update.diagnostics['team_total_delta_a']) <= 1e-6


def test_delta_matches_movement_for_unrounded_rating():
    ratings = dict(EVEN, p1=3.1234)
    update = apply_match_rating(ratings, ['p1', 'p2'], ['p3', 'p4'], 11, 5)
    assert update.new_ratings['p1'] == round3(update.new_ratings['p1'])
    assert abs(update.new_ratings['p1'] - (3.1234 + update.deltas['p1'])) < 1e-9


def test_reported_delta_matches_stored_movement():
    ratings = {'p1': 4.234, 'p2': 2.871, 'p3': 3.333, 'p4': 3.9}
    update = apply_match_rating(ratings, ['p1', 'p2'], ['p3', 'p4'], 11, 2)
    for player_id, before in ratings.items():
        assert update.new_ratings[player_id] == round3(before + update.deltas[player_id])


def test_ratings_stay_in_bounds():
    ratings = {'p1': 7.99, 'p2': 7.99, 'p3': 0.01, 'p4': 0.01}
    update = apply_match_rating(ratings, ['p3', 'p4'], ['p1', 'p2'], 11, 0)
    assert update.new_ratings['p1'] >= 0
    assert update.new_ratings['p3'] <= 8
    for value in update.new_ratings.values():
        assert 0 <= value <= 8


def test_tie_between_equal_teams_moves_nothing():
    update = apply_match_rating(EVEN, ['p1', 'p2'], ['p3', 'p4'], 7, 7)
    assert set(update.deltas.values()) == {0}


def test_upset_pays_more_than_expected_win():
    strong = {'p1': 4.5, 'p2': 4.5, 'p3': 3.0, 'p4': 3.0}
    expected_win = apply_match_rating(strong, ['p1', 'p2'], ['p3', 'p4'], 11, 9)
    upset = apply_match_rating(strong, ['p3', 'p4'], ['p1', 'p2'], 11, 9)
    assert upset.deltas['p3'] > expected_win.deltas['p1'] > 0


def test_expected_score_and_margin():
    assert expected_score(3.5, 3.5) == 0.5
    assert expected_score(5.0, 3.5) == pytest.approx(10 / 11)
    assert margin_multiplier(11, 0) == 2
    assert margin_multiplier(5, 11) == pytest.approx(1 + 6 / 11)


def test_leverage_is_clamped():
    assert player_leverage(1.0, 1.0, 8.0) == 1.35
    assert player_leverage(8.0, 8.0, 0.0) == 0.65
    assert player_leverage(3.5, 3.5, 3.5) == 1


def test_missing_rating_raises():
    with pytest.raises(MatchmakingError) as exc_info:
        apply_match_rating({'p1': 3.5, 'p2': 3.5, 'p3': 3.5}, ['p1', 'p2'], ['p3', 'p4'], 11, 3)
    assert exc_info.value.kind == ErrorKind.MISSING_RATING


def test_non_finite_rating_raises():
    ratings = dict(EVEN, p4=math.nan)
    with pytest.raises(MatchmakingError) as exc_info:
        apply_match_rating(ratings, ['p1', 'p2'], ['p3', 'p4'], 11, 3)
    assert exc_info.value.kind == ErrorKind.MISSING_RATING


def test_bad_team_shape_raises():
    with pytest.raises(MatchmakingError) as exc_info:
        apply_match_rating(EVEN, ['p1', 'p2', 'p3'], ['p4'], 11, 3)
    assert exc_info.value.kind == ErrorKind.BAD_TEAM_SHAPE


def test_edit_adjustments_apply_only_net_differences():
    adjustments = build_edit_adjustments(
        ['p1', 'p2', 'p3', 'p4'],
        {'p1': 0.1, 'p2': 0.1, 'p3': -0.1, 'p4': -0.1},
        {'p1': 0.05, 'p2': 0.12, 'p3': -0.07, 'p4': -0.1},
    )
    assert [a.player_id for a in adjustments] == ['p1', 'p2', 'p3']
    assert abs(adjustments[0].delta - -0.05) < 1e-12
    assert abs(adjustments[1].delta - 0.02) < 1e-12
    assert abs(adjustments[2].delta - 0.03) < 1e-12


def test_edit_adjustments_drop_effectively_zero_changes():
    assert build_edit_adjustments(['p1'], {'p1': 0.2}, {'p1': 0.2000000000001}) == []


def test_normalize_rating_map_drops_unusable_entries():
    raw = {'p1': '3.25', 'p2': 4, 'p3': 'abc', 'p4': None, 'p5': float('inf')}
    assert normalize_rating_map(raw) == {'p1': 3.25, 'p2': 4.0}
    assert normalize_rating_map(None) == {}
    assert normalize_rating_map(['p1']) == {}
