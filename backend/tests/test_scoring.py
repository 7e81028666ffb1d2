import math

import pytest
from hypothesis import given, strategies as st

from livequiz.services.scoring import (
    InvalidInput, ScoreBreakdown, effective_multiplier, is_answer_correct,
    partial_credit, score, score_answer, score_breakdown, time_factor,
)


def test_score_concrete_cases():
    assert score(100, 0.5, 3) == 170
    assert score(1, 0, 0) == 1


def test_breakdown_components():
    b = score_breakdown(100, 0.5, 3)
    assert b == ScoreBreakdown(base_points=100, speed_bonus=50, streak_bonus=20)
    assert b.total_points == 170


def test_first_in_streak_gets_no_streak_bonus():
    assert score_breakdown(100, 0, 1).streak_bonus == 0
    assert score_breakdown(100, 0, 0).streak_bonus == 0
    assert score_breakdown(100, 0, 2).streak_bonus == 10


def test_bonuses_are_floored():
    # 15 * 0.5 = 7.5 ; 15 * 0.1 * 2 = 3.0 ; 15 * 0.1 * 1 = 1.5
    assert score_breakdown(15, 0.5, 3) == ScoreBreakdown(15, 7, 3)
    assert score_breakdown(15, 0.5, 2) == ScoreBreakdown(15, 7, 1)


@pytest.mark.parametrize('args', [
    (0, 0.5, 1),
    (-5, 0.5, 1),
    (1.5, 0.5, 1),
    (True, 0.5, 1),
    (100, float('nan'), 1),
    (100, -0.1, 1),
    (100, 1.01, 1),
    (100, '0.5', 1),
    (100, None, 1),
    (100, 0.5, -1),
    (100, 0.5, 2.0),
])
def test_out_of_domain_input_raises(args):
    with pytest.raises(InvalidInput):
        score(*args)


def test_invalid_input_is_a_value_error():
    assert issubclass(InvalidInput, ValueError)


@given(
    base_points=st.integers(min_value=1, max_value=1000),
    multiplier=st.floats(min_value=0, max_value=1, allow_nan=False),
    streak=st.integers(min_value=0, max_value=10),
)
def test_score_is_never_negative(base_points, multiplier, streak):
    assert score(base_points, multiplier, streak) >= 0


@given(
    base_points=st.integers(min_value=1, max_value=1000),
    multiplier=st.floats(min_value=0, max_value=1, allow_nan=False),
    streak=st.integers(min_value=0, max_value=10),
)
def test_score_matches_formula(base_points, multiplier, streak):
    expected = base_points + math.floor(base_points * multiplier)
    if streak > 1:
        expected += (base_points * (streak - 1)) // 10
    assert score(base_points, multiplier, streak) == expected


def test_time_factor_bounds():
    assert time_factor(0, 20) == 1.0
    assert time_factor(10_000, 20) == 0.5
    assert time_factor(20_000, 20) == 0.0
    assert time_factor(45_000, 20) == 0.0
    assert time_factor(-50, 20) == 1.0
    assert time_factor(100, 0) == 0.0


def test_effective_multiplier_scales_with_speed():
    assert effective_multiplier(0.5, 0, 20) == 0.5
    assert effective_multiplier(0.5, 10_000, 20) == 0.25
    with pytest.raises(InvalidInput):
        effective_multiplier(2, 0, 20)


def test_is_answer_correct_requires_exact_set():
    assert is_answer_correct([1, 2], [2, 1])
    assert not is_answer_correct([1], [1, 2])
    assert not is_answer_correct([1, 2, 3], [1, 2])
    assert not is_answer_correct([1, 1], [1])
    assert not is_answer_correct([], [1])


def test_partial_credit():
    assert partial_credit([1], [1, 2], 100) == 50
    assert partial_credit([1, 2], [1, 2, 3], 100) == 66
    assert partial_credit([1, 9], [1, 2], 100) == 0
    assert partial_credit([], [1, 2], 100) == 0


def test_score_answer_correct_extends_streak():
    breakdown, streak = score_answer(100, 0.5, 20, [7], [7], 0, previous_streak=2)
    assert streak == 3
    assert breakdown == ScoreBreakdown(100, 50, 20)


def test_score_answer_wrong_resets_streak_and_scores_zero():
    breakdown, streak = score_answer(100, 0.5, 20, [8], [7], 0, previous_streak=4)
    assert streak == 0
    assert breakdown.total_points == 0


def test_score_answer_partial_credit_only_when_enabled():
    args = (100, 0.5, 20, [1], [1, 2], 1000)
    breakdown, streak = score_answer(*args, previous_streak=1, partial_credit_enabled=True)
    assert breakdown == ScoreBreakdown(partial_credit=50)
    assert streak == 0
    breakdown, _ = score_answer(*args, previous_streak=1)
    assert breakdown.total_points == 0
