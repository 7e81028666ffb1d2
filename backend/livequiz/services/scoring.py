"""Answer scoring.

Points for a single answer are base points plus a speed bonus plus a streak
bonus:

    speed_bonus  = floor(base_points * speed_bonus_multiplier)
    streak_bonus = floor(base_points * 0.1 * (streak_count - 1))  if streak_count > 1
    total        = base_points + speed_bonus + streak_bonus

``streak_count`` includes the answer being scored, so the first correct
answer in a row earns no streak bonus. Everything here is pure; callers own
persistence.
"""

import math
from dataclasses import dataclass
from numbers import Integral, Real
from typing import Iterable, Optional, Tuple

# 10% of base points per consecutive correct answer beyond the first
STREAK_BONUS_DIVISOR = 10


class InvalidInput(ValueError):
    """Raised when scoring input falls outside the accepted domain."""


@dataclass(frozen=True)
class ScoreBreakdown:
    base_points: int = 0
    speed_bonus: int = 0
    streak_bonus: int = 0
    partial_credit: int = 0

    @property
    def total_points(self) -> int:
        return self.base_points + self.speed_bonus + self.streak_bonus + self.partial_credit


ZERO_SCORE = ScoreBreakdown()


def _check_base_points(base_points) -> None:
    if isinstance(base_points, bool) or not isinstance(base_points, Integral):
        raise InvalidInput(f"base_points must be an integer, got {base_points!r}")
    if base_points < 1:
        raise InvalidInput(f"base_points must be >= 1, got {base_points}")


def _check_multiplier(multiplier) -> None:
    if isinstance(multiplier, bool) or not isinstance(multiplier, Real):
        raise InvalidInput(f"speed_bonus_multiplier must be a number, got {multiplier!r}")
    if math.isnan(multiplier) or not 0 <= multiplier <= 1:
        raise InvalidInput(f"speed_bonus_multiplier must be within [0, 1], got {multiplier}")


def _check_streak(streak_count) -> None:
    if isinstance(streak_count, bool) or not isinstance(streak_count, Integral):
        raise InvalidInput(f"streak_count must be an integer, got {streak_count!r}")
    if streak_count < 0:
        raise InvalidInput(f"streak_count must be >= 0, got {streak_count}")


def score_breakdown(base_points: int, speed_bonus_multiplier: float, streak_count: int) -> ScoreBreakdown:
    """Compute the per-component points for one correct answer.

    Raises InvalidInput for non-positive base points, a NaN or out-of-range
    multiplier, or a negative streak.
    """
    _check_base_points(base_points)
    _check_multiplier(speed_bonus_multiplier)
    _check_streak(streak_count)

    speed_bonus = math.floor(base_points * speed_bonus_multiplier)
    streak_bonus = 0
    if streak_count > 1:
        streak_bonus = (int(base_points) * (streak_count - 1)) // STREAK_BONUS_DIVISOR
    return ScoreBreakdown(base_points=int(base_points), speed_bonus=speed_bonus, streak_bonus=streak_bonus)


def score(base_points: int, speed_bonus_multiplier: float, streak_count: int) -> int:
    """Total points for one correct answer. Always >= 0 for valid input."""
    return score_breakdown(base_points, speed_bonus_multiplier, streak_count).total_points


def time_factor(response_time_ms: float, time_limit_sec: float) -> float:
    """1.0 for an instant answer, falling linearly to 0.0 at the time limit."""
    if time_limit_sec <= 0:
        return 0.0
    factor = 1.0 - (max(0.0, response_time_ms) / (time_limit_sec * 1000.0))
    return min(1.0, max(0.0, factor))


def effective_multiplier(configured: float, response_time_ms: float, time_limit_sec: float) -> float:
    _check_multiplier(configured)
    return configured * time_factor(response_time_ms, time_limit_sec)


def is_answer_correct(selected_ids: Iterable, correct_ids: Iterable) -> bool:
    selected = list(selected_ids)
    correct = set(correct_ids)
    return len(selected) == len(correct) and set(selected) == correct


def partial_credit(selected_ids: Iterable, correct_ids: Iterable, base_points: int) -> int:
    """floor(K / N * base_points) for K of N correct options picked.

    Nothing is awarded when an incorrect option is selected or no correct
    option is selected.
    """
    _check_base_points(base_points)
    correct = set(correct_ids)
    selected = set(selected_ids)
    if not correct or not selected or not selected <= correct:
        return 0
    return math.floor(len(selected) / len(correct) * base_points)


def score_answer(
    base_points: int,
    speed_bonus_multiplier: float,
    time_limit_sec: float,
    selected_ids: Iterable,
    correct_ids: Iterable,
    response_time_ms: float,
    previous_streak: int,
    partial_credit_enabled: bool = False,
) -> Tuple[ScoreBreakdown, int]:
    """Score a submitted answer and return (breakdown, new streak count).

    A fully correct answer extends the streak and is scored with the speed
    multiplier scaled by how quickly it came in. Anything else breaks the
    streak and can only earn partial credit.
    """
    _check_streak(previous_streak)
    selected = list(selected_ids)
    correct = list(correct_ids)

    if is_answer_correct(selected, correct):
        new_streak = previous_streak + 1
        multiplier = effective_multiplier(speed_bonus_multiplier, response_time_ms, time_limit_sec)
        return score_breakdown(base_points, multiplier, new_streak), new_streak

    credit = partial_credit(selected, correct, base_points) if partial_credit_enabled else 0
    return ScoreBreakdown(partial_credit=credit), 0


def validate_question_scoring(base_points, speed_bonus_multiplier) -> Optional[str]:
    """Return an error message if a question's scoring settings are unusable."""
    try:
        _check_base_points(base_points)
        _check_multiplier(speed_bonus_multiplier)
    except InvalidInput as exc:
        return str(exc)
    return None
