import math
from typing import Iterable

BASE_POINTS = {
    'easy': 100,
    'medium': 200,
    'hard': 300,
}
DEFAULT_BASE_POINTS = 100
TIME_BONUS_MAX = 100


def calculate_score(difficulty: str, time_remaining: float, time_limit: float) -> int:
    """Points for a correct answer.

    base(difficulty) + (time_remaining / time_limit) * 100, rounded half up.
    Unknown difficulties score as easy.
    """
    base = BASE_POINTS.get(difficulty, DEFAULT_BASE_POINTS)
    bonus = (time_remaining / time_limit) * TIME_BONUS_MAX if time_limit else 0
    return int(math.floor(base + bonus + 0.5))


def validate_answer(submitted_answer_ids: Iterable, correct_answer_ids: Iterable) -> bool:
    """True when both selections hold exactly the same ids, in any order."""
    submitted = sorted(str(a) for a in submitted_answer_ids)
    correct = sorted(str(a) for a in correct_answer_ids)
    return submitted == correct
