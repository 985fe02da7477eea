"""Question supplier: active question pools and per-game selection."""

import random
from typing import Dict, List, Optional

from trivia import db
from trivia.errors import InvalidInputError, NotFoundError
from trivia.models import DIFFICULTIES, Question


def list_active_by_topics(topic_ids: List[int], difficulty: Optional[str] = None) -> List[Question]:
    query = Question.query.filter(Question.topic_id.in_(topic_ids), Question.is_active.is_(True))
    if difficulty:
        query = query.filter(Question.difficulty == difficulty)
    return query.order_by(Question.id).all()


def get_by_id(question_id: int) -> Optional[Question]:
    return db.session.get(Question, question_id)


def record_asked(question_id: int, was_correct: bool) -> None:
    """Bump lifetime counters; the caller owns the transaction."""
    Question.query.filter_by(id=question_id).update({
        Question.times_asked: Question.times_asked + 1,
        Question.times_correct: Question.times_correct + (1 if was_correct else 0),
    }, synchronize_session=False)


def _select_random(pool: List[Question], count: int) -> List[Question]:
    if len(pool) <= count:
        return list(pool)
    return random.sample(pool, count)


def select_questions_for_game(topic_ids: List[int], distribution: Dict[str, int]) -> List[int]:
    """Pick ``distribution[d]`` questions per difficulty and shuffle them together.

    An under-supplied bucket contributes everything it has, so the result may
    be shorter than requested. Raises NotFound when the requested buckets
    yield nothing at all.
    """
    if not topic_ids:
        raise InvalidInputError('INVALID_TOPICS', 'At least one topic must be specified')
    if sum(int(distribution.get(d, 0)) for d in DIFFICULTIES) <= 0:
        raise InvalidInputError('INVALID_DISTRIBUTION', 'Total number of questions must be greater than 0')

    selected = []
    for d in DIFFICULTIES:
        wanted = int(distribution.get(d, 0))
        if wanted > 0:
            selected.extend(_select_random(list_active_by_topics(topic_ids, d), wanted))
    if not selected:
        raise NotFoundError('NO_QUESTIONS', 'No active questions found for the selected topics')
    random.shuffle(selected)
    return [q.id for q in selected]


def default_distribution(total_questions: int) -> Dict[str, int]:
    """40% easy, 40% medium, remainder hard."""
    easy = int(total_questions * 0.4)
    medium = int(total_questions * 0.4)
    return {'easy': easy, 'medium': medium, 'hard': total_questions - easy - medium}
