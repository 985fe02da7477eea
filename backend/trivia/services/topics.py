"""Topic catalog."""

from typing import Dict, List, Optional

from sqlalchemy import func

from trivia import db
from trivia.models import Question, Topic


def exists(topic_id: int) -> bool:
    return db.session.query(Topic.id).filter_by(id=topic_id, is_active=True).first() is not None


def get_by_id(topic_id: int) -> Optional[Topic]:
    return Topic.query.filter_by(id=topic_id, is_active=True).first()


def question_counts(topic_id: int) -> Dict[str, int]:
    counts = {'easy': 0, 'medium': 0, 'hard': 0}
    rows = (
        db.session.query(Question.difficulty, func.count(Question.id))
        .filter(Question.topic_id == topic_id, Question.is_active.is_(True))
        .group_by(Question.difficulty)
        .all()
    )
    for difficulty, count in rows:
        if difficulty in counts:
            counts[difficulty] = count
    return counts


def list_available() -> List[Dict]:
    """Active topics with their per-difficulty question counts."""
    topics = Topic.query.filter_by(is_active=True).order_by(Topic.name).all()
    result = []
    for t in topics:
        data = t.to_dict()
        data['question_counts'] = question_counts(t.id)
        result.append(data)
    return result
