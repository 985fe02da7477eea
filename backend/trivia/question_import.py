"""Bulk question import from a JSON file (a list of question records).

Every record is validated before anything is written; the whole file then
lands in a single transaction. Records carrying the ``id`` of an existing
question update it in place, everything else is inserted.
"""

import json
from typing import Dict, List

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from trivia import db
from trivia.errors import InvalidInputError
from trivia.models import DIFFICULTIES, QUESTION_TYPES, Question, Topic


def load_question_file(path: str) -> List[Dict]:
    with open(path, encoding='utf-8') as fh:
        try:
            records = json.load(fh)
        except ValueError as exc:
            raise InvalidInputError('INVALID_QUESTION_FILE', f'Not valid JSON: {exc}')
    if not isinstance(records, list):
        raise InvalidInputError('INVALID_QUESTION_FILE', 'Expected a JSON list of questions')
    return records


def _record_errors(record, topic_ids) -> List[str]:
    if not isinstance(record, dict):
        return ['not an object']
    errors = []
    qtype = record.get('type')
    if qtype not in QUESTION_TYPES:
        errors.append(f'type must be one of {", ".join(QUESTION_TYPES)}')
    if record.get('difficulty') not in DIFFICULTIES:
        errors.append(f'difficulty must be one of {", ".join(DIFFICULTIES)}')
    if not isinstance(record.get('text'), str) or not record['text'].strip():
        errors.append('text is required')
    topic_id = record.get('topic_id')
    if not isinstance(topic_id, int) or topic_id not in topic_ids:
        errors.append(f'unknown topic {topic_id!r}')
    if record.get('id') is not None and not isinstance(record['id'], int):
        errors.append('id must be an integer')

    options = record.get('options')
    option_ids = []
    if not isinstance(options, list) or len(options) < 2:
        errors.append('options must list at least two choices')
    else:
        for opt in options:
            if not isinstance(opt, dict) or not isinstance(opt.get('id'), str) or not isinstance(opt.get('text'), str):
                errors.append('each option needs a string id and text')
                break
            option_ids.append(opt['id'])
        if len(set(option_ids)) != len(option_ids):
            errors.append('option ids must be unique')
        if qtype == 'true_false' and len(options) != 2:
            errors.append('true_false questions have exactly two options')

    correct = record.get('correct_answer_ids')
    if not isinstance(correct, list) or not correct:
        errors.append('correct_answer_ids must be a non-empty list')
    else:
        if option_ids and any(cid not in option_ids for cid in correct):
            errors.append('correct_answer_ids must refer to option ids')
        if qtype in ('single_correct', 'true_false') and len(correct) != 1:
            errors.append(f'{qtype} questions have exactly one correct answer')

    explanation = record.get('explanation')
    if explanation is not None and not isinstance(explanation, str):
        errors.append('explanation must be a string or null')
    for counter in ('times_asked', 'times_correct'):
        value = record.get(counter)
        if value is not None and (not isinstance(value, int) or isinstance(value, bool) or value < 0):
            errors.append(f'{counter} must be a non-negative integer')
    return errors


def _apply(question: Question, record: Dict) -> None:
    question.topic_id = record['topic_id']
    question.type = record['type']
    question.difficulty = record['difficulty']
    question.text = record['text'].strip()
    question.options = [
        {'id': opt['id'], 'label': opt.get('label') or opt['id'].upper(), 'text': opt['text']}
        for opt in record['options']
    ]
    question.correct_answer_ids = record['correct_answer_ids']
    question.explanation = record.get('explanation')
    question.is_active = bool(record.get('is_active', True))


def import_questions(records: List[Dict]) -> Dict[str, int]:
    """Validate then upsert ``records``; all or nothing."""
    topic_ids = {tid for (tid,) in db.session.query(Topic.id).all()}
    problems = []
    for index, record in enumerate(records, start=1):
        errors = _record_errors(record, topic_ids)
        if errors:
            problems.append(f'question {index}: {"; ".join(errors)}')
    if problems:
        raise InvalidInputError('INVALID_QUESTION_FILE', ' | '.join(problems))

    imported = updated = 0
    try:
        for record in records:
            existing = db.session.get(Question, record['id']) if record.get('id') is not None else None
            if existing:
                _apply(existing, record)
                updated += 1
                continue
            question = Question(
                id=record.get('id'),
                times_asked=record.get('times_asked') or 0,
                times_correct=record.get('times_correct') or 0,
            )
            _apply(question, record)
            db.session.add(question)
            imported += 1
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise

    current_app.logger.info(f"[question-import] imported={imported} updated={updated}")
    return {'imported': imported, 'updated': updated}
