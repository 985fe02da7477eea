"""Game state machine: creation from a lobby, question progression,
answer submission, completion and results.

PlayerProgress and AnswerSubmission rows are the source of truth. The Redis
leaderboard mirrors them; its writes happen after the relational commit and
a failed mirror write is logged and repaired from submission history on the
next read.
"""

import json
import math
import numbers
from typing import Dict, List, Optional, Set

from flask import current_app
from redis.exceptions import RedisError
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from trivia import db, leaderboard
from trivia.errors import (
    ConflictError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from trivia.models import AnswerSubmission, Game, Lobby, PlayerProgress, utcnow
from trivia.services import players, questions
from trivia.services.lobbies import list_members
from trivia.services.scoring import calculate_score, validate_answer


def time_limit_for(question) -> int:
    return int(question.time_limit or current_app.config.get('QUESTION_TIME_LIMIT_SEC', 30))


def get_game(game_id: int) -> Game:
    game = db.session.get(Game, game_id)
    if not game:
        raise NotFoundError('GAME_NOT_FOUND', 'Game not found')
    return game


def get_progress(game_id: int, user_id: int) -> Optional[PlayerProgress]:
    return PlayerProgress.query.filter_by(game_id=game_id, user_id=user_id).first()


# Games whose mirror missed a write; their next read rebuilds it
_diverged: Set[int] = set()


def _mirror(action: str, game_id: int, fn, *args) -> None:
    try:
        fn(*args)
    except RedisError as exc:
        _diverged.add(game_id)
        current_app.logger.warning(f"[leaderboard-diverged] game={game_id} action={action} error={exc}")


def create_from_lobby(lobby: Lobby) -> Game:
    """Snapshot the lobby into a running game.

    Picks the question sequence, freezes participants (join order), creates
    one PlayerProgress per participant, links and flips the lobby, then seeds
    the leaderboard at zero for everyone.
    """
    if lobby.status != 'waiting':
        raise InvalidStateError('LOBBY_NOT_WAITING', 'Lobby is not in waiting state')

    question_ids = questions.select_questions_for_game(lobby.topic_ids, lobby.difficulty)
    player_ids = [m.user_id for m in list_members(lobby.id)]

    game = Game(
        lobby_id=lobby.id,
        topic_ids_json=json.dumps(lobby.topic_ids),
        player_ids_json=json.dumps(player_ids),
        question_ids_json=json.dumps(question_ids),
        total_questions=len(question_ids),
        status='waiting',
    )
    db.session.add(game)
    db.session.flush()

    for pid in player_ids:
        db.session.add(PlayerProgress(game_id=game.id, user_id=pid, current_question_index=0, score=0))

    game.status = 'in_progress'
    game.started_at = utcnow()

    # Only one concurrent start may move the lobby out of waiting
    flipped = (
        Lobby.query.filter(Lobby.id == lobby.id, Lobby.status == 'waiting', Lobby.archived_at.is_(None))
        .update({'status': 'in_progress', 'current_game_id': game.id}, synchronize_session=False)
    )
    if flipped != 1:
        db.session.rollback()
        raise InvalidStateError('LOBBY_NOT_WAITING', 'Lobby is not in waiting state')
    db.session.commit()

    _mirror('init', game.id, leaderboard.init, game.id, player_ids)
    current_app.logger.info(
        f"[game-start] game={game.id} lobby={lobby.id} players={player_ids} questions={len(question_ids)}"
    )
    return game


def get_current_question(game_id: int, user) -> Dict:
    progress = get_progress(game_id, user.id)
    if not progress:
        raise NotFoundError('PROGRESS_NOT_FOUND', 'Player progress not found for this game')
    game = get_game(game_id)
    if progress.current_question_index >= game.total_questions:
        raise InvalidStateError('ALL_QUESTIONS_COMPLETED', 'You have completed all questions')

    question = questions.get_by_id(game.question_ids[progress.current_question_index])
    if not question:
        raise NotFoundError('QUESTION_NOT_FOUND', 'Question not found')
    return {
        'question': question.to_game_dict(),
        'question_number': progress.current_question_index + 1,
        'total_questions': game.total_questions,
        'time_limit': time_limit_for(question),
    }


def _validate_submission_input(question_id, answer_ids, time_remaining) -> None:
    if not isinstance(question_id, int) or isinstance(question_id, bool):
        raise InvalidInputError('MISSING_QUESTION_ID', 'Question ID is required')
    if not isinstance(answer_ids, list) or not answer_ids:
        raise InvalidInputError('INVALID_ANSWER_IDS', 'Answer IDs must be a non-empty array')
    if (not isinstance(time_remaining, numbers.Real) or isinstance(time_remaining, bool)
            or not math.isfinite(time_remaining) or time_remaining < 0):
        raise InvalidInputError('INVALID_TIME_REMAINING', 'Time remaining must be a finite non-negative number')


def _already_answered(game_id: int, user_id: int, question_id: int) -> bool:
    return AnswerSubmission.query.filter_by(game_id=game_id, user_id=user_id, question_id=question_id).first() is not None


def submit_answer(game_id: int, user, question_id, answer_ids, time_remaining) -> Dict:
    """Score one answer and advance the player's cursor.

    The (game, player, question) unique constraint is the real guard against
    double submits; the pre-check only gives the common case a clean error.
    """
    _validate_submission_input(question_id, answer_ids, time_remaining)

    game = get_game(game_id)
    if game.status != 'in_progress':
        raise InvalidStateError('GAME_NOT_IN_PROGRESS', 'Game is not in progress')
    if not game.has_player(user.id):
        raise ForbiddenError('NOT_IN_GAME', 'You are not a player in this game')
    if question_id not in game.question_ids:
        raise InvalidInputError('INVALID_QUESTION', 'Question does not belong to this game')
    if _already_answered(game.id, user.id, question_id):
        raise ConflictError('ALREADY_ANSWERED', 'You have already answered this question')

    question = questions.get_by_id(question_id)
    if not question:
        raise NotFoundError('QUESTION_NOT_FOUND', 'Question not found')

    is_correct = validate_answer(answer_ids, question.correct_answer_ids)
    points = calculate_score(question.difficulty, time_remaining, time_limit_for(question)) if is_correct else 0

    try:
        db.session.add(AnswerSubmission(
            game_id=game.id,
            user_id=user.id,
            question_id=question_id,
            answer_ids_json=json.dumps(answer_ids),
            is_correct=is_correct,
            time_remaining=float(time_remaining),
            points_awarded=points,
        ))
        PlayerProgress.query.filter_by(game_id=game.id, user_id=user.id).update({
            PlayerProgress.score: PlayerProgress.score + points,
            PlayerProgress.current_question_index: PlayerProgress.current_question_index + 1,
            PlayerProgress.updated_at: utcnow(),
        }, synchronize_session=False)
        questions.record_asked(question_id, is_correct)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError('ALREADY_ANSWERED', 'You have already answered this question')

    if is_correct:
        _mirror('increment', game.id, leaderboard.increment, game.id, user.id, points)

    progress = get_progress(game.id, user.id)
    current_app.logger.info(
        f"[answer] game={game.id} user={user.id} question={question_id} correct={is_correct} points={points}"
    )
    completed = check_and_complete(game.id)
    return {
        'correct': is_correct,
        'correct_answer_ids': question.correct_answer_ids,
        'points_earned': points,
        'new_score': progress.score,
        'explanation': question.explanation,
        'question_number': progress.current_question_index,
        'total_questions': game.total_questions,
        'finished': progress.current_question_index >= game.total_questions,
        'game_completed': completed,
    }


def final_standings(game: Game) -> List[tuple]:
    """[(player_id, score), ...] from PlayerProgress, best first, ties by join order."""
    order = {pid: idx for idx, pid in enumerate(game.player_ids)}
    rows = PlayerProgress.query.filter_by(game_id=game.id).all()
    standings = [(p.user_id, p.score) for p in rows]
    standings.sort(key=lambda s: (-s[1], order.get(s[0], len(order))))
    return standings


def check_and_complete(game_id: int) -> bool:
    """Complete the game once every participant has answered everything.

    The status flip is a conditional UPDATE, so when several final answers
    race only one caller sees a matched row and commits the stats.
    """
    game = get_game(game_id)
    if game.status != 'in_progress':
        return False
    progresses = PlayerProgress.query.filter_by(game_id=game.id).all()
    if not progresses or any(p.current_question_index < game.total_questions for p in progresses):
        return False

    now = utcnow()
    flipped = (
        Game.query.filter_by(id=game.id, status='in_progress')
        .update({'status': 'completed', 'completed_at': now}, synchronize_session=False)
    )
    if flipped != 1:
        db.session.rollback()
        return False

    Lobby.query.filter_by(id=game.lobby_id).update({'status': 'completed'}, synchronize_session=False)
    standings = final_standings(game)
    duration = int((now - game.started_at).total_seconds()) if game.started_at else 0
    for rank, (pid, score) in enumerate(standings, start=1):
        players.apply_stats_delta(
            pid, games_played=1, victories=1 if rank == 1 else 0, total_points=score, time_played=duration,
        )
    db.session.commit()

    ttl = int(current_app.config.get('LEADERBOARD_TTL_SEC', 86400))
    _mirror('complete', game.id, leaderboard.rebuild, game.id, standings, ttl)
    current_app.logger.info(f"[game-complete] game={game.id} winner={standings[0][0] if standings else None}")
    return True


def repair_leaderboard(game: Game) -> None:
    """Recompute the mirror from AnswerSubmission history."""
    totals = dict(
        db.session.query(AnswerSubmission.user_id, func.coalesce(func.sum(AnswerSubmission.points_awarded), 0))
        .filter(AnswerSubmission.game_id == game.id)
        .group_by(AnswerSubmission.user_id)
        .all()
    )
    scored = [(pid, int(totals.get(pid, 0))) for pid in game.player_ids]
    ttl = int(current_app.config.get('LEADERBOARD_TTL_SEC', 86400)) if game.status == 'completed' else None
    leaderboard.rebuild(game.id, scored, ttl)
    current_app.logger.info(f"[leaderboard-repair] game={game.id} entries={len(scored)}")


def _entries_from_progress(game: Game) -> List[Dict]:
    from trivia.models import User

    standings = final_standings(game)
    names = {u.id: u.username for u in User.query.filter(User.id.in_([pid for pid, _ in standings])).all()}
    return [
        {'rank': idx + 1, 'player_id': pid, 'player_name': names.get(pid, 'Unknown Player'), 'score': score}
        for idx, (pid, score) in enumerate(standings)
    ]


def leaderboard_for(game: Game) -> List[Dict]:
    """Ranked leaderboard, repairing the mirror first when its key is gone.

    If Redis is unreachable the ranking is served from PlayerProgress.
    """
    try:
        if game.id in _diverged or not leaderboard.exists(game.id):
            repair_leaderboard(game)
            _diverged.discard(game.id)
        return leaderboard.read_all(game.id)
    except RedisError as exc:
        current_app.logger.warning(f"[leaderboard-fallback] game={game.id} error={exc}")
        return _entries_from_progress(game)


def get_state(game_id: int, user) -> Dict:
    game = get_game(game_id)
    if not game.has_player(user.id):
        raise ForbiddenError('NOT_IN_GAME', 'You are not a player in this game')
    progress = get_progress(game.id, user.id)
    if not progress:
        raise NotFoundError('PROGRESS_NOT_FOUND', 'Player progress not found for this game')
    return {
        'game': game.to_dict(),
        'player_progress': progress.to_dict(),
        'leaderboard': leaderboard_for(game),
    }


def correct_answers_count(game_id: int, user_id: int) -> int:
    return AnswerSubmission.query.filter_by(game_id=game_id, user_id=user_id, is_correct=True).count()


def get_results(game_id: int, user=None) -> Dict:
    game = get_game(game_id)
    if game.status != 'completed':
        raise InvalidStateError('GAME_NOT_COMPLETED', 'Game is not yet completed')
    if user is not None and not game.has_player(user.id):
        raise ForbiddenError('NOT_IN_GAME', 'You were not a player in this game')

    board = leaderboard_for(game)
    if not board:
        raise NotFoundError('NO_RESULTS', 'No results found for this game')

    results = {
        'game_id': game.id,
        'topic_ids': game.topic_ids,
        'total_questions': game.total_questions,
        'completed_at': game.to_dict()['completed_at'],
        'winner': board[0],
        'leaderboard': board,
    }
    if user is not None:
        mine = next((e for e in board if e['player_id'] == user.id), None)
        progress = get_progress(game.id, user.id)
        results['your_performance'] = {
            'rank': mine['rank'] if mine else None,
            'score': progress.score if progress else 0,
            'correct_answers': correct_answers_count(game.id, user.id),
            'total_questions': game.total_questions,
        }
    return results


def active_games_for_user(user_id: int) -> List[Game]:
    return (
        Game.query.join(PlayerProgress, PlayerProgress.game_id == Game.id)
        .filter(PlayerProgress.user_id == user_id, Game.status == 'in_progress')
        .all()
    )
