"""Lobby state machine.

States: waiting -> in_progress -> completed, plus the orthogonal archived
marker (``archived_at``). Membership lives in ``LobbyPlayer`` rows ordered by
join time; the owner's readiness is derived (always true) and never toggled.

Every operation validates before it writes. Uniqueness races (duplicate
join, code collision) are settled by the store's unique constraints and
surface as ``ConflictError`` or a retried code.
"""

import random
import string
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from trivia import db
from trivia.errors import (
    ConflictError,
    ForbiddenError,
    InsufficientPlayersError,
    InternalError,
    InvalidInputError,
    InvalidStateError,
    LobbyFullError,
    NotAllReadyError,
    NotFoundError,
)
from trivia.models import DIFFICULTIES, Lobby, LobbyPlayer, utcnow
from trivia.services import topics as topic_catalog
from trivia.services.questions import default_distribution

CODE_ALPHABET = string.ascii_uppercase + string.digits
MIN_QUESTIONS = 5
MAX_QUESTIONS = 50
MIN_CAPACITY = 2
MAX_CAPACITY = 10


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_lobby_settings(topic_ids, question_count, difficulty, max_players) -> None:
    errors = []
    if not isinstance(topic_ids, list) or not topic_ids:
        errors.append('At least one topic must be selected')
    else:
        for tid in topic_ids:
            if not _is_int(tid):
                errors.append(f'Invalid topic ID: {tid!r}')

    if not _is_int(question_count) or not (MIN_QUESTIONS <= question_count <= MAX_QUESTIONS):
        errors.append(f'Question count must be between {MIN_QUESTIONS} and {MAX_QUESTIONS}')

    if not isinstance(difficulty, dict) or any(not _is_int(difficulty.get(d)) for d in DIFFICULTIES):
        errors.append('Difficulty must provide integer easy, medium and hard counts')
    else:
        if any(difficulty[d] < 0 for d in DIFFICULTIES):
            errors.append('Difficulty counts cannot be negative')
        total = sum(difficulty[d] for d in DIFFICULTIES)
        if _is_int(question_count) and total != question_count:
            errors.append(f'Difficulty distribution ({total}) must equal question count ({question_count})')

    if not _is_int(max_players) or not (MIN_CAPACITY <= max_players <= MAX_CAPACITY):
        errors.append(f'Max players must be between {MIN_CAPACITY} and {MAX_CAPACITY}')

    if errors:
        raise InvalidInputError('INVALID_LOBBY_SETTINGS', ', '.join(errors))


def generate_code(length: int = 6) -> str:
    return ''.join(random.choices(CODE_ALPHABET, k=length))


def _code_in_use(code: str) -> bool:
    return db.session.query(Lobby.id).filter(Lobby.code == code, Lobby.archived_at.is_(None)).first() is not None


def create_lobby(owner, topic_ids, question_count, difficulty=None, max_players=MAX_CAPACITY) -> Lobby:
    """Create a waiting lobby with the owner as its first (ready) member."""
    if difficulty is None and _is_int(question_count):
        difficulty = default_distribution(question_count)
    validate_lobby_settings(topic_ids, question_count, difficulty, max_players)

    for tid in topic_ids:
        if not topic_catalog.exists(tid):
            raise NotFoundError('TOPIC_NOT_FOUND', f'Topic with ID {tid} not found')

    cfg = current_app.config
    attempts = int(cfg.get('LOBBY_CODE_MAX_ATTEMPTS', 10))
    length = int(cfg.get('LOBBY_CODE_LENGTH', 6))
    for attempt in range(1, attempts + 1):
        code = generate_code(length)
        if _code_in_use(code):
            current_app.logger.info(f"[lobby-code] collision code={code} attempt={attempt}")
            continue
        lobby = Lobby(
            ttl_sec=int(cfg.get('LOBBY_TTL_SEC', 3600)),
            code=code,
            owner_id=owner.id,
            question_count=question_count,
            max_players=max_players,
            status='waiting',
        )
        lobby.topic_ids = topic_ids
        lobby.difficulty = difficulty
        lobby.members.append(LobbyPlayer(user_id=owner.id, is_ready=True))
        db.session.add(lobby)
        try:
            db.session.commit()
        except IntegrityError:
            # Lost a race for the same code against a concurrent create
            db.session.rollback()
            current_app.logger.info(f"[lobby-code] constraint collision code={code} attempt={attempt}")
            continue
        current_app.logger.info(f"[lobby-create] lobby={lobby.id} code={code} owner={owner.id}")
        return lobby
    raise InternalError('CODE_GENERATION_FAILED', 'Could not generate a unique lobby code')


def get_active_lobby(lobby_id: int) -> Lobby:
    lobby = db.session.get(Lobby, lobby_id)
    if not lobby or lobby.is_archived:
        raise NotFoundError('LOBBY_NOT_FOUND', 'Lobby not found')
    return lobby


def find_by_code(code: str) -> Optional[Lobby]:
    if not code:
        return None
    return Lobby.query.filter(Lobby.code == code.strip().upper(), Lobby.archived_at.is_(None)).first()


def list_members(lobby_id: int) -> List[LobbyPlayer]:
    """Fresh read of membership, earliest joiner first."""
    return (
        LobbyPlayer.query.filter_by(lobby_id=lobby_id)
        .order_by(LobbyPlayer.joined_at, LobbyPlayer.id)
        .all()
    )


def get_membership(lobby_id: int, user_id: int) -> Optional[LobbyPlayer]:
    return LobbyPlayer.query.filter_by(lobby_id=lobby_id, user_id=user_id).first()


def is_member(lobby_id: int, user_id: int) -> bool:
    return get_membership(lobby_id, user_id) is not None


def ready_counts(lobby: Lobby) -> Dict[str, int]:
    """Non-owner ready count against the full head count."""
    members = list_members(lobby.id)
    ready = sum(1 for m in members if m.user_id != lobby.owner_id and m.is_ready)
    return {'ready_count': ready, 'total_players': len(members)}


def join_lobby(code: str, user) -> Lobby:
    if not code or not isinstance(code, str):
        raise InvalidInputError('MISSING_CODE', 'Lobby code is required')
    lobby = find_by_code(code)
    if not lobby:
        raise NotFoundError('LOBBY_NOT_FOUND', 'Invalid invite code')
    if lobby.status != 'waiting':
        raise InvalidStateError('LOBBY_NOT_AVAILABLE', 'Lobby has already started or is completed')
    if is_member(lobby.id, user.id):
        raise ConflictError('ALREADY_IN_LOBBY', 'You are already in this lobby')
    if LobbyPlayer.query.filter_by(lobby_id=lobby.id).count() >= lobby.max_players:
        raise LobbyFullError('LOBBY_FULL', 'Lobby is full')

    db.session.add(LobbyPlayer(lobby_id=lobby.id, user_id=user.id, is_ready=False))
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError('ALREADY_IN_LOBBY', 'You are already in this lobby')
    db.session.refresh(lobby)
    current_app.logger.info(f"[lobby-join] lobby={lobby.id} user={user.id}")
    return lobby


def get_lobby_for_member(lobby_id: int, user) -> Lobby:
    lobby = get_active_lobby(lobby_id)
    if not is_member(lobby.id, user.id):
        raise ForbiddenError('NOT_IN_LOBBY', 'You are not a member of this lobby')
    return lobby


def set_ready(lobby_id: int, user, is_ready) -> Lobby:
    if not isinstance(is_ready, bool):
        raise InvalidInputError('INVALID_READY_STATUS', 'is_ready must be a boolean')
    lobby = get_active_lobby(lobby_id)
    membership = get_membership(lobby.id, user.id)
    if not membership:
        raise ForbiddenError('NOT_IN_LOBBY', 'You are not a member of this lobby')
    if lobby.owner_id == user.id:
        raise ForbiddenError('OWNER_ALWAYS_READY', 'Lobby owner is always ready and cannot toggle status')
    if lobby.status != 'waiting':
        raise InvalidStateError('LOBBY_NOT_WAITING', 'Lobby is not in waiting status')

    membership.is_ready = is_ready
    db.session.commit()
    current_app.logger.info(f"[lobby-ready] lobby={lobby.id} user={user.id} ready={is_ready}")
    return lobby


def leave_lobby(lobby_id: int, user) -> Dict:
    """Remove the user; hand ownership over or archive when the owner leaves.

    Returns ``{'lobby', 'new_owner_id', 'archived'}``.
    """
    lobby = get_active_lobby(lobby_id)
    membership = get_membership(lobby.id, user.id)
    if not membership:
        raise ForbiddenError('NOT_IN_LOBBY', 'You are not a member of this lobby')

    db.session.delete(membership)
    db.session.flush()

    new_owner_id = None
    archived = False
    if lobby.owner_id == user.id:
        remaining = list_members(lobby.id)
        if not remaining:
            lobby.status = 'completed'
            lobby.archived_at = utcnow()
            archived = True
        else:
            successor = remaining[0]
            lobby.owner_id = successor.user_id
            successor.is_ready = True
            new_owner_id = successor.user_id
    db.session.commit()
    db.session.refresh(lobby)
    current_app.logger.info(
        f"[lobby-leave] lobby={lobby.id} user={user.id} new_owner={new_owner_id} archived={archived}"
    )
    return {'lobby': lobby, 'new_owner_id': new_owner_id, 'archived': archived}


def check_can_start(lobby_id: int, user) -> Lobby:
    """Validate every start precondition; returns the lobby untouched."""
    lobby = get_active_lobby(lobby_id)
    if lobby.owner_id != user.id:
        raise ForbiddenError('NOT_OWNER', 'Only lobby owner can start the game')
    if lobby.status != 'waiting':
        raise InvalidStateError('LOBBY_NOT_WAITING', 'Lobby is not in waiting status')

    members = list_members(lobby.id)
    min_players = int(current_app.config.get('MIN_PLAYERS', 2))
    if len(members) < min_players:
        raise InsufficientPlayersError(
            'NOT_ENOUGH_PLAYERS', f'At least {min_players} players are required to start the game'
        )
    if any(not lobby.is_ready(m) for m in members):
        raise NotAllReadyError('PLAYERS_NOT_READY', 'All players must be ready before starting')
    return lobby
