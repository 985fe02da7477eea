from functools import wraps

from flask import current_app, request
from flask_socketio import ConnectionRefusedError, emit
from sqlalchemy.exc import SQLAlchemyError

from trivia import db, socketio
from trivia.auth import user_from_token
from trivia.errors import ApiError, InvalidInputError, UnauthorizedError
from trivia.realtime import NAMESPACE
from trivia.realtime import fanout
from trivia.realtime.connections import connections
from trivia.services import lobbies, orchestration, players


def _get_sid() -> str:
    return request.sid  # type: ignore


def _current_player():
    ctx = connections.context_for(_get_sid())
    user = players.get_by_id(ctx['user_id']) if ctx else None
    if not user:
        raise UnauthorizedError('UNAUTHORIZED', 'Connection is not authenticated')
    return user


def _require_int(data, key):
    value = (data or {}).get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidInputError('INVALID_INPUT', f'{key} is required')
    return value


def socket_errors(handler):
    """Report failures to the offending connection only."""
    @wraps(handler)
    def wrapper(*args, **kwargs):
        try:
            return handler(*args, **kwargs)
        except ApiError as err:
            fanout.emit_error(_get_sid(), err.code, err.message)
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception(f"[ws-error] database failure: {exc}")
            fanout.emit_error(_get_sid(), 'DATABASE_ERROR', 'Unexpected database failure')
    return wrapper


def handle_connect(auth=None):
    token = (auth or {}).get('token') if isinstance(auth, dict) else None
    token = token or request.args.get('token')
    user = user_from_token(token)
    if not user:
        current_app.logger.info(f"[ws-connect] rejected sid={_get_sid()}")
        raise ConnectionRefusedError('unauthorized')

    superseded = connections.register(_get_sid(), user.id, user.username)
    players.update_last_seen(user.id)
    current_app.logger.info(f"[ws-connect] user={user.id} sid={_get_sid()} superseded={superseded}")
    emit('connected', {'message': f'Connected to {NAMESPACE}', 'user_id': user.id})


def handle_disconnect(reason=None):
    ctx = connections.unregister(_get_sid())
    if not ctx:
        return
    current_app.logger.info(f"[ws-disconnect] user={ctx['user_id']} live={ctx['was_live']} reason={reason}")
    # A superseded connection going away says nothing about the player
    if ctx['was_live']:
        orchestration.announce_disconnect(ctx['user_id'], ctx['username'])


@socket_errors
def handle_lobby_join(data):
    user = _current_player()
    lobby_id = _require_int(data, 'lobby_id')
    lobbies.get_lobby_for_member(lobby_id, user)
    fanout.enter_lobby_room(_get_sid(), lobby_id)
    orchestration.announce_lobby_join(lobby_id, user)


@socket_errors
def handle_lobby_ready(data):
    user = _current_player()
    lobby_id = _require_int(data, 'lobby_id')
    orchestration.toggle_ready(lobby_id, user, (data or {}).get('is_ready'))


@socket_errors
def handle_lobby_leave(data):
    user = _current_player()
    lobby_id = _require_int(data, 'lobby_id')
    orchestration.leave_lobby(lobby_id, user)


@socket_errors
def handle_game_join(data):
    user = _current_player()
    game_id = _require_int(data, 'game_id')
    state = orchestration.rejoin_game(_get_sid(), game_id, user)
    emit('game:state', state)


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the '/ws' namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('lobby:join', handle_lobby_join, namespace=NAMESPACE)
    socketio.on_event('lobby:ready', handle_lobby_ready, namespace=NAMESPACE)
    socketio.on_event('lobby:leave', handle_lobby_leave, namespace=NAMESPACE)
    socketio.on_event('game:join', handle_game_join, namespace=NAMESPACE)
    socketio.on_event('ping', handle_ping, namespace=NAMESPACE)
