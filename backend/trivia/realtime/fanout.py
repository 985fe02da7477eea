from typing import Iterable

from flask import current_app
from flask_socketio import join_room, leave_room

from trivia import socketio
from trivia.realtime import NAMESPACE, game_room, lobby_room
from trivia.realtime.connections import connections
from trivia.realtime.events import ErrorEvent, Event


def emit_to_room(room: str, event: Event) -> None:
    socketio.emit(event.name, event.to_payload(), to=room, namespace=NAMESPACE)


def emit_to_player(user_id: int, event: Event) -> bool:
    """Send to the player's live connection; False when they have none."""
    sid = connections.sid_for(user_id)
    if not sid:
        current_app.logger.debug(f"[ws-skip] user={user_id} event={event.name} no live connection")
        return False
    socketio.emit(event.name, event.to_payload(), to=sid, namespace=NAMESPACE)
    return True


def emit_error(sid: str, code: str, message: str) -> None:
    event = ErrorEvent(code=code, message=message)
    socketio.emit(event.name, event.to_payload(), to=sid, namespace=NAMESPACE)


def enter_lobby_room(sid: str, lobby_id: int) -> None:
    join_room(lobby_room(lobby_id), sid=sid, namespace=NAMESPACE)


def exit_lobby_room(user_id: int, lobby_id: int) -> None:
    sid = connections.sid_for(user_id)
    if sid:
        leave_room(lobby_room(lobby_id), sid=sid, namespace=NAMESPACE)


def enter_game_room(sid: str, game_id: int) -> None:
    join_room(game_room(game_id), sid=sid, namespace=NAMESPACE)


def move_to_game_room(player_ids: Iterable[int], lobby_id: int, game_id: int) -> int:
    """Detach each connected participant from the lobby room and attach them
    to the game room. Returns how many connections were moved."""
    moved = 0
    for pid in player_ids:
        sid = connections.sid_for(pid)
        if not sid:
            continue
        leave_room(lobby_room(lobby_id), sid=sid, namespace=NAMESPACE)
        join_room(game_room(game_id), sid=sid, namespace=NAMESPACE)
        moved += 1
    current_app.logger.info(f"[ws-move] lobby={lobby_id} game={game_id} moved={moved}")
    return moved
