"""Request-level flows that span the state machines and the fan-out layer.

HTTP routes and socket handlers call into here; each function runs the
state-machine operation first and only pushes events once it has committed.
"""

from typing import Dict

from flask import current_app

from trivia.realtime import game_room, lobby_room
from trivia.realtime import fanout
from trivia.realtime.events import (
    GameLeaderboardUpdate,
    GameNewQuestion,
    GameOver,
    GamePlayerAnswered,
    GamePlayerDisconnected,
    GameQuestionResults,
    GameStarted,
    LobbyGameStarting,
    LobbyPlayerJoined,
    LobbyPlayerLeft,
    LobbyPlayerReadyChanged,
)
from trivia.services import games, lobbies, players


def _member_view(lobby, user_id):
    return next((p for p in lobby.to_dict()['players'] if p['id'] == user_id), None)


def announce_lobby_join(lobby_id: int, user) -> Dict:
    lobby = lobbies.get_lobby_for_member(lobby_id, user)
    payload = lobby.to_dict()
    fanout.emit_to_room(lobby_room(lobby.id), LobbyPlayerJoined(
        lobby_id=lobby.id,
        player=_member_view(lobby, user.id),
        players=payload['players'],
    ))
    return payload


def toggle_ready(lobby_id: int, user, is_ready) -> Dict:
    lobby = lobbies.set_ready(lobby_id, user, is_ready)
    counts = lobbies.ready_counts(lobby)
    payload = lobby.to_dict()
    fanout.emit_to_room(lobby_room(lobby.id), LobbyPlayerReadyChanged(
        lobby_id=lobby.id,
        player_id=user.id,
        is_ready=is_ready,
        ready_count=counts['ready_count'],
        total_players=counts['total_players'],
        players=payload['players'],
    ))
    return {'is_ready': is_ready, **counts}


def leave_lobby(lobby_id: int, user) -> Dict:
    outcome = lobbies.leave_lobby(lobby_id, user)
    lobby = outcome['lobby']
    fanout.exit_lobby_room(user.id, lobby.id)
    fanout.emit_to_room(lobby_room(lobby.id), LobbyPlayerLeft(
        lobby_id=lobby.id,
        player_id=user.id,
        new_owner_id=outcome['new_owner_id'],
        players=lobby.to_dict()['players'],
    ))
    return {
        'message': 'Left lobby successfully',
        'new_owner_id': outcome['new_owner_id'],
        'archived': outcome['archived'],
    }


def push_current_question(game_id: int, user) -> bool:
    """Send the player their current question, if they still have one."""
    progress = games.get_progress(game_id, user.id)
    game = games.get_game(game_id)
    if not progress or progress.current_question_index >= game.total_questions:
        return False
    current = games.get_current_question(game_id, user)
    return fanout.emit_to_player(user.id, GameNewQuestion(game_id=game_id, **current))


def start_game(lobby_id: int, user) -> Dict:
    lobby = lobbies.check_can_start(lobby_id, user)
    game = games.create_from_lobby(lobby)
    participants = game.player_ids

    countdown = int(current_app.config.get('GAME_STARTING_COUNTDOWN_SEC', 3))
    fanout.emit_to_room(lobby_room(lobby_id), LobbyGameStarting(lobby_id=lobby_id, game_id=game.id, countdown=countdown))
    fanout.move_to_game_room(participants, lobby_id, game.id)
    fanout.emit_to_room(game_room(game.id), GameStarted(
        game_id=game.id, lobby_id=lobby_id, total_questions=game.total_questions,
    ))

    for pid in participants:
        player = players.get_by_id(pid)
        if player:
            push_current_question(game.id, player)

    return {'game_id': game.id, 'game': game.to_dict()}


def submit_answer(game_id: int, user, question_id, answer_ids, time_remaining) -> Dict:
    result = games.submit_answer(game_id, user, question_id, answer_ids, time_remaining)
    room = game_room(game_id)

    fanout.emit_to_player(user.id, GameQuestionResults(
        game_id=game_id,
        question_id=question_id,
        is_correct=result['correct'],
        correct_answer_ids=result['correct_answer_ids'],
        explanation=result['explanation'],
        points_earned=result['points_earned'],
        new_score=result['new_score'],
    ))
    fanout.emit_to_room(room, GamePlayerAnswered(
        game_id=game_id, player_id=user.id, player_name=user.username, question_number=result['question_number'],
    ))

    game = games.get_game(game_id)
    board = games.leaderboard_for(game)
    fanout.emit_to_room(room, GameLeaderboardUpdate(game_id=game_id, leaderboard=board))

    if not result['finished']:
        push_current_question(game_id, user)
    if result['game_completed']:
        fanout.emit_to_room(room, GameOver(
            game_id=game_id, winner=board[0] if board else None, final_leaderboard=board,
        ))
    return result


def rejoin_game(sid: str, game_id: int, user) -> Dict:
    """Re-attach a (re)connected participant to the game room."""
    state = games.get_state(game_id, user)
    fanout.enter_game_room(sid, game_id)
    if state['game']['status'] == 'in_progress':
        push_current_question(game_id, user)
    return state


def announce_disconnect(user_id: int, username: str) -> int:
    """Tell every in-progress game the player is part of that they dropped."""
    notified = 0
    for game in games.active_games_for_user(user_id):
        fanout.emit_to_room(game_room(game.id), GamePlayerDisconnected(
            game_id=game.id, player_id=user_id, player_name=username,
        ))
        notified += 1
    return notified
