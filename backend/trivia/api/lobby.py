from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from trivia.services import lobbies, orchestration

lobby = Blueprint('lobby', __name__)


def _payload():
    return request.get_json(silent=True) or {}


@lobby.route('/create', methods=['POST'])
@login_required
def create_lobby():
    data = _payload()
    new_lobby = lobbies.create_lobby(
        current_user,
        topic_ids=data.get('topic_ids'),
        question_count=data.get('question_count'),
        difficulty=data.get('difficulty'),
        max_players=data.get('max_players', lobbies.MAX_CAPACITY),
    )
    return jsonify({'lobby': new_lobby.to_dict()}), 201


@lobby.route('/join', methods=['POST'])
@login_required
def join_lobby():
    joined = lobbies.join_lobby(_payload().get('code'), current_user)
    return jsonify({'lobby': joined.to_dict()}), 200


@lobby.route('/<int:lobby_id>', methods=['GET'])
@login_required
def get_lobby(lobby_id):
    found = lobbies.get_lobby_for_member(lobby_id, current_user)
    return jsonify({'lobby': found.to_dict()})


@lobby.route('/<int:lobby_id>/ready', methods=['PATCH'])
@login_required
def set_ready(lobby_id):
    result = orchestration.toggle_ready(lobby_id, current_user, _payload().get('is_ready'))
    return jsonify(result)


@lobby.route('/<int:lobby_id>/leave', methods=['DELETE'])
@login_required
def leave_lobby(lobby_id):
    return jsonify(orchestration.leave_lobby(lobby_id, current_user))


@lobby.route('/<int:lobby_id>/start', methods=['POST'])
@login_required
def start_game(lobby_id):
    result = orchestration.start_game(lobby_id, current_user)
    return jsonify({'message': 'Game started', **result}), 201
