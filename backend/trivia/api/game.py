from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user

from trivia.services import games, orchestration

game = Blueprint('game', __name__)


@game.route('/<int:game_id>', methods=['GET'])
@login_required
def get_state(game_id):
    return jsonify(games.get_state(game_id, current_user))


@game.route('/<int:game_id>/question/current', methods=['GET'])
@login_required
def current_question(game_id):
    return jsonify(games.get_current_question(game_id, current_user))


@game.route('/<int:game_id>/answer', methods=['POST'])
@login_required
def submit_answer(game_id):
    data = request.get_json(silent=True) or {}
    result = orchestration.submit_answer(
        game_id,
        current_user,
        data.get('question_id'),
        data.get('answer_ids'),
        data.get('time_remaining'),
    )
    return jsonify(result)


@game.route('/<int:game_id>/results', methods=['GET'])
@login_required
def results(game_id):
    return jsonify(games.get_results(game_id, current_user))
