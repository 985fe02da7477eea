from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from trivia import db, leaderboard
from trivia.auth import issue_token
from trivia.errors import ConflictError, InvalidInputError, UnauthorizedError
from trivia.models import User
from trivia.services import players

main = Blueprint('main', __name__)

MIN_PASSWORD_LENGTH = 6


def _credentials():
    data = request.get_json(silent=True) or {}
    username = data.get('username')
    password = data.get('password')
    if not isinstance(username, str) or not username.strip() or not isinstance(password, str) or not password:
        raise InvalidInputError('MISSING_CREDENTIALS', 'Username and password are required')
    return username.strip(), password


@main.route('/auth/register', methods=['POST'])
def register():
    username, password = _credentials()
    if len(username) < 3 or len(username) > 64:
        raise InvalidInputError('INVALID_USERNAME', 'Username must be between 3 and 64 characters')
    if len(password) < MIN_PASSWORD_LENGTH:
        raise InvalidInputError('WEAK_PASSWORD', f'Password must be at least {MIN_PASSWORD_LENGTH} characters')
    if players.get_by_handle(username):
        raise ConflictError('USERNAME_TAKEN', 'Username already exists')

    user = User(username=username)
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError('USERNAME_TAKEN', 'Username already exists')
    login_user(user)
    current_app.logger.info(f"[auth-register] user={user.id}")
    return jsonify({'user': user.to_dict(include_stats=True), 'token': issue_token(user)}), 201


@main.route('/auth/login', methods=['POST'])
def login():
    username, password = _credentials()
    user = players.get_by_handle(username)
    if not user or not user.is_active or not user.check_password(password):
        raise UnauthorizedError('INVALID_CREDENTIALS', 'Invalid username or password')
    login_user(user, remember=True)
    players.update_last_seen(user.id)
    return jsonify({'user': user.to_dict(include_stats=True), 'token': issue_token(user)})


@main.route('/auth/me')
@login_required
def me():
    players.update_last_seen(current_user.id)
    return jsonify({'user': current_user.to_dict(include_stats=True)})


@main.route('/auth/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'message': 'Logged out successfully.'})


@main.route('/health')
def health():
    checks = {}
    try:
        db.session.execute(text('SELECT 1'))
        checks['database'] = 'ok'
    except Exception as exc:
        current_app.logger.warning(f"[health] database check failed: {exc}")
        checks['database'] = 'error'
    try:
        leaderboard.client.ping()
        checks['redis'] = 'ok'
    except Exception as exc:
        current_app.logger.warning(f"[health] redis check failed: {exc}")
        checks['redis'] = 'error'
    healthy = all(v == 'ok' for v in checks.values())
    return jsonify({'status': 'ok' if healthy else 'degraded', 'checks': checks}), 200 if healthy else 503
