"""Typed domain errors and their HTTP rendering.

Every error carries a stable machine-readable ``code``, a human-readable
``message`` and the error ``kind`` it belongs to. Services raise these at the
point a rule is violated, before any write happens; the Flask handlers
registered here turn them into JSON responses. Socket handlers reuse
``to_dict`` for their ``error`` event.
"""

from typing import Any, Dict, Optional

from flask import jsonify
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError


class ApiError(Exception):
    status_code = 500
    kind = 'Internal'
    default_code = 'INTERNAL_ERROR'
    default_message = 'Internal server error'

    def __init__(self, code: Optional[str] = None, message: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.code = code or self.default_code
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload = {'error': self.message, 'code': self.code, 'kind': self.kind}
        if self.details:
            payload['details'] = self.details
        return payload

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class InvalidInputError(ApiError):
    status_code = 400
    kind = 'InvalidInput'
    default_code = 'INVALID_INPUT'
    default_message = 'Invalid input'


class UnauthorizedError(ApiError):
    status_code = 401
    kind = 'Unauthorized'
    default_code = 'UNAUTHORIZED'
    default_message = 'Authentication required'


class ForbiddenError(ApiError):
    status_code = 403
    kind = 'Forbidden'
    default_code = 'FORBIDDEN'
    default_message = 'Forbidden'


class NotFoundError(ApiError):
    status_code = 404
    kind = 'NotFound'
    default_code = 'NOT_FOUND'
    default_message = 'Resource not found'


class ConflictError(ApiError):
    status_code = 409
    kind = 'Conflict'
    default_code = 'CONFLICT'
    default_message = 'Conflict'


class InvalidStateError(ApiError):
    status_code = 409
    kind = 'InvalidState'
    default_code = 'INVALID_STATE'
    default_message = 'Operation not valid in the current state'


class LobbyFullError(ApiError):
    status_code = 409
    kind = 'Full'
    default_code = 'LOBBY_FULL'
    default_message = 'Lobby is full'


class InsufficientPlayersError(ApiError):
    status_code = 409
    kind = 'InsufficientPlayers'
    default_code = 'NOT_ENOUGH_PLAYERS'
    default_message = 'Not enough players to start the game'


class NotAllReadyError(ApiError):
    status_code = 409
    kind = 'NotAllReady'
    default_code = 'PLAYERS_NOT_READY'
    default_message = 'All players must be ready before starting'


class InternalError(ApiError):
    pass


def register_error_handlers(flask_app) -> None:
    from trivia import db

    @flask_app.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        if isinstance(err, InternalError):
            flask_app.logger.error(f"[internal] {err}")
        return jsonify(err.to_dict()), err.status_code

    @flask_app.errorhandler(SQLAlchemyError)
    def handle_db_error(err):
        db.session.rollback()
        flask_app.logger.exception(f"[internal] database failure: {err}")
        return jsonify(InternalError('DATABASE_ERROR', 'Unexpected database failure').to_dict()), 500

    @flask_app.errorhandler(RedisError)
    def handle_redis_error(err):
        flask_app.logger.exception(f"[internal] leaderboard store failure: {err}")
        return jsonify(InternalError('LEADERBOARD_ERROR', 'Unexpected leaderboard store failure').to_dict()), 500

    @flask_app.errorhandler(404)
    def handle_not_found(_err):
        return jsonify(NotFoundError().to_dict()), 404

    @flask_app.errorhandler(405)
    def handle_method_not_allowed(_err):
        return jsonify({'error': 'Method not allowed', 'code': 'METHOD_NOT_ALLOWED', 'kind': 'InvalidInput'}), 405
