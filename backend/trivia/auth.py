"""Bearer tokens for the HTTP API and the socket handshake.

A token is the user id signed with the app secret; it expires after
``TOKEN_MAX_AGE_SEC``.
"""

from typing import Optional

from flask import current_app
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from trivia.models import User
from trivia.services import players

TOKEN_SALT = 'trivia-auth'


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def issue_token(user: User) -> str:
    return _serializer().dumps({'uid': user.id})


def user_from_token(token: Optional[str]) -> Optional[User]:
    if not token:
        return None
    max_age = int(current_app.config.get('TOKEN_MAX_AGE_SEC', 7 * 24 * 3600))
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        current_app.logger.info("[auth] expired token")
        return None
    except BadSignature:
        return None
    user = players.get_by_id(data.get('uid')) if isinstance(data, dict) else None
    if not user or not user.is_active:
        return None
    return user


def bearer_token(header_value: Optional[str]) -> Optional[str]:
    if not header_value:
        return None
    scheme, _, token = header_value.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def load_user_from_request(request):
    """Flask-Login request loader: ``Authorization: Bearer <token>``."""
    return user_from_token(bearer_token(request.headers.get('Authorization')))
