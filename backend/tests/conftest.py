import os
import sys
import pytest

import fakeredis

# Ensure the backend root (containing the `trivia` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from trivia import create_app, db, socketio
from trivia.auth import issue_token
from trivia.models import Question, Topic, User
from trivia.realtime.connections import connections


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REDIS_URL = 'redis://localhost:6379/15'
    CORS_ORIGINS = []
    LOG_LEVEL = 'DEBUG'
    TOKEN_MAX_AGE_SEC = 3600
    LOBBY_TTL_SEC = 3600
    LOBBY_CODE_LENGTH = 6
    LOBBY_CODE_MAX_ATTEMPTS = 10
    LOBBY_CLEANUP_INTERVAL_SEC = 0
    ARCHIVED_LOBBY_RETENTION_DAYS = 30
    MIN_PLAYERS = 2
    QUESTION_TIME_LIMIT_SEC = 30
    LEADERBOARD_TTL_SEC = 86400
    GAME_STARTING_COUNTDOWN_SEC = 3
    # Keep test hashing cheap
    BCRYPT_LOG_ROUNDS = 4


@pytest.fixture()
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture()
def flask_app(redis_client):
    # No app context stays pushed while a test runs: every request gets its
    # own, so Flask-Login resolves current_user per request.
    config = type('Config', (TestConfig,), {'REDIS_CLIENT': redis_client})
    application = create_app(config)
    with application.app_context():
        import trivia.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()
    connections.clear()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


class Player:
    def __init__(self, id, username, token):
        self.id = id
        self.username = username
        self.token = token

    @property
    def headers(self):
        return {'Authorization': f'Bearer {self.token}'}


def make_player(flask_app, username, password='password'):
    with flask_app.app_context():
        user = User(username=username)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return Player(user.id, user.username, issue_token(user))


def seed_questions(flask_app, topic_name='Science', per_difficulty=(6, 6, 4)):
    """One topic with ``per_difficulty`` single-answer questions (easy, medium, hard).

    The correct option is always ``a``. Returns the topic id.
    """
    with flask_app.app_context():
        topic = Topic(name=topic_name, description=f'{topic_name} questions')
        db.session.add(topic)
        db.session.flush()
        for difficulty, count in zip(('easy', 'medium', 'hard'), per_difficulty):
            for i in range(count):
                q = Question(
                    topic_id=topic.id,
                    type='single_correct',
                    difficulty=difficulty,
                    text=f'{topic_name} {difficulty} question {i + 1}?',
                    explanation=f'Because a is right ({difficulty} {i + 1})',
                )
                q.options = [
                    {'id': 'a', 'label': 'A', 'text': 'Right'},
                    {'id': 'b', 'label': 'B', 'text': 'Wrong'},
                    {'id': 'c', 'label': 'C', 'text': 'Also wrong'},
                ]
                q.correct_answer_ids = ['a']
                db.session.add(q)
        db.session.commit()
        return topic.id


@pytest.fixture()
def three_players(flask_app):
    return [make_player(flask_app, name) for name in ('alice', 'bob', 'carol')]


@pytest.fixture()
def topic_id(flask_app):
    return seed_questions(flask_app)


def create_lobby(client, owner, topic_id, question_count=5, difficulty=None, max_players=4):
    body = {
        'topic_ids': [topic_id],
        'question_count': question_count,
        'difficulty': difficulty or {'easy': 2, 'medium': 2, 'hard': 1},
        'max_players': max_players,
    }
    res = client.post('/api/lobby/create', json=body, headers=owner.headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()['lobby']


def start_ready_game(client, owner, guests, topic_id, **lobby_kwargs):
    """Create a lobby, have every guest join and ready up, start it. Returns (lobby, game_id)."""
    lobby = create_lobby(client, owner, topic_id, **lobby_kwargs)
    for guest in guests:
        assert client.post('/api/lobby/join', json={'code': lobby['code']}, headers=guest.headers).status_code == 200
        res = client.patch(f"/api/lobby/{lobby['id']}/ready", json={'is_ready': True}, headers=guest.headers)
        assert res.status_code == 200
    res = client.post(f"/api/lobby/{lobby['id']}/start", headers=owner.headers)
    assert res.status_code == 201, res.get_json()
    return lobby, res.get_json()['game_id']


def sio_connect(flask_app, player):
    return socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws',
        auth={'token': player.token},
    )


def events_named(received, name):
    return [pkt['args'][0] for pkt in received if pkt['name'] == name]
