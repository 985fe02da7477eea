from trivia import db
from trivia.models import User

from conftest import make_player


def test_register_returns_token(flask_app):
    client = flask_app.test_client()
    res = client.post('/auth/register', json={'username': 'newbie', 'password': 'secret123'})
    assert res.status_code == 201
    data = res.get_json()
    assert data['user']['username'] == 'newbie'
    assert data['user']['games_played'] == 0

    fresh = flask_app.test_client()
    me = fresh.get('/auth/me', headers={'Authorization': f"Bearer {data['token']}"})
    assert me.status_code == 200
    assert me.get_json()['user']['username'] == 'newbie'


def test_register_duplicate_username(flask_app):
    make_player(flask_app, 'taken')
    res = flask_app.test_client().post('/auth/register', json={'username': 'taken', 'password': 'secret123'})
    assert res.status_code == 409
    assert res.get_json()['code'] == 'USERNAME_TAKEN'


def test_register_validation(flask_app):
    client = flask_app.test_client()
    assert client.post('/auth/register', json={'username': 'x'}).status_code == 400
    res = client.post('/auth/register', json={'username': 'shorty', 'password': '123'})
    assert res.get_json()['code'] == 'WEAK_PASSWORD'


def test_login(flask_app):
    make_player(flask_app, 'dana', password='hunter22')
    client = flask_app.test_client()
    res = client.post('/auth/login', json={'username': 'dana', 'password': 'hunter22'})
    assert res.status_code == 200
    assert res.get_json()['token']
    with flask_app.app_context():
        assert User.query.filter_by(username='dana').one().last_seen_at is not None


def test_login_wrong_password(flask_app):
    make_player(flask_app, 'dana', password='hunter22')
    res = flask_app.test_client().post('/auth/login', json={'username': 'dana', 'password': 'nope'})
    assert res.status_code == 401
    assert res.get_json()['code'] == 'INVALID_CREDENTIALS'


def test_bad_or_missing_bearer(flask_app):
    client = flask_app.test_client()
    assert client.get('/auth/me').status_code == 401
    assert client.get('/auth/me', headers={'Authorization': 'Bearer garbage'}).status_code == 401
    assert client.get('/auth/me', headers={'Authorization': 'Basic abc'}).status_code == 401


def test_inactive_account_token_rejected(flask_app):
    player = make_player(flask_app, 'gone')
    with flask_app.app_context():
        db.session.get(User, player.id).is_active_account = False
        db.session.commit()
    assert flask_app.test_client().get('/auth/me', headers=player.headers).status_code == 401


def test_topics_listing(client, three_players, topic_id):
    res = client.get('/api/quiz/topics', headers=three_players[0].headers)
    assert res.status_code == 200
    topics = res.get_json()['topics']
    assert topics == [{
        'id': topic_id,
        'name': 'Science',
        'description': 'Science questions',
        'question_counts': {'easy': 6, 'medium': 6, 'hard': 4},
    }]
    single = client.get(f'/api/quiz/topics/{topic_id}', headers=three_players[0].headers)
    assert single.get_json()['topic']['name'] == 'Science'
    assert client.get('/api/quiz/topics/999', headers=three_players[0].headers).status_code == 404


def test_health(client):
    res = client.get('/health')
    assert res.status_code == 200
    assert res.get_json() == {'status': 'ok', 'checks': {'database': 'ok', 'redis': 'ok'}}


def test_unknown_route_is_json(client):
    res = client.get('/nope')
    assert res.status_code == 404
    assert res.get_json()['kind'] == 'NotFound'


def test_seed_command(flask_app):
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['seed'])
    assert result.exit_code == 0
    assert 'topics' in result.output
    again = runner.invoke(args=['seed'])
    assert "'questions': 0" in again.output
