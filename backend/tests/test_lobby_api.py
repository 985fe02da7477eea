import re
from datetime import timedelta

import pytest

from trivia import db
from trivia.errors import InternalError
from trivia.models import Lobby, LobbyPlayer, User, utcnow
from trivia.services import lobbies
from trivia.services.cleanup import cleanup_expired_lobbies, delete_old_archived_lobbies

from conftest import create_lobby


def _join(client, player, code):
    return client.post('/api/lobby/join', json={'code': code}, headers=player.headers)


def test_requires_authentication(client, topic_id):
    res = client.post('/api/lobby/create', json={'topic_ids': [topic_id]})
    assert res.status_code == 401
    assert res.get_json()['code'] == 'UNAUTHORIZED'


def test_create_lobby(client, three_players, topic_id):
    alice = three_players[0]
    lobby = create_lobby(client, alice, topic_id)
    assert re.fullmatch(r'[A-Z0-9]{6}', lobby['code'])
    assert lobby['status'] == 'waiting'
    assert lobby['owner_id'] == alice.id
    assert lobby['players'] == [{
        'id': alice.id,
        'username': 'alice',
        'is_owner': True,
        'is_ready': True,
        'joined_at': lobby['players'][0]['joined_at'],
    }]


def test_create_uses_default_distribution(client, three_players, topic_id):
    res = client.post('/api/lobby/create', json={'topic_ids': [topic_id], 'question_count': 10},
                      headers=three_players[0].headers)
    assert res.status_code == 201
    assert res.get_json()['lobby']['difficulty'] == {'easy': 4, 'medium': 4, 'hard': 2}


@pytest.mark.parametrize('body', [
    {'question_count': 5, 'difficulty': {'easy': 2, 'medium': 2, 'hard': 2}},
    {'question_count': 4, 'difficulty': {'easy': 2, 'medium': 1, 'hard': 1}},
    {'question_count': 51, 'difficulty': {'easy': 51, 'medium': 0, 'hard': 0}},
    {'question_count': 5, 'difficulty': {'easy': 6, 'medium': -1, 'hard': 0}},
    {'question_count': 5, 'difficulty': {'easy': 5, 'medium': 0, 'hard': 0}, 'max_players': 11},
    {'question_count': 5, 'difficulty': {'easy': 5, 'medium': 0, 'hard': 0}, 'max_players': 1},
    {'question_count': 5, 'difficulty': {'easy': 5, 'medium': 0, 'hard': 0}, 'topic_ids': []},
    {'question_count': 5, 'difficulty': {'easy': 5, 'medium': 0, 'hard': 0}, 'topic_ids': ['science']},
])
def test_create_rejects_invalid_settings(client, three_players, topic_id, body):
    payload = {'topic_ids': [topic_id], 'max_players': 4, **body}
    res = client.post('/api/lobby/create', json=payload, headers=three_players[0].headers)
    assert res.status_code == 400
    data = res.get_json()
    assert data['code'] == 'INVALID_LOBBY_SETTINGS'
    assert data['kind'] == 'InvalidInput'


def test_create_unknown_topic(client, three_players, topic_id):
    res = client.post('/api/lobby/create', json={
        'topic_ids': [topic_id + 100], 'question_count': 5,
        'difficulty': {'easy': 5, 'medium': 0, 'hard': 0}, 'max_players': 4,
    }, headers=three_players[0].headers)
    assert res.status_code == 404
    assert res.get_json()['code'] == 'TOPIC_NOT_FOUND'


def test_join_is_case_insensitive(client, three_players, topic_id):
    alice, bob, _ = three_players
    lobby = create_lobby(client, alice, topic_id)
    res = _join(client, bob, lobby['code'].lower())
    assert res.status_code == 200
    players = res.get_json()['lobby']['players']
    assert [p['id'] for p in players] == [alice.id, bob.id]
    assert players[1]['is_ready'] is False


def test_join_twice_conflicts(client, three_players, topic_id):
    alice, bob, _ = three_players
    lobby = create_lobby(client, alice, topic_id)
    assert _join(client, bob, lobby['code']).status_code == 200
    res = _join(client, bob, lobby['code'])
    assert res.status_code == 409
    assert res.get_json()['code'] == 'ALREADY_IN_LOBBY'
    assert res.get_json()['kind'] == 'Conflict'


def test_join_race_past_membership_lookup_conflicts(client, flask_app, monkeypatch, three_players, topic_id):
    alice, bob, _ = three_players
    lobby = create_lobby(client, alice, topic_id)
    assert _join(client, bob, lobby['code']).status_code == 200

    monkeypatch.setattr(lobbies, 'is_member', lambda lobby_id, user_id: False)
    res = _join(client, bob, lobby['code'])
    assert res.status_code == 409
    assert res.get_json()['code'] == 'ALREADY_IN_LOBBY'
    with flask_app.app_context():
        assert LobbyPlayer.query.filter_by(lobby_id=lobby['id']).count() == 2


def test_join_full_lobby(client, three_players, topic_id):
    alice, bob, carol = three_players
    lobby = create_lobby(client, alice, topic_id, max_players=2)
    assert _join(client, bob, lobby['code']).status_code == 200
    res = _join(client, carol, lobby['code'])
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'Full'


def test_join_unknown_code(client, three_players):
    res = _join(client, three_players[1], 'ZZZZZZ')
    assert res.status_code == 404
    assert res.get_json()['code'] == 'LOBBY_NOT_FOUND'


def test_join_missing_code(client, three_players):
    res = client.post('/api/lobby/join', json={}, headers=three_players[1].headers)
    assert res.status_code == 400
    assert res.get_json()['code'] == 'MISSING_CODE'


def test_join_started_lobby(client, three_players, topic_id):
    alice, bob, carol = three_players
    lobby = create_lobby(client, alice, topic_id)
    _join(client, bob, lobby['code'])
    client.patch(f"/api/lobby/{lobby['id']}/ready", json={'is_ready': True}, headers=bob.headers)
    assert client.post(f"/api/lobby/{lobby['id']}/start", headers=alice.headers).status_code == 201
    res = _join(client, carol, lobby['code'])
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'InvalidState'


def test_get_lobby_members_only(client, three_players, topic_id):
    alice, bob, carol = three_players
    lobby = create_lobby(client, alice, topic_id)
    _join(client, bob, lobby['code'])
    assert client.get(f"/api/lobby/{lobby['id']}", headers=bob.headers).status_code == 200
    res = client.get(f"/api/lobby/{lobby['id']}", headers=carol.headers)
    assert res.status_code == 403
    assert res.get_json()['code'] == 'NOT_IN_LOBBY'
    assert client.get('/api/lobby/9999', headers=alice.headers).status_code == 404


def test_ready_toggle(client, three_players, topic_id):
    alice, bob, carol = three_players
    lobby = create_lobby(client, alice, topic_id)
    _join(client, bob, lobby['code'])
    _join(client, carol, lobby['code'])
    res = client.patch(f"/api/lobby/{lobby['id']}/ready", json={'is_ready': True}, headers=bob.headers)
    assert res.status_code == 200
    assert res.get_json() == {'is_ready': True, 'ready_count': 1, 'total_players': 3}
    res = client.patch(f"/api/lobby/{lobby['id']}/ready", json={'is_ready': False}, headers=bob.headers)
    assert res.get_json()['ready_count'] == 0


def test_owner_cannot_toggle_ready(client, three_players, topic_id):
    alice = three_players[0]
    lobby = create_lobby(client, alice, topic_id)
    res = client.patch(f"/api/lobby/{lobby['id']}/ready", json={'is_ready': False}, headers=alice.headers)
    assert res.status_code == 403
    assert res.get_json()['code'] == 'OWNER_ALWAYS_READY'


def test_ready_requires_boolean(client, three_players, topic_id):
    alice, bob, _ = three_players
    lobby = create_lobby(client, alice, topic_id)
    _join(client, bob, lobby['code'])
    res = client.patch(f"/api/lobby/{lobby['id']}/ready", json={'is_ready': 'yes'}, headers=bob.headers)
    assert res.status_code == 400
    assert res.get_json()['code'] == 'INVALID_READY_STATUS'


def test_owner_leave_promotes_earliest_member(client, three_players, topic_id):
    alice, bob, carol = three_players
    lobby = create_lobby(client, alice, topic_id)
    _join(client, bob, lobby['code'])
    _join(client, carol, lobby['code'])
    res = client.delete(f"/api/lobby/{lobby['id']}/leave", headers=alice.headers)
    assert res.status_code == 200
    assert res.get_json()['new_owner_id'] == bob.id

    state = client.get(f"/api/lobby/{lobby['id']}", headers=bob.headers).get_json()['lobby']
    assert state['owner_id'] == bob.id
    assert [p['id'] for p in state['players']] == [bob.id, carol.id]
    assert state['players'][0]['is_owner'] and state['players'][0]['is_ready']

    with client.application.app_context():
        membership = LobbyPlayer.query.filter_by(lobby_id=lobby['id'], user_id=bob.id).one()
        assert membership.is_ready is True


def test_non_owner_leave_keeps_owner(client, three_players, topic_id):
    alice, bob, _ = three_players
    lobby = create_lobby(client, alice, topic_id)
    _join(client, bob, lobby['code'])
    res = client.delete(f"/api/lobby/{lobby['id']}/leave", headers=bob.headers)
    assert res.get_json()['new_owner_id'] is None
    state = client.get(f"/api/lobby/{lobby['id']}", headers=alice.headers).get_json()['lobby']
    assert [p['id'] for p in state['players']] == [alice.id]


def test_last_member_leave_archives(client, three_players, topic_id):
    alice = three_players[0]
    lobby = create_lobby(client, alice, topic_id)
    res = client.delete(f"/api/lobby/{lobby['id']}/leave", headers=alice.headers)
    assert res.get_json()['archived'] is True
    assert client.get(f"/api/lobby/{lobby['id']}", headers=alice.headers).status_code == 404
    assert _join(client, three_players[1], lobby['code']).status_code == 404


def test_leave_non_member(client, three_players, topic_id):
    lobby = create_lobby(client, three_players[0], topic_id)
    res = client.delete(f"/api/lobby/{lobby['id']}/leave", headers=three_players[2].headers)
    assert res.status_code == 403


def test_start_needs_two_players(client, three_players, topic_id):
    alice = three_players[0]
    lobby = create_lobby(client, alice, topic_id)
    res = client.post(f"/api/lobby/{lobby['id']}/start", headers=alice.headers)
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'InsufficientPlayers'


def test_start_needs_everyone_ready(client, three_players, topic_id):
    alice, bob, carol = three_players
    lobby = create_lobby(client, alice, topic_id)
    _join(client, bob, lobby['code'])
    _join(client, carol, lobby['code'])
    client.patch(f"/api/lobby/{lobby['id']}/ready", json={'is_ready': True}, headers=bob.headers)
    res = client.post(f"/api/lobby/{lobby['id']}/start", headers=alice.headers)
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'NotAllReady'

    client.patch(f"/api/lobby/{lobby['id']}/ready", json={'is_ready': True}, headers=carol.headers)
    res = client.post(f"/api/lobby/{lobby['id']}/start", headers=alice.headers)
    assert res.status_code == 201


def test_only_owner_starts(client, three_players, topic_id):
    alice, bob, _ = three_players
    lobby = create_lobby(client, alice, topic_id)
    _join(client, bob, lobby['code'])
    client.patch(f"/api/lobby/{lobby['id']}/ready", json={'is_ready': True}, headers=bob.headers)
    res = client.post(f"/api/lobby/{lobby['id']}/start", headers=bob.headers)
    assert res.status_code == 403
    assert res.get_json()['code'] == 'NOT_OWNER'


def test_start_links_game_and_rejects_second_start(client, three_players, topic_id):
    alice, bob, _ = three_players
    lobby = create_lobby(client, alice, topic_id)
    _join(client, bob, lobby['code'])
    client.patch(f"/api/lobby/{lobby['id']}/ready", json={'is_ready': True}, headers=bob.headers)
    game_id = client.post(f"/api/lobby/{lobby['id']}/start", headers=alice.headers).get_json()['game_id']

    state = client.get(f"/api/lobby/{lobby['id']}", headers=alice.headers).get_json()['lobby']
    assert state['status'] == 'in_progress'
    assert state['current_game_id'] == game_id

    res = client.post(f"/api/lobby/{lobby['id']}/start", headers=alice.headers)
    assert res.status_code == 409
    assert res.get_json()['kind'] == 'InvalidState'


def test_thousand_lobbies_never_share_an_active_code(flask_app, three_players, topic_id):
    with flask_app.app_context():
        owner = db.session.get(User, three_players[0].id)
        codes = [
            lobbies.create_lobby(owner, [topic_id], 5, {'easy': 5, 'medium': 0, 'hard': 0}, 2).code
            for _ in range(1000)
        ]
    assert len(set(codes)) == 1000


def test_code_collision_retries(flask_app, monkeypatch, three_players, topic_id):
    draws = iter(['AAAAAA', 'AAAAAA', 'BBBBBB'])
    monkeypatch.setattr(lobbies, 'generate_code', lambda length=6: next(draws))
    with flask_app.app_context():
        owner = db.session.get(User, three_players[0].id)
        first = lobbies.create_lobby(owner, [topic_id], 5, {'easy': 5, 'medium': 0, 'hard': 0}, 2)
        second = lobbies.create_lobby(owner, [topic_id], 5, {'easy': 5, 'medium': 0, 'hard': 0}, 2)
        assert (first.code, second.code) == ('AAAAAA', 'BBBBBB')


def test_code_race_past_the_lookup_retries_on_constraint(flask_app, monkeypatch, three_players, topic_id):
    draws = iter(['RACE01', 'RACE01', 'RACE02'])
    monkeypatch.setattr(lobbies, 'generate_code', lambda length=6: next(draws))
    monkeypatch.setattr(lobbies, '_code_in_use', lambda code: False)
    with flask_app.app_context():
        owner = db.session.get(User, three_players[0].id)
        first = lobbies.create_lobby(owner, [topic_id], 5, {'easy': 5, 'medium': 0, 'hard': 0}, 2)
        second = lobbies.create_lobby(owner, [topic_id], 5, {'easy': 5, 'medium': 0, 'hard': 0}, 2)
        assert (first.code, second.code) == ('RACE01', 'RACE02')
        assert Lobby.query.count() == 2
        assert LobbyPlayer.query.filter_by(user_id=owner.id).count() == 2


def test_code_generation_gives_up(flask_app, monkeypatch, three_players, topic_id):
    monkeypatch.setattr(lobbies, 'generate_code', lambda length=6: 'SAMEEE')
    with flask_app.app_context():
        owner = db.session.get(User, three_players[0].id)
        lobbies.create_lobby(owner, [topic_id], 5, {'easy': 5, 'medium': 0, 'hard': 0}, 2)
        with pytest.raises(InternalError) as exc:
            lobbies.create_lobby(owner, [topic_id], 5, {'easy': 5, 'medium': 0, 'hard': 0}, 2)
    assert exc.value.code == 'CODE_GENERATION_FAILED'


def test_archived_code_can_be_reused(flask_app, monkeypatch, three_players, topic_id):
    monkeypatch.setattr(lobbies, 'generate_code', lambda length=6: 'REUSE1')
    with flask_app.app_context():
        owner = db.session.get(User, three_players[0].id)
        first = lobbies.create_lobby(owner, [topic_id], 5, {'easy': 5, 'medium': 0, 'hard': 0}, 2)
        lobbies.leave_lobby(first.id, owner)
        second = lobbies.create_lobby(owner, [topic_id], 5, {'easy': 5, 'medium': 0, 'hard': 0}, 2)
        assert second.code == 'REUSE1'
        assert second.id != first.id


def test_expire_sweep_archives_stale_waiting_lobbies(client, flask_app, three_players, topic_id):
    alice, bob, _ = three_players
    stale = create_lobby(client, alice, topic_id)
    fresh = create_lobby(client, alice, topic_id)
    with flask_app.app_context():
        db.session.get(Lobby, stale['id']).expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()
        assert cleanup_expired_lobbies() == 1
        assert cleanup_expired_lobbies() == 0
        archived = db.session.get(Lobby, stale['id'])
        assert archived.status == 'completed'
        assert archived.archived_at is not None
    assert _join(client, bob, stale['code']).status_code == 404
    assert _join(client, bob, fresh['code']).status_code == 200


def test_purge_old_archived_lobbies(client, flask_app, three_players, topic_id):
    alice = three_players[0]
    lobby = create_lobby(client, alice, topic_id)
    client.delete(f"/api/lobby/{lobby['id']}/leave", headers=alice.headers)
    with flask_app.app_context():
        assert delete_old_archived_lobbies(30) == 0
        db.session.get(Lobby, lobby['id']).archived_at = utcnow() - timedelta(days=31)
        db.session.commit()
        assert delete_old_archived_lobbies(30) == 1
        assert db.session.get(Lobby, lobby['id']) is None

