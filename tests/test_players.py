"""Tests for player roster mutations."""
import json
import uuid

from dinkers.app import db, socketio
from dinkers.models import Player


def _players_url(group):
    return f'/api/groups/{group["slug"]}/players'


def test_add_player(client, group, editor_headers):
    res = client.post(_players_url(group), json={
        'action': 'add', 'name': 'Ann', 'rating': 3.75,
    }, headers=editor_headers)
    assert res.status_code == 200
    players = json.loads(res.data)['players']
    assert len(players) == 1
    assert players[0]['name'] == 'Ann'
    assert players[0]['rating'] == 3.75
    assert players[0]['is_present'] is True
    assert players[0]['games_played'] == 0


def test_players_listed_by_name(client, group, add_players):
    add_players(('Zed', 3.0), ('Amy', 3.0), ('Moe', 3.0))
    res = client.get(f'/api/groups/{group["slug"]}')
    names = [p['name'] for p in json.loads(res.data)['players']]
    assert names == ['Amy', 'Moe', 'Zed']


def test_add_player_requires_editor(client, group):
    res = client.post(_players_url(group), json={'action': 'add', 'name': 'Ann', 'rating': 3})
    assert res.status_code == 401


def test_invalid_mutation(client, group, editor_headers):
    res = client.post(_players_url(group), json={'action': 'add', 'name': 'Ann', 'rating': 9},
                      headers=editor_headers)
    assert res.status_code == 400
    res = client.post(_players_url(group), json={'action': 'explode'}, headers=editor_headers)
    assert res.status_code == 400
    assert json.loads(res.data)['error'] == 'Unknown player action'


def test_presence_toggle_resets_rest_counter(app, client, group, editor_headers, add_players):
    ann_id, bo_id = add_players(('Ann', 3.5), ('Bo', 3.5))
    player = db.session.get(Player, ann_id)
    player.games_since_played = 3
    db.session.commit()

    res = client.post(_players_url(group), json={
        'action': 'presence',
        'updates': [
            {'player_id': ann_id, 'is_present': True},
            {'player_id': bo_id, 'is_present': False},
            {'player_id': str(uuid.uuid4()), 'is_present': False},
        ],
    }, headers=editor_headers)
    assert res.status_code == 200
    players = {p['id']: p for p in json.loads(res.data)['players']}
    assert players[ann_id]['games_since_played'] == 0
    assert players[bo_id]['is_present'] is False


def test_update_player(client, group, editor_headers, add_players):
    (ann_id,) = add_players(('Ann', 3.5))
    res = client.post(_players_url(group), json={
        'action': 'update', 'player_id': ann_id, 'name': 'Annie', 'rating': 4.1,
    }, headers=editor_headers)
    assert res.status_code == 200
    player = json.loads(res.data)['players'][0]
    assert player['name'] == 'Annie'
    assert player['rating'] == 4.1


def test_update_unknown_player(client, group, editor_headers):
    res = client.post(_players_url(group), json={
        'action': 'update', 'player_id': str(uuid.uuid4()), 'name': 'Ghost',
    }, headers=editor_headers)
    assert res.status_code == 404
    assert json.loads(res.data)['code'] == 'player_not_found'


def test_player_mutation_emits_group_update(client, group, editor_headers, monkeypatch):
    emitted = []

    def fake_emit(event, payload, **kwargs):
        emitted.append((event, payload, kwargs))

    monkeypatch.setattr('dinkers.routes.players.socketio.emit', fake_emit)
    client.post(_players_url(group), json={'action': 'add', 'name': 'Ann', 'rating': 3},
                headers=editor_headers)

    assert len(emitted) == 1
    event, payload, kwargs = emitted[0]
    assert event == 'group_update'
    assert payload['group_id'] == group['id']
    assert payload['reason'] == 'players'
    assert payload['updated_at'].endswith('Z')
    assert kwargs['room'] == f'group_{group["id"]}'


def test_group_update_reaches_only_joined_group(app, client, group, editor_headers):
    other = client.post('/api/groups', json={'name': 'Thursday Dinkers', 'pin': '9876'}).get_json()
    member = socketio.test_client(app, flask_test_client=client)
    outsider = socketio.test_client(app, flask_test_client=client)
    member.emit('join_group', {'slug': group['slug']})
    outsider.emit('join_group', {'slug': other['group']['slug']})
    member.get_received()
    outsider.get_received()

    client.post(_players_url(group), json={'action': 'add', 'name': 'Ann', 'rating': 3},
                headers=editor_headers)

    received = [msg for msg in member.get_received() if msg['name'] == 'group_update']
    assert len(received) == 1
    assert received[0]['args'][0]['group_id'] == group['id']
    assert not [msg for msg in outsider.get_received() if msg['name'] == 'group_update']


def test_join_unknown_group_reports_error(app, client):
    socket_client = socketio.test_client(app, flask_test_client=client)
    socket_client.emit('join_group', {'slug': 'no-such-group'})
    statuses = [msg for msg in socket_client.get_received() if msg['name'] == 'status']
    assert statuses[-1]['args'][0] == {'error': 'Group not found'}
