import pytest
from dinkers.app import create_app, db


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def group(client):
    """Create a group and return its payload."""
    res = client.post('/api/groups', json={'name': 'Tuesday Dinkers', 'pin': '4321'})
    return res.get_json()['group']


@pytest.fixture
def editor_headers(client, group):
    """Unlock the sample group and return editor auth headers."""
    res = client.post(f'/api/groups/{group["slug"]}/unlock', json={'pin': '4321'})
    token = res.get_json()['token']
    return {'Authorization': f'Bearer {token}', 'Content-Type': 'application/json'}


@pytest.fixture
def add_players(client, group, editor_headers):
    """Return a helper that adds players by (name, rating) and returns their ids in order."""
    def _add(*entries):
        ids = []
        for name, rating in entries:
            res = client.post(f'/api/groups/{group["slug"]}/players', json={
                'action': 'add', 'name': name, 'rating': rating,
            }, headers=editor_headers)
            assert res.status_code == 200
            players = res.get_json()['players']
            ids.append(next(p['id'] for p in players if p['name'] == name))
        return ids
    return _add
