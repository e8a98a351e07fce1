import os
import sys
import pytest

# Ensure the backend root (containing the `imposter` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from imposter import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MIN_PLAYERS = 3
    ROLE_REVEAL_DURATION_SEC = 5
    VOTING_DURATION_SEC = 30
    DEFAULT_DISCUSSION_DURATION_SEC = 600
    PRESENCE_TIMEOUT_MS = 15000
    CHAT_HISTORY_LIMIT = 100
    STORE_CAS_RETRIES = 3
    ROOM_TTL_SEC = 6 * 3600
    EMPTY_ROOM_TTL_SEC = 60


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import imposter.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def make_room(client):
    """Create a room over HTTP with a host plus ``extra`` joined players.

    Returns ``(code, [peer_id, ...])`` in join order; the first id is the host.
    """
    def _make(extra=3, config=None, names=None):
        names = names or ['Alice', 'Bob', 'Cara', 'Dan', 'Eve', 'Finn'][:extra + 1]
        res = client.post('/api/rooms', json={
            'peer_id': 'p_host',
            'username': names[0],
            'config': config or {'imposterCount': 1, 'playerCount': extra + 1, 'word': 'Pizza', 'hint': 'Cheesy'},
        })
        assert res.status_code == 201
        code = res.get_json()['roomCode']
        peers = ['p_host']
        for i, name in enumerate(names[1:], start=1):
            pid = f'p_{i}'
            assert client.post(f'/api/rooms/{code}/join', json={'peer_id': pid, 'username': name}).status_code == 200
            peers.append(pid)
        return code, peers

    return _make
