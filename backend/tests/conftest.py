import os
import sys
import pytest

# Ensure the backend root (containing the `liars` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from liars import create_app, db, socketio
from liars.server import GameServer
from liars.services.game.persistence import MemorySnapshotStore


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SNAPSHOT_BACKEND = 'database'
    AUTOSAVE_INTERVAL_SEC = 0
    LEADERBOARD_SIZE = 5
    MAX_PLAYER_NAME_LENGTH = 32
    SOCKETIO_NAMESPACE = '/'
    CORS_ORIGINS = ['http://localhost:5173']


SAMPLE_COMEDIANS = [
    {
        'name': 'Ava',
        'instagram': '@ava.jokes',
        'photoUrl': 'https://example.com/ava.jpg',
        'stories': [
            {'text': 'I once opened for a magician who vanished mid-set.', 'isTrue': True},
            {'text': 'I was banned from a petting zoo.', 'isTrue': False},
        ],
    },
    {
        'name': 'Ben',
        'instagram': '@benstandup',
        'stories': [
            {'text': 'I got heckled by my own mother.', 'isTrue': True},
        ],
    },
]


class FakeEmitter:
    """Records everything the dispatcher sends."""

    def __init__(self):
        self.sent = []

    def emit(self, event, data=None, to=None):
        self.sent.append((event, data, to))

    def to(self, sid):
        return [(event, data) for event, data, to in self.sent if to == sid]

    def broadcasts(self):
        return [(event, data) for event, data, to in self.sent if to is None]

    def names(self, sid=None):
        return [event for event, data, to in self.sent if to == sid]

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def emitter():
    return FakeEmitter()


@pytest.fixture()
def server(emitter):
    game_server = GameServer(snapshot_store=MemorySnapshotStore(), emitter=emitter)
    game_server.boot()
    return game_server


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import liars.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def game_server(flask_app):
    return flask_app.extensions['game_server']


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make():
        test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        try:
            if test_client.is_connected():
                test_client.disconnect()
        except Exception:
            pass
