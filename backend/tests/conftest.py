import logging
import os
import sys
import pytest

# Ensure the backend root (containing the `planning_poker` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from planning_poker.config import Config
from planning_poker import create_app, socketio
from planning_poker.services.sessions import SessionStore
from planning_poker.socketio_events import NAMESPACE


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    TOKEN_SECRET = 'test-token-secret'
    LOG_LEVEL = 'DEBUG'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def store():
    return SessionStore(logger=logging.getLogger('tests.store'))


@pytest.fixture()
def app_store(flask_app):
    return flask_app.extensions['session_store']


@pytest.fixture()
def connect(flask_app):
    """Factory for Socket.IO test clients on the session namespace."""
    clients = []

    def _connect(**kwargs):
        test_client = socketio.test_client(flask_app, namespace=NAMESPACE, **kwargs)
        clients.append(test_client)
        return test_client

    yield _connect
    for test_client in clients:
        try:
            if test_client.is_connected(NAMESPACE):
                test_client.disconnect(namespace=NAMESPACE)
        except Exception:
            pass


def received(sio_client):
    """Drain a test client's queue into (name, first arg) pairs."""
    return [
        (pkt['name'], pkt['args'][0] if pkt['args'] else None)
        for pkt in sio_client.get_received(NAMESPACE)
    ]


def payloads(events, name):
    return [data for event, data in events if event == name]
