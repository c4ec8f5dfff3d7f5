import heapq
import itertools
import os
import sys

import pytest

# Ensure the backend root (containing the `wordduel` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from wordduel import create_app, socketio
from wordduel.models import WordPair
from wordduel.services.duel import LobbyRegistry, LobbySettings, ScheduledCall
from wordduel.transport import ConnectionEndpoint


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    CORS_ORIGINS = ['http://localhost:3000']
    RECONNECT_GRACE_SEC = 5
    EMPTY_LOBBY_GRACE_SEC = 30
    RESULTS_DISPLAY_SEC = 10
    TICK_INTERVAL_SEC = 1
    LOBBY_CODE_LENGTH = 6
    TIME_MODES = {'quick': 60, 'normal': 180, 'long': 300}
    DEFAULT_TIME_MODE = 'normal'


class ManualScheduler:
    """Scheduler driven by virtual time; callbacks run inside ``advance``."""

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = itertools.count()

    def call_later(self, delay, func, *args):
        call = ScheduledCall(func, args)
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), call))
        return call

    def advance(self, seconds):
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, call = heapq.heappop(self._queue)
            self.now = due
            call.run()
        self.now = target

    def pending(self):
        return [call for _, _, call in self._queue if not call.cancelled]


class RecordingEndpoint(ConnectionEndpoint):
    """Endpoint that keeps every event it was sent."""

    def __init__(self, sid):
        super().__init__(sid)
        self.sent = []
        self.disconnected = False

    def _emit(self, event, payload):
        self.sent.append((event, payload))

    def _disconnect(self):
        self.disconnected = True

    def names(self):
        return [event for event, _ in self.sent]

    def payloads(self, event):
        return [payload for name, payload in self.sent if name == event]

    def last(self, event):
        found = self.payloads(event)
        return found[-1] if found else None

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def settings():
    return LobbySettings.from_config({
        key: getattr(TestConfig, key) for key in dir(TestConfig) if key.isupper()
    })


@pytest.fixture()
def registry(scheduler, settings):
    return LobbyRegistry(scheduler, settings)


@pytest.fixture()
def endpoint_factory():
    counter = itertools.count(1)

    def _make(sid=None):
        return RecordingEndpoint(sid or f'sid-{next(counter)}')

    return _make


@pytest.fixture()
def hello_words():
    return [WordPair('hello', 'hallo')]


@pytest.fixture()
def flask_app(registry):
    application = create_app(TestConfig, registry=registry)
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    clients = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        test_client.get_received('/ws')  # flush the connected ack
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        try:
            test_client.disconnect(namespace='/ws')
        except Exception:
            pass


@pytest.fixture()
def sio_client(sio_factory):
    return sio_factory()
