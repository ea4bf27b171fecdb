"""
Shared pytest fixtures for all test files
"""
import os
import tempfile
import threading

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError, LockNotOwnedError

from config import Config


class TestConfig(Config):
    """Standard test configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}  # SQLite doesn't support pool settings
    SECRET_KEY = 'test-secret-key'
    CONTENT_STORE_BACKEND = 'remote'
    REALTIME_PUBLISHER = 'local'
    CELERY_ALWAYS_EAGER = True
    SENTRY_DSN = ''
    SERVE_API_DOCS = False
    BACKFILL_ON_STARTUP = True
    PROPAGATION_ATOMIC = True
    DUPLICATE_POST_WINDOW_SECONDS = 60
    LOG_DIR = os.path.join(tempfile.gettempdir(), 'chirp-test-logs')


class FakeLock:
    def __init__(self, server, name, timeout=None, blocking_timeout=None):
        self.server = server
        self.name = name
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout
        self.owned = False

    def acquire(self):
        if self.server.down:
            raise RedisConnectionError('Connection refused')
        held = self.server.locks.setdefault(self.name, threading.Lock())
        self.owned = held.acquire(timeout=-1 if self.blocking_timeout is None else self.blocking_timeout)
        return self.owned

    def release(self):
        if not self.owned:
            raise LockNotOwnedError('Cannot release a lock that is no longer owned')
        self.owned = False
        self.server.locks[self.name].release()


class LockingRedis:
    """Just enough of a redis server for named locks shared between callers"""

    def __init__(self):
        self.locks = {}
        self.down = False

    def lock(self, name, timeout=None, blocking_timeout=None):
        return FakeLock(self, name, timeout=timeout, blocking_timeout=blocking_timeout)

    def held(self, name):
        return name in self.locks and self.locks[name].locked()


@pytest.fixture
def test_app():
    """Create and configure a test application instance"""
    from chirp import create_app, db

    app = create_app(TestConfig)
    app.extensions['chirp_propagator'].redis_client = LockingRedis()

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def app(test_app):
    """Alias for test_app for compatibility"""
    return test_app


@pytest.fixture
def client(test_app):
    """Create test client"""
    return test_app.test_client()


@pytest.fixture
def distributor(test_app):
    """The in-process distributor the local publisher feeds"""
    return test_app.extensions['chirp_distributor']


@pytest.fixture
def store():
    """A fresh in-memory local backend with the schema in place"""
    from chirp.store import EngineStore

    store = EngineStore('sqlite://')
    store.create_schema()
    yield store
    store.dispose()


@pytest.fixture
def content(store):
    from chirp.content import ContentStore
    return ContentStore(store)


@pytest.fixture
def mention_index(store):
    from chirp.mentions import MentionIndex
    return MentionIndex(store)


@pytest.fixture
def locking_redis():
    return LockingRedis()


@pytest.fixture
def propagator(store, mention_index, locking_redis):
    from chirp.mentions import NicknameChangePropagator
    return NicknameChangePropagator(store, mention_index, locking_redis, atomic=True, lock_wait=0.1)


def _drain(session):
    messages = []
    while not session.queue.empty():
        messages.append(session.queue.get_nowait())
    return messages


@pytest.fixture
def drain():
    """Everything queued for a realtime session so far"""
    return _drain
