from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import create_engine, text, bindparam, DateTime
from sqlalchemy.exc import OperationalError, InterfaceError
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql.elements import TextClause

from chirp import db
from chirp.exceptions import StoreUnavailableError
from chirp.store.base import Store, WriteResult

logger = logging.getLogger(__name__)


def prepare(statement, params: dict | None):
    """Wrap raw SQL in text() and give datetime parameters an explicit type.

    SQLite stores timestamps as text, so binding through DateTime keeps every stored value in the
    same format and makes range comparisons on them work.
    """
    clause = statement if isinstance(statement, TextClause) else text(statement)
    params = params or {}
    typed = [bindparam(key, type_=DateTime) for key, value in params.items() if isinstance(value, datetime)]
    if typed:
        clause = clause.bindparams(*typed)
    return clause, params


@contextmanager
def unavailable_on_connection_error():
    try:
        yield
    except (OperationalError, InterfaceError) as e:
        logger.error(f'Store unavailable: {e.orig if e.orig else e}')
        raise StoreUnavailableError('The content store is currently unavailable') from e


def as_dicts(result) -> list[dict]:
    return [dict(row._mapping) for row in result]


class SessionStore(Store):
    """Remote backend: the Flask-SQLAlchemy session, needs an application context"""

    name = 'remote'

    def __init__(self):
        self._local = threading.local()

    @property
    def _depth(self) -> int:
        return getattr(self._local, 'depth', 0)

    def _finish(self):
        # statements outside a transaction commit individually
        if self._depth == 0:
            db.session.commit()

    def execute_write(self, statement, params=None) -> WriteResult:
        clause, params = prepare(statement, params)
        try:
            with unavailable_on_connection_error():
                result = db.session.execute(clause, params)
                self._finish()
        except Exception:
            if self._depth == 0:
                db.session.rollback()
            raise
        return WriteResult(affected_rows=result.rowcount)

    def fetch_one(self, query, params=None):
        clause, params = prepare(query, params)
        with unavailable_on_connection_error():
            row = db.session.execute(clause, params).first()
        return dict(row._mapping) if row is not None else None

    def fetch_many(self, query, params=None):
        clause, params = prepare(query, params)
        with unavailable_on_connection_error():
            return as_dicts(db.session.execute(clause, params))

    @contextmanager
    def transaction(self):
        depth = self._depth
        self._local.depth = depth + 1
        try:
            yield
            if depth == 0:
                with unavailable_on_connection_error():
                    db.session.commit()
        except Exception:
            if depth == 0:
                db.session.rollback()
            raise
        finally:
            self._local.depth = depth

    def create_schema(self):
        import chirp.models  # noqa: F401 registers the tables
        with unavailable_on_connection_error():
            db.create_all()


class EngineStore(Store):
    """Local backend: a standalone engine, usually over a SQLite file. Works without Flask."""

    name = 'local'

    def __init__(self, database_url: str):
        if database_url in ('sqlite://', 'sqlite:///:memory:'):
            # one shared connection, otherwise every checkout would see a different empty database
            self.engine = create_engine(database_url, poolclass=StaticPool,
                                        connect_args={'check_same_thread': False})
        elif database_url.startswith('sqlite'):
            self.engine = create_engine(database_url, connect_args={'check_same_thread': False, 'timeout': 30})
        else:
            self.engine = create_engine(database_url, pool_pre_ping=True)
        self._local = threading.local()
        self._lock = threading.RLock() if isinstance(self.engine.pool, StaticPool) else None

    @classmethod
    def from_path(cls, path: str) -> 'EngineStore':
        directory = os.path.dirname(path)
        if directory and not os.path.exists(directory):
            os.makedirs(directory)
        return cls(f'sqlite:///{path}')

    @property
    def _connection(self):
        return getattr(self._local, 'connection', None)

    @contextmanager
    def _connect(self):
        """The current transaction's connection, or a fresh auto-committing one"""
        if self._connection is not None:
            yield self._connection
            return
        with self._serialized(), unavailable_on_connection_error():
            with self.engine.begin() as connection:
                yield connection

    @contextmanager
    def _serialized(self):
        if self._lock is None:
            yield
        else:
            with self._lock:
                yield

    def execute_write(self, statement, params=None) -> WriteResult:
        clause, params = prepare(statement, params)
        with self._connect() as connection:
            with unavailable_on_connection_error():
                result = connection.execute(clause, params)
            return WriteResult(affected_rows=result.rowcount)

    def fetch_one(self, query, params=None):
        clause, params = prepare(query, params)
        with self._connect() as connection:
            with unavailable_on_connection_error():
                row = connection.execute(clause, params).first()
            return dict(row._mapping) if row is not None else None

    def fetch_many(self, query, params=None):
        clause, params = prepare(query, params)
        with self._connect() as connection:
            with unavailable_on_connection_error():
                return as_dicts(connection.execute(clause, params))

    @contextmanager
    def transaction(self):
        if self._connection is not None:
            yield
            return
        with self._serialized(), unavailable_on_connection_error():
            with self.engine.begin() as connection:
                self._local.connection = connection
                try:
                    yield
                finally:
                    self._local.connection = None

    def create_schema(self):
        import chirp.models  # noqa: F401 registers the tables
        with unavailable_on_connection_error():
            db.metadata.create_all(self.engine)

    def dispose(self):
        self.engine.dispose()
