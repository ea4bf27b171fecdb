from __future__ import annotations

import logging

from chirp.store.base import Store, WriteResult, Row
from chirp.store.sql import SessionStore, EngineStore

logger = logging.getLogger(__name__)


def create_store(config) -> Store:
    """Pick the backend once, at start-up. Nothing downstream looks at which one it got."""
    backend = config['CONTENT_STORE_BACKEND'] if isinstance(config, dict) else config.CONTENT_STORE_BACKEND
    if backend == 'remote':
        store = SessionStore()
    elif backend == 'local':
        path = config['LOCAL_DATABASE_PATH'] if isinstance(config, dict) else config.LOCAL_DATABASE_PATH
        if path == ':memory:':
            store = EngineStore('sqlite://')
        else:
            store = EngineStore.from_path(path)
    else:
        raise ValueError(f'Unknown CONTENT_STORE_BACKEND {backend!r}, expected remote or local')
    logger.info(f'Content store backend: {store.name}')
    return store


__all__ = ['Store', 'WriteResult', 'Row', 'SessionStore', 'EngineStore', 'create_store']
