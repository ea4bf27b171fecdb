from __future__ import annotations

import logging
import re
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass

import redis
from redis.exceptions import LockError, LockNotOwnedError

from chirp.constants import POST_CONTENT_LIMIT, ERR_RENAME_IN_PROGRESS
from chirp.exceptions import ConflictError, StoreUnavailableError
from chirp.mentions.index import MentionIndex
from chirp.store import Store
from chirp.utils import utcnow, escape_like

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PropagationResult:
    posts_updated: int = 0
    replies_updated: int = 0

    @property
    def total(self) -> int:
        return self.posts_updated + self.replies_updated


def references(content: str, name: str) -> bool:
    """True when ``@name`` occurs followed by whitespace or at the very end of ``content``"""
    return re.search(re.escape('@' + name) + r'(?=\s|\Z)', content) is not None


def rewrite(content: str, old_name: str, new_name: str) -> str:
    # only the trailing edge is checked, "@alice2" is someone else but "x@alice" still counts
    pattern = re.escape('@' + old_name) + r'(?![A-Za-z0-9_])'
    return re.sub(pattern, lambda match: '@' + new_name, content)


class NicknameChangePropagator:
    """Carries a nickname change into everything already written.

    Renames of the same user are kept apart by a redis lock, so every web and celery process
    sharing the redis server sees the same lock.
    """

    def __init__(self, store: Store, index: MentionIndex, redis_client: redis.Redis, atomic: bool = True,
                 lock_timeout: float = 60, lock_wait: float = 6):
        self.store = store
        self.index = index
        self.redis_client = redis_client
        self.atomic = atomic
        self.lock_timeout = lock_timeout
        self.lock_wait = lock_wait

    @contextmanager
    def locked(self, user_id: str):
        """Hold the user's rename lock. Not reentrant: take it once per rename."""
        try:
            lock = self.redis_client.lock(f'lock:user:{user_id}', timeout=self.lock_timeout,
                                          blocking_timeout=self.lock_wait)
            acquired = lock.acquire()
        except LockError:
            acquired = False
        except redis.RedisError as e:
            logger.error(f'Could not take the rename lock for {user_id}: {e}')
            raise StoreUnavailableError('The lock service is currently unavailable') from e
        if not acquired:
            raise ConflictError('Another nickname change for this user is in progress', code=ERR_RENAME_IN_PROGRESS)
        try:
            yield
        finally:
            try:
                lock.release()
            except LockNotOwnedError:
                logger.warning(f'Rename lock for {user_id} expired before the rename finished')

    def transaction(self):
        return self.store.transaction() if self.atomic else nullcontext()

    def propagate(self, user_id: str, old_name: str, new_name: str) -> PropagationResult:
        if old_name == new_name:
            return PropagationResult()
        with self.locked(user_id), self.transaction():
            return self.apply(user_id, old_name, new_name)

    def apply(self, user_id: str, old_name: str, new_name: str) -> PropagationResult:
        """The rewrite itself. The caller holds ``locked(user_id)``."""
        result = self._propagate(user_id, old_name, new_name)
        logger.info(f'Renamed {old_name} to {new_name} for {user_id}: rewrote {result.posts_updated} posts '
                    f'and {result.replies_updated} replies')
        return result

    def _propagate(self, user_id: str, old_name: str, new_name: str) -> PropagationResult:
        now = utcnow()
        self.store.execute_write('UPDATE posts SET author_nickname = :new WHERE author_id = :user_id '
                                 'AND is_deleted = false', {'new': new_name, 'user_id': user_id})

        candidates = self.store.fetch_many(
            "SELECT id, content, parent_id FROM posts WHERE is_deleted = false AND content LIKE :pattern ESCAPE '\\'",
            {'pattern': '%@' + escape_like(old_name) + '%'})

        posts_updated = 0
        replies_updated = 0
        for row in candidates:
            if not references(row['content'], old_name):
                continue
            content = rewrite(row['content'], old_name, new_name)
            if content == row['content']:
                continue
            if len(content) > POST_CONTENT_LIMIT:
                logger.warning(f'Not rewriting @{old_name} in post {row["id"]}, the result would be too long')
                continue
            self.store.execute_write('UPDATE posts SET content = :content, updated_at = :now WHERE id = :id',
                                     {'content': content, 'now': now, 'id': row['id']})
            if row['parent_id']:
                replies_updated += 1
            else:
                posts_updated += 1

        self.index.rewrite_references(old_name, new_name)
        return PropagationResult(posts_updated=posts_updated, replies_updated=replies_updated)
