"""Posts, replies, engagements and hashtags on top of the store primitives.

Every method here is a handful of parameterised statements against a ``Store``. Nothing in this
module knows which backend it is talking to, and nothing here validates input: the callers in
chirp.shared do that before a row is touched.
"""
from __future__ import annotations

import logging
from datetime import datetime
from uuid import uuid4

from chirp.constants import ENGAGEMENT_KINDS, ENGAGEMENT_ADDED, ENGAGEMENT_REMOVED, POST_TYPE_POST, \
    POST_TYPE_REPLY, ERR_ENGAGEMENT_EXISTS, ERR_POST_NOT_FOUND
from chirp.exceptions import ConflictError, NotFoundError, ValidationError
from chirp.mentions.extractor import extract_hashtags, normalize_hashtag
from chirp.store import Store
from chirp.utils import utcnow

logger = logging.getLogger(__name__)

POST_COLUMNS = """
    p.id, p.author_id, p.author_nickname, p.content, p.parent_id, p.created_at, p.updated_at,
    p.is_deleted, p.deleted_at,
    (SELECT COUNT(*) FROM engagements e WHERE e.post_id = p.id AND e.kind = 'like') AS likes_count,
    (SELECT COUNT(*) FROM engagements e WHERE e.post_id = p.id AND e.kind = 'reshare') AS reshares_count,
    (SELECT COUNT(*) FROM posts r WHERE r.parent_id = p.id AND r.is_deleted = false) AS replies_count
"""

USER_COLUMNS = 'u.id, u.nickname, u.is_active, u.created_at, u.updated_at, u.last_active'


class ContentStore:
    def __init__(self, store: Store):
        self.store = store

    # Users

    def get_user(self, user_id: str) -> dict | None:
        return self.store.fetch_one(f'SELECT {USER_COLUMNS} FROM users u WHERE u.id = :id', {'id': user_id})

    def get_user_by_nickname(self, nickname: str) -> dict | None:
        return self.store.fetch_one(f'SELECT {USER_COLUMNS} FROM users u WHERE u.nickname = :nickname '
                                    f'AND u.is_active = true', {'nickname': nickname})

    def nickname_taken(self, nickname: str, except_user_id: str | None = None) -> bool:
        row = self.store.fetch_one('SELECT id FROM users WHERE nickname = :nickname AND is_active = true '
                                   'AND id != :user_id',
                                   {'nickname': nickname, 'user_id': except_user_id or ''})
        return row is not None

    def insert_user(self, user_id: str, nickname: str) -> bool:
        """Create the user row unless it exists. Returns True when a row was created."""
        now = utcnow()
        result = self.store.execute_write(
            'INSERT INTO users (id, nickname, is_active, created_at, updated_at, last_active) '
            'VALUES (:id, :nickname, true, :now, :now, :now) ON CONFLICT DO NOTHING',
            {'id': user_id, 'nickname': nickname, 'now': now})
        return result.affected_rows == 1

    def set_nickname(self, user_id: str, nickname: str) -> int:
        now = utcnow()
        return self.store.execute_write(
            'UPDATE users SET nickname = :nickname, updated_at = :now, last_active = :now WHERE id = :id',
            {'id': user_id, 'nickname': nickname, 'now': now}).affected_rows

    def touch_user(self, user_id: str) -> int:
        return self.store.execute_write('UPDATE users SET last_active = :now WHERE id = :id',
                                        {'id': user_id, 'now': utcnow()}).affected_rows

    # Posts

    def create_post(self, author_id: str, author_name: str, content: str, parent_id: str | None = None,
                    created_at: datetime | None = None) -> dict:
        """Insert a post (a reply when parent_id is given) and link its hashtags"""
        post_id = str(uuid4())
        now = created_at or utcnow()
        params = {'id': post_id, 'author_id': author_id, 'author_nickname': author_name, 'content': content,
                  'parent_id': parent_id, 'now': now}
        with self.store.transaction():
            if parent_id is None:
                self.store.execute_write(
                    'INSERT INTO posts (id, author_id, author_nickname, content, parent_id, created_at, updated_at, '
                    'is_deleted) VALUES (:id, :author_id, :author_nickname, :content, :parent_id, :now, :now, false)',
                    params)
            else:
                # the parent is checked by the insert itself, a delete racing this reply cannot slip in between
                inserted = self.store.execute_write(
                    'INSERT INTO posts (id, author_id, author_nickname, content, parent_id, created_at, updated_at, '
                    'is_deleted) SELECT :id, :author_id, :author_nickname, :content, :parent_id, :now, :now, false '
                    'WHERE EXISTS (SELECT 1 FROM posts parent WHERE parent.id = :parent_id '
                    'AND parent.is_deleted = false)', params)
                if not inserted.affected_rows:
                    raise NotFoundError('The post being replied to does not exist', code=ERR_POST_NOT_FOUND)
            for tag in extract_hashtags(content):
                self._link_hashtag(post_id, tag, now)
        return self.get_post(post_id, include_deleted=True)

    def _link_hashtag(self, post_id: str, tag: str, now: datetime):
        self.store.execute_write('INSERT INTO hashtags (tag, usage_count, created_at, updated_at) '
                                 'VALUES (:tag, 0, :now, :now) ON CONFLICT DO NOTHING', {'tag': tag, 'now': now})
        hashtag_id = self.store.fetch_value('SELECT id FROM hashtags WHERE tag = :tag', {'tag': tag})
        linked = self.store.execute_write('INSERT INTO post_hashtags (post_id, hashtag_id) '
                                          'VALUES (:post_id, :hashtag_id) ON CONFLICT DO NOTHING',
                                          {'post_id': post_id, 'hashtag_id': hashtag_id})
        if linked.affected_rows:
            self.store.execute_write('UPDATE hashtags SET usage_count = usage_count + 1, updated_at = :now '
                                     'WHERE id = :id', {'id': hashtag_id, 'now': now})

    def get_post(self, post_id: str, include_deleted=False) -> dict | None:
        sql = f'SELECT {POST_COLUMNS} FROM posts p WHERE p.id = :id'
        if not include_deleted:
            sql += ' AND p.is_deleted = false'
        return self.store.fetch_one(sql, {'id': post_id})

    def get_reply(self, post_id: str) -> dict | None:
        """A reply with its parent's content and author"""
        return self.store.fetch_one(
            f'SELECT {POST_COLUMNS}, parent.content AS parent_content, parent.author_nickname AS parent_author '
            f'FROM posts p JOIN posts parent ON parent.id = p.parent_id WHERE p.id = :id', {'id': post_id})

    def list_posts(self, limit: int, offset: int = 0, hashtag: str | None = None) -> list[dict]:
        """Top-level posts, newest first"""
        params = {'limit': limit, 'offset': offset}
        sql = f'SELECT {POST_COLUMNS} FROM posts p WHERE p.parent_id IS NULL AND p.is_deleted = false'
        if hashtag:
            sql += (' AND p.id IN (SELECT ph.post_id FROM post_hashtags ph JOIN hashtags h ON h.id = ph.hashtag_id '
                    'WHERE h.tag = :tag)')
            params['tag'] = normalize_hashtag(hashtag)
        sql += ' ORDER BY p.created_at DESC, p.id DESC LIMIT :limit OFFSET :offset'
        return self.store.fetch_many(sql, params)

    def list_user_posts(self, user_id: str, limit: int) -> list[dict]:
        """Everything the user wrote, posts and replies together, each tagged with its type"""
        rows = self.store.fetch_many(
            f'SELECT {POST_COLUMNS} FROM posts p WHERE p.author_id = :user_id AND p.is_deleted = false '
            f'ORDER BY p.created_at DESC, p.id DESC LIMIT :limit', {'user_id': user_id, 'limit': limit})
        for row in rows:
            row['type'] = POST_TYPE_REPLY if row['parent_id'] else POST_TYPE_POST
        return rows

    def list_user_replies(self, user_id: str, limit: int) -> list[dict]:
        return self.store.fetch_many(
            f'SELECT {POST_COLUMNS}, parent.content AS parent_content, parent.author_nickname AS parent_author '
            f'FROM posts p JOIN posts parent ON parent.id = p.parent_id '
            f'WHERE p.author_id = :user_id AND p.is_deleted = false '
            f'ORDER BY p.created_at DESC, p.id DESC LIMIT :limit', {'user_id': user_id, 'limit': limit})

    def list_mentions_and_replies(self, nickname: str, limit: int) -> list[dict]:
        """Posts that mention ``nickname`` plus replies to posts written under that nickname"""
        rows = self.store.fetch_many(
            f'SELECT {POST_COLUMNS} FROM posts p '
            f'WHERE p.is_deleted = false AND ('
            f'  p.id IN (SELECT m.post_id FROM mentions m WHERE m.mentioned_user = :nickname) '
            f'  OR p.parent_id IN (SELECT parent.id FROM posts parent WHERE parent.author_nickname = :nickname)'
            f') ORDER BY p.created_at DESC, p.id DESC LIMIT :limit', {'nickname': nickname, 'limit': limit})
        for row in rows:
            row['type'] = POST_TYPE_REPLY if row['parent_id'] else POST_TYPE_POST
        return rows

    def list_replies(self, post_id: str, limit: int) -> list[dict]:
        """Replies to a post, oldest first"""
        return self.store.fetch_many(
            f'SELECT {POST_COLUMNS} FROM posts p WHERE p.parent_id = :post_id AND p.is_deleted = false '
            f'ORDER BY p.created_at ASC, p.id ASC LIMIT :limit', {'post_id': post_id, 'limit': limit})

    def recent_posts_by_author(self, author_id: str, limit: int) -> list[dict]:
        return self.store.fetch_many(
            'SELECT id, content, parent_id, created_at FROM posts WHERE author_id = :author_id '
            'AND is_deleted = false ORDER BY created_at DESC, id DESC LIMIT :limit',
            {'author_id': author_id, 'limit': limit})

    def all_posts(self) -> list[dict]:
        return self.store.fetch_many('SELECT id, content FROM posts WHERE is_deleted = false ORDER BY created_at')

    def soft_delete_post(self, post_id: str) -> bool:
        with self.store.transaction():
            result = self.store.execute_write(
                'UPDATE posts SET is_deleted = true, deleted_at = :now WHERE id = :id AND is_deleted = false',
                {'id': post_id, 'now': utcnow()})
            if result.affected_rows:
                self.recount_hashtags_for_post(post_id)
        return result.affected_rows == 1

    def recount_hashtags_for_post(self, post_id: str) -> int:
        """Recompute usage_count for every hashtag the post is linked to"""
        return self.store.execute_write(
            'UPDATE hashtags SET usage_count = ('
            '  SELECT COUNT(*) FROM post_hashtags ph JOIN posts p ON p.id = ph.post_id '
            '  WHERE ph.hashtag_id = hashtags.id AND p.is_deleted = false'
            ') WHERE id IN (SELECT hashtag_id FROM post_hashtags WHERE post_id = :post_id)',
            {'post_id': post_id}).affected_rows

    # Hashtags

    def search_hashtag(self, tag: str, limit: int) -> list[dict]:
        rows = self.store.fetch_many(
            f'SELECT {POST_COLUMNS} FROM posts p '
            f'JOIN post_hashtags ph ON ph.post_id = p.id JOIN hashtags h ON h.id = ph.hashtag_id '
            f'WHERE h.tag = :tag AND p.is_deleted = false '
            f'ORDER BY p.created_at DESC, p.id DESC LIMIT :limit', {'tag': normalize_hashtag(tag), 'limit': limit})
        for row in rows:
            row['type'] = POST_TYPE_REPLY if row['parent_id'] else POST_TYPE_POST
        return rows

    def trending_hashtags(self, limit: int) -> list[dict]:
        return self.store.fetch_many(
            'SELECT tag, usage_count, created_at, updated_at FROM hashtags WHERE usage_count > 0 '
            'ORDER BY usage_count DESC, updated_at DESC LIMIT :limit', {'limit': limit})

    def cleanup_unused_hashtags(self) -> int:
        with self.store.transaction():
            self.store.execute_write(
                'DELETE FROM post_hashtags WHERE hashtag_id IN (SELECT id FROM hashtags WHERE usage_count <= 0) '
                'AND post_id IN (SELECT id FROM posts WHERE is_deleted = true)')
            deleted = self.store.execute_write(
                'DELETE FROM hashtags WHERE usage_count <= 0 '
                'AND id NOT IN (SELECT hashtag_id FROM post_hashtags)').affected_rows
        logger.info(f'Removed {deleted} unused hashtags')
        return deleted

    # Engagements

    def toggle_engagement(self, post_id: str, user_id: str, kind: str) -> str:
        """Flip a like or reshare. Returns 'added' or 'removed'.

        Only single conditional statements are used so two concurrent toggles by the same user cannot
        leave a duplicate row: delete if present, else insert-or-ignore, and if that insert lost a race
        to another toggle, the row that won is what gets removed.
        """
        self._check_kind(kind)
        params = {'post_id': post_id, 'user_id': user_id, 'kind': kind}
        with self.store.transaction():
            removed = self.store.execute_write(
                'DELETE FROM engagements WHERE post_id = :post_id AND user_id = :user_id AND kind = :kind', params)
            if removed.affected_rows:
                return ENGAGEMENT_REMOVED
            added = self.store.execute_write(
                'INSERT INTO engagements (post_id, user_id, kind, created_at) '
                'VALUES (:post_id, :user_id, :kind, :now) ON CONFLICT DO NOTHING', dict(params, now=utcnow()))
            if added.affected_rows:
                return ENGAGEMENT_ADDED
            self.store.execute_write(
                'DELETE FROM engagements WHERE post_id = :post_id AND user_id = :user_id AND kind = :kind', params)
            return ENGAGEMENT_REMOVED

    def add_engagement(self, post_id: str, user_id: str, kind: str):
        self._check_kind(kind)
        added = self.store.execute_write(
            'INSERT INTO engagements (post_id, user_id, kind, created_at) '
            'VALUES (:post_id, :user_id, :kind, :now) ON CONFLICT DO NOTHING',
            {'post_id': post_id, 'user_id': user_id, 'kind': kind, 'now': utcnow()})
        if not added.affected_rows:
            raise ConflictError(f'Already {kind}d', code=ERR_ENGAGEMENT_EXISTS)

    def remove_engagement(self, post_id: str, user_id: str, kind: str):
        self._check_kind(kind)
        removed = self.store.execute_write(
            'DELETE FROM engagements WHERE post_id = :post_id AND user_id = :user_id AND kind = :kind',
            {'post_id': post_id, 'user_id': user_id, 'kind': kind})
        if not removed.affected_rows:
            raise NotFoundError(f'No {kind} to remove')

    def has_engaged(self, post_id: str, user_id: str, kind: str) -> bool:
        return self.store.fetch_one('SELECT id FROM engagements WHERE post_id = :post_id AND user_id = :user_id '
                                    'AND kind = :kind',
                                    {'post_id': post_id, 'user_id': user_id, 'kind': kind}) is not None

    @staticmethod
    def _check_kind(kind):
        if kind not in ENGAGEMENT_KINDS:
            raise ValidationError(f'Unknown engagement kind {kind!r}')

    # Site wide

    def stats(self, trending_length: int = 5) -> dict:
        today = utcnow().replace(hour=0, minute=0, second=0, microsecond=0)
        return {
            'users': self.store.fetch_value('SELECT COUNT(*) FROM users WHERE is_active = true', default=0),
            'posts': self.store.fetch_value('SELECT COUNT(*) FROM posts WHERE is_deleted = false', default=0),
            'posts_today': self.store.fetch_value('SELECT COUNT(*) FROM posts WHERE is_deleted = false '
                                                  'AND created_at >= :since', {'since': today}, default=0),
            'popular_hashtags': self.trending_hashtags(trending_length),
        }

    def require_post(self, post_id: str) -> dict:
        post = self.get_post(post_id)
        if post is None:
            raise NotFoundError('Post not found', code=ERR_POST_NOT_FOUND)
        return post

