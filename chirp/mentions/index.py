from __future__ import annotations

import logging
from typing import Iterable, Mapping

from chirp.mentions.extractor import extract, MentionAliases
from chirp.store import Store
from chirp.utils import utcnow

logger = logging.getLogger(__name__)


class MentionIndex:
    """Which identifiers each post references, one row per (post, identifier)"""

    def __init__(self, store: Store, aliases: MentionAliases | None = None):
        self.store = store
        self.aliases = aliases or MentionAliases()

    def record_mentions(self, post_id: str, text: str) -> int:
        """Index every identifier referenced in ``text``. Returns how many rows were new."""
        inserted = 0
        now = utcnow()
        for mention in extract(text, self.aliases):
            result = self.store.execute_write(
                'INSERT INTO mentions (post_id, mentioned_user, position, created_at) '
                'VALUES (:post_id, :mentioned_user, :position, :now) ON CONFLICT DO NOTHING',
                {'post_id': post_id, 'mentioned_user': mention.referenced_id, 'position': mention.offset,
                 'now': now})
            inserted += result.affected_rows
        return inserted

    def rewrite_references(self, old_name: str, new_name: str) -> int:
        """Point every record for ``old_name`` at ``new_name``.

        A post that already references ``new_name`` keeps that row and loses the old one, so the
        rename never produces two rows for the same post and identifier.
        """
        if old_name == new_name:
            return 0
        params = {'old': old_name, 'new': new_name}
        with self.store.transaction():
            self.store.execute_write(
                'DELETE FROM mentions WHERE mentioned_user = :old '
                'AND post_id IN (SELECT m.post_id FROM mentions m WHERE m.mentioned_user = :new)', params)
            renamed = self.store.execute_write(
                'UPDATE mentions SET mentioned_user = :new WHERE mentioned_user = :old', params)
        return renamed.affected_rows

    def migrate_backfill(self, all_posts: Iterable[Mapping] | None = None) -> int:
        """Index posts written before the index existed. Does nothing once the index has rows."""
        existing = self.count()
        if existing > 0:
            logger.info(f'Mention index already has {existing} rows, skipping backfill')
            return 0

        if all_posts is None:
            all_posts = self.store.fetch_many('SELECT id, content FROM posts WHERE is_deleted = false '
                                              'ORDER BY created_at')
        inserted = 0
        posts_seen = 0
        with self.store.transaction():
            for post in all_posts:
                posts_seen += 1
                inserted += self.record_mentions(post['id'], post['content'])
        logger.info(f'Mention backfill indexed {inserted} mentions across {posts_seen} posts')
        return inserted

    def mentions_for(self, post_id: str) -> list[dict]:
        return self.store.fetch_many('SELECT mentioned_user, position FROM mentions WHERE post_id = :post_id '
                                     'ORDER BY position', {'post_id': post_id})

    def posts_mentioning(self, name: str) -> list[str]:
        rows = self.store.fetch_many('SELECT post_id FROM mentions WHERE mentioned_user = :name', {'name': name})
        return [row['post_id'] for row in rows]

    def count(self) -> int:
        return self.store.fetch_value('SELECT COUNT(*) FROM mentions', default=0)
