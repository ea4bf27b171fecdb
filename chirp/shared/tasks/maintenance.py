from flask import current_app

from chirp import celery
from chirp.utils import get_content, get_mention_index


@celery.task
def cleanup_unused_hashtags():
    """Remove hashtags that no live post uses any more"""
    deleted = get_content().cleanup_unused_hashtags()
    current_app.logger.info(f'cleanup_unused_hashtags removed {deleted} hashtags')
    return deleted


@celery.task
def backfill_mentions():
    """Index mentions of posts written before the mention index existed"""
    inserted = get_mention_index().migrate_backfill()
    current_app.logger.info(f'backfill_mentions indexed {inserted} mentions')
    return inserted
