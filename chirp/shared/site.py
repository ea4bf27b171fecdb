from flask import current_app

from chirp.exceptions import ValidationError
from chirp.utils import get_content, page_length


def site_stats() -> dict:
    return get_content().stats(trending_length=5)


def search_hashtag(tag, limit=None) -> list[dict]:
    if not isinstance(tag, str) or not tag.strip().lstrip('#'):
        raise ValidationError('tag is required')
    return get_content().search_hashtag(tag, page_length(limit))


def trending_hashtags(limit=None) -> list[dict]:
    limit = min(int(limit), current_app.config['TRENDING_LENGTH']) if limit else current_app.config['TRENDING_LENGTH']
    return get_content().trending_hashtags(limit)
