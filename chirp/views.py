from __future__ import annotations

from chirp.utils import format_timestamp


def post_view(row: dict) -> dict:
    view = {
        'id': row['id'],
        'author_id': row['author_id'],
        'author_nickname': row['author_nickname'],
        'content': row['content'],
        'parent_id': row['parent_id'],
        'created_at': format_timestamp(row['created_at']),
        'updated_at': format_timestamp(row.get('updated_at')),
        'is_deleted': bool(row.get('is_deleted')),
        'likes_count': int(row.get('likes_count') or 0),
        'reshares_count': int(row.get('reshares_count') or 0),
        'replies_count': int(row.get('replies_count') or 0),
    }
    if 'type' in row:
        view['type'] = row['type']
    if 'parent_content' in row:
        view['parent_content'] = row['parent_content']
        view['parent_author'] = row['parent_author']
    return view


def user_view(row: dict) -> dict:
    return {
        'id': row['id'],
        'nickname': row['nickname'],
        'is_active': bool(row['is_active']),
        'created_at': format_timestamp(row['created_at']),
        'last_active': format_timestamp(row.get('last_active')),
    }


def hashtag_view(row: dict) -> dict:
    return {
        'tag': row['tag'],
        'usage_count': int(row['usage_count']),
        'first_seen': format_timestamp(row['created_at']),
        'last_seen': format_timestamp(row['updated_at']),
    }
