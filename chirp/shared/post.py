from datetime import timedelta

from flask import current_app

from chirp.constants import EVENT_NEW_POST, EVENT_NEW_REPLY, EVENT_ENGAGEMENT_UPDATE, EVENT_POST_DELETED, \
    ERR_POST_NOT_FOUND, ERR_USER_NOT_FOUND
from chirp.exceptions import AuthorizationError, DuplicatePostError, NotFoundError, ValidationError
from chirp.shared.user import register_user
from chirp.utils import get_content, get_mention_index, get_publisher, get_store, page_length, parse_timestamp, \
    shorten_string, utcnow
from chirp.validators import validate_user_id, validate_nickname, validate_post_text, validate_engagement_kind
from chirp.views import post_view


def create_post(author_id, display_name, text, parent_id=None) -> dict:
    """Validate, persist and announce a post, or a reply when parent_id is given.

    The post row, its hashtag links, its mention records and (for a first-time author) the user row are
    written in one transaction. The realtime event goes out only after that transaction committed.
    """
    author_id = validate_user_id(author_id)
    display_name = validate_nickname(display_name, current_app.config['NICKNAME_MAX_LENGTH'])
    text = validate_post_text(text, current_app.config['MAX_POST_LENGTH'])
    content = get_content()

    if parent_id is not None:
        parent = content.get_post(parent_id)
        if parent is None:
            raise NotFoundError('The post being replied to does not exist', code=ERR_POST_NOT_FOUND)

    reject_duplicate(author_id, text)

    with get_store().transaction():
        author = content.get_user(author_id)
        if author is None:
            author, _ = register_user(author_id, display_name)
        else:
            content.touch_user(author_id)
        post = content.create_post(author_id, author['nickname'], text, parent_id=parent_id)
        get_mention_index().record_mentions(post['id'], text)

    current_app.logger.info(f'{author["nickname"]} posted {post["id"]}: {shorten_string(text)}')

    view = post_view(post)
    if parent_id is None:
        get_publisher().publish(EVENT_NEW_POST, view)
    else:
        get_publisher().publish(EVENT_NEW_REPLY, {'post_id': parent_id, 'reply': view})
    return post


def reject_duplicate(author_id: str, text: str):
    """Identical text from the same author inside the duplicate window is refused"""
    window = current_app.config['DUPLICATE_POST_WINDOW_SECONDS']
    if not window or window <= 0:
        return
    cutoff = utcnow() - timedelta(seconds=window)
    for recent in get_content().recent_posts_by_author(author_id, current_app.config['DUPLICATE_POST_LOOKBACK']):
        if recent['content'] == text and parse_timestamp(recent['created_at']) >= cutoff:
            raise DuplicatePostError('The same content was posted moments ago')


def toggle_engagement(post_id, user_id, kind) -> dict:
    """Like or reshare, or undo it. Returns {'action': 'added' | 'removed', 'post': <post row>}."""
    user_id = validate_user_id(user_id)
    kind = validate_engagement_kind(kind)
    content = get_content()
    content.require_post(post_id)
    if content.get_user(user_id) is None:
        raise NotFoundError('User not found', code=ERR_USER_NOT_FOUND)

    action = content.toggle_engagement(post_id, user_id, kind)
    post = content.get_post(post_id)
    current_app.logger.info(f'{user_id} {action} {kind} on {post_id}')

    get_publisher().publish(EVENT_ENGAGEMENT_UPDATE, {
        'post_id': post_id,
        'user_id': user_id,
        'kind': kind,
        'action': action,
        'likes_count': int(post['likes_count']),
        'reshares_count': int(post['reshares_count']),
    })
    return {'action': action, 'post': post}


def delete_post(post_id, acting_user_id) -> dict:
    """Soft delete, only by the author"""
    acting_user_id = validate_user_id(acting_user_id)
    content = get_content()
    post = content.require_post(post_id)
    if post['author_id'] != acting_user_id:
        raise AuthorizationError('Only the author can delete a post')

    content.soft_delete_post(post_id)
    current_app.logger.info(f'{acting_user_id} deleted {post_id}')
    get_publisher().publish(EVENT_POST_DELETED, {'post_id': post_id, 'parent_id': post['parent_id']})
    return content.get_post(post_id, include_deleted=True)


def get_post(post_id) -> dict:
    return get_content().require_post(post_id)


def list_posts(page=1, limit=None, hashtag=None) -> list[dict]:
    limit = page_length(limit)
    page = max(int(page or 1), 1)
    return get_content().list_posts(limit, offset=(page - 1) * limit, hashtag=hashtag)


def list_replies(post_id, limit=None) -> list[dict]:
    content = get_content()
    # replies stay readable after their parent is deleted
    if content.get_post(post_id, include_deleted=True) is None:
        raise NotFoundError('Post not found', code=ERR_POST_NOT_FOUND)
    return content.list_replies(post_id, page_length(limit))


def list_user_posts(user_id, limit=None) -> list[dict]:
    return get_content().list_user_posts(validate_user_id(user_id), page_length(limit))


def list_user_replies(user_id, limit=None) -> list[dict]:
    return get_content().list_user_replies(validate_user_id(user_id), page_length(limit))


def list_mentions(user_ref, limit=None) -> list[dict]:
    """Posts mentioning a user and replies to their posts. ``user_ref`` is a user id or a nickname."""
    if not isinstance(user_ref, str) or not user_ref.strip():
        raise ValidationError('user is required')
    content = get_content()
    user = content.get_user(user_ref) or content.get_user_by_nickname(user_ref)
    if user is None:
        raise NotFoundError('User not found', code=ERR_USER_NOT_FOUND)
    return content.list_mentions_and_replies(user['nickname'], page_length(limit))
