import re

from chirp.constants import ENGAGEMENT_KINDS, NICKNAME_LIMIT, POST_CONTENT_LIMIT
from chirp.exceptions import ValidationError

NICKNAME_PATTERN = re.compile('^[a-zA-Z0-9_\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF\u3400-\u4DBF]+$')


def required_string(value, field: str, max_length: int | None = None) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f'{field} is required')
    value = value.strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f'{field} must be at most {max_length} characters')
    return value


def validate_user_id(user_id) -> str:
    return required_string(user_id, 'user_id', max_length=128)


def validate_nickname(nickname, max_length: int = NICKNAME_LIMIT) -> str:
    nickname = required_string(nickname, 'nickname', max_length=min(max_length, NICKNAME_LIMIT))
    if not NICKNAME_PATTERN.match(nickname):
        raise ValidationError('nickname may only contain letters, digits, underscores, kana and kanji')
    return nickname


def validate_post_text(text, max_length: int = POST_CONTENT_LIMIT) -> str:
    """Trimmed post text, 1 to max_length code points"""
    if not isinstance(text, str):
        raise ValidationError('content is required')
    text = text.strip()
    if not text:
        raise ValidationError('content is required')
    limit = min(max_length, POST_CONTENT_LIMIT)
    if len(text) > limit:
        raise ValidationError(f'content must be at most {limit} characters')
    return text


def validate_engagement_kind(kind) -> str:
    if kind not in ENGAGEMENT_KINDS:
        raise ValidationError(f'kind must be one of {", ".join(ENGAGEMENT_KINDS)}')
    return kind
