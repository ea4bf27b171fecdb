"""Chirp models package

- base.py: mixins and id type aliases
- user.py: users and their nicknames
- content.py: posts, replies, engagements, hashtags and the mention index
"""

from chirp.models.base import TimestampMixin, SoftDeleteMixin

from chirp.models.user import User

from chirp.models.content import Post, Engagement, Hashtag, PostHashtag, Mention

__all__ = [
    'TimestampMixin', 'SoftDeleteMixin', 'User', 'Post', 'Engagement', 'Hashtag', 'PostHashtag', 'Mention',
]
