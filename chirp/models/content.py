from __future__ import annotations
from typing import Optional
from datetime import datetime
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from chirp import db
from chirp.constants import POST_CONTENT_LIMIT
from chirp.models.base import TimestampMixin, SoftDeleteMixin, UserId, PostId, HashtagId
from chirp.utils import utcnow


class Post(TimestampMixin, SoftDeleteMixin, db.Model):
    """A post or, when parent_id is set, a reply to one"""
    __tablename__ = 'posts'
    __table_args__ = (
        CheckConstraint(f'length(content) >= 1 AND length(content) <= {POST_CONTENT_LIMIT}',
                        name='ck_posts_content_length'),
    )

    id: Mapped[PostId] = mapped_column(String(36), primary_key=True)
    author_id: Mapped[UserId] = mapped_column(String(128), ForeignKey('users.id'), nullable=False, index=True)
    author_nickname: Mapped[str] = mapped_column(String(80), nullable=False)   # denormalized, rewritten on rename
    content: Mapped[str] = mapped_column(Text, nullable=False)
    parent_id: Mapped[Optional[PostId]] = mapped_column(String(36), ForeignKey('posts.id'), index=True)

    def __repr__(self):
        return f'<Post {self.id}>'


class Engagement(db.Model):
    """A like or reshare. At most one of each kind per user and post."""
    __tablename__ = 'engagements'
    __table_args__ = (
        UniqueConstraint('post_id', 'user_id', 'kind', name='uq_engagements_post_user_kind'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    post_id: Mapped[PostId] = mapped_column(String(36), ForeignKey('posts.id'), nullable=False, index=True)
    user_id: Mapped[UserId] = mapped_column(String(128), nullable=False, index=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)


class Hashtag(TimestampMixin, db.Model):
    __tablename__ = 'hashtags'

    id: Mapped[HashtagId] = mapped_column(Integer, primary_key=True)
    tag: Mapped[str] = mapped_column(String(POST_CONTENT_LIMIT * 4), nullable=False, unique=True)
    usage_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False, index=True)

    def __repr__(self):
        return f'<Hashtag {self.tag}>'


class PostHashtag(db.Model):
    __tablename__ = 'post_hashtags'

    post_id: Mapped[PostId] = mapped_column(String(36), ForeignKey('posts.id'), primary_key=True)
    hashtag_id: Mapped[HashtagId] = mapped_column(Integer, ForeignKey('hashtags.id'), primary_key=True, index=True)


class Mention(db.Model):
    """One referenced identifier per post, at the offset of its first occurrence"""
    __tablename__ = 'mentions'
    __table_args__ = (
        UniqueConstraint('post_id', 'mentioned_user', name='uq_mentions_post_user'),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    post_id: Mapped[PostId] = mapped_column(String(36), ForeignKey('posts.id'), nullable=False, index=True)
    mentioned_user: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
