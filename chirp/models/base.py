"""Base classes and mixins for Chirp models"""
from __future__ import annotations
from typing import Optional
from datetime import datetime
from sqlalchemy import Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from chirp.utils import utcnow


type UserId = str
type PostId = str
type HashtagId = int


class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        default=utcnow,
        onupdate=utcnow
    )


class SoftDeleteMixin:
    """Mixin for soft deletion"""
    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
