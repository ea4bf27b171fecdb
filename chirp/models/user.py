from __future__ import annotations
from typing import Optional
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from chirp import db
from chirp.constants import NICKNAME_LIMIT
from chirp.models.base import TimestampMixin, UserId
from chirp.utils import utcnow


class User(TimestampMixin, db.Model):
    """A device-identified user. The id never changes, the nickname may."""
    __tablename__ = 'users'
    __table_args__ = (
        # only one active user may hold a nickname at a time, enforced by the database so
        # concurrent claims of the same name cannot both succeed
        Index('uq_users_active_nickname', 'nickname', unique=True,
              sqlite_where=text('is_active = 1'), postgresql_where=text('is_active = true')),
    )

    id: Mapped[UserId] = mapped_column(String(128), primary_key=True)
    nickname: Mapped[str] = mapped_column(String(NICKNAME_LIMIT * 4), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_active: Mapped[Optional[datetime]] = mapped_column(DateTime, default=utcnow)

    def __repr__(self):
        return f'<User {self.id} {self.nickname}>'
