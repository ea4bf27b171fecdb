from __future__ import annotations

import asyncio
import enum
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from chirp.utils import utcnow

logger = logging.getLogger(__name__)


class SessionState(enum.Enum):
    CONNECTED = 'connected'
    AUTHENTICATED = 'authenticated'
    DISCONNECTED = 'disconnected'


@dataclass(eq=False)
class Session:
    """One live connection. Outgoing messages wait in ``queue`` until the connection's writer sends them."""
    handle: str = field(default_factory=lambda: uuid4().hex)
    connected_at: datetime = field(default_factory=utcnow)
    state: SessionState = SessionState.CONNECTED
    user_id: str | None = None
    display_name: str | None = None
    queue: asyncio.Queue = field(default_factory=lambda: asyncio.Queue(maxsize=1000))

    @property
    def is_authenticated(self) -> bool:
        return self.state is SessionState.AUTHENTICATED

    def deliver(self, message: dict) -> bool:
        if self.state is SessionState.DISCONNECTED:
            return False
        try:
            self.queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(f'Dropping {message.get("event")} for session {self.handle}, its queue is full')
            return False
        return True


class SessionRegistry:
    """Live sessions by handle. A session leaves the registry when it disconnects."""

    def __init__(self):
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def add(self, session: Session) -> Session:
        with self._lock:
            self._sessions[session.handle] = session
        return session

    def get(self, handle: str) -> Session | None:
        return self._sessions.get(handle)

    def remove(self, handle: str) -> Session | None:
        with self._lock:
            return self._sessions.pop(handle, None)

    def all(self) -> list[Session]:
        # a copy, so a disconnect during a broadcast does not disturb the iteration
        with self._lock:
            return list(self._sessions.values())

    def authenticated(self) -> list[Session]:
        return [session for session in self.all() if session.is_authenticated]

    def authenticated_count(self) -> int:
        return len(self.authenticated())

    def __len__(self):
        return len(self._sessions)

    def __contains__(self, handle):
        return handle in self._sessions
