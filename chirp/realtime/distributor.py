from __future__ import annotations

import asyncio
import logging

from chirp.constants import EVENT_MEMBER_COUNT, EVENT_AUTHENTICATED, ERR_ALREADY_AUTHENTICATED
from chirp.exceptions import ValidationError, NotFoundError, AuthorizationError
from chirp.realtime.session import Session, SessionRegistry, SessionState

logger = logging.getLogger(__name__)


def envelope(event: str, payload) -> dict:
    return {'event': event, 'data': payload}


class RealtimeDistributor:
    """Fans events out to every authenticated live session.

    Delivery is at most once per session and never replayed. Each session has its own FIFO queue and
    a broadcast enqueues on all of them before returning, so events from one producer arrive in the
    order they were broadcast.
    """

    def __init__(self, queue_size: int = 1000):
        self.registry = SessionRegistry()
        self.queue_size = queue_size
        self._loop: asyncio.AbstractEventLoop | None = None

    # Lifecycle

    def start(self, loop: asyncio.AbstractEventLoop | None = None):
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        self._loop = loop
        logger.info('Realtime distributor started')

    def stop(self):
        for session in self.registry.all():
            session.state = SessionState.DISCONNECTED
            self.registry.remove(session.handle)
        self._loop = None
        logger.info('Realtime distributor stopped')

    # Sessions

    def connect(self) -> Session:
        session = Session(queue=asyncio.Queue(maxsize=self.queue_size))
        self.registry.add(session)
        logger.debug(f'Session {session.handle} connected')
        return session

    def authenticate(self, handle: str, user_id: str, display_name: str) -> Session:
        if not user_id or not display_name:
            raise ValidationError('user_id and display_name are both required')
        session = self.registry.get(handle)
        if session is None or session.state is SessionState.DISCONNECTED:
            raise NotFoundError('Unknown or closed session')
        if session.is_authenticated and session.user_id != user_id:
            raise AuthorizationError('This connection is already authenticated as someone else',
                                     code=ERR_ALREADY_AUTHENTICATED)

        session.user_id = user_id
        session.display_name = display_name
        session.state = SessionState.AUTHENTICATED
        logger.info(f'{display_name} ({user_id}) joined, session {handle}')

        session.deliver(envelope(EVENT_AUTHENTICATED, {'user_id': user_id, 'display_name': display_name}))
        self.send_member_count()
        return session

    def disconnect(self, handle: str) -> bool:
        session = self.registry.remove(handle)
        if session is None:
            return False
        was_authenticated = session.is_authenticated
        session.state = SessionState.DISCONNECTED
        if was_authenticated:
            logger.info(f'{session.display_name} ({session.user_id}) left, session {handle}')
        self.send_member_count()
        return True

    def member_count(self) -> int:
        return self.registry.authenticated_count()

    def send_member_count(self) -> int:
        message = envelope(EVENT_MEMBER_COUNT, {'count': self.member_count()})
        return sum(1 for session in self.registry.all() if session.deliver(message))

    # Fan-out

    def broadcast(self, event: str, payload) -> int:
        """Queue ``event`` on every authenticated session, the originator included. Returns the delivery count."""
        message = envelope(event, payload)
        delivered = 0
        for session in self.registry.authenticated():
            if session.deliver(message):
                delivered += 1
        logger.debug(f'{event} delivered to {delivered} sessions')
        return delivered

    def publish(self, event: str, payload) -> int | None:
        """Broadcast from any thread. From outside the distributor's loop the broadcast is scheduled there."""
        loop = self._loop
        if loop is not None and loop.is_running():
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is not loop:
                loop.call_soon_threadsafe(self.broadcast, event, payload)
                return None
        return self.broadcast(event, payload)
