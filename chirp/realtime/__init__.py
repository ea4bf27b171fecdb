from chirp.realtime.session import Session, SessionRegistry, SessionState
from chirp.realtime.distributor import RealtimeDistributor, envelope
from chirp.realtime.publisher import EventPublisher, RedisEventPublisher, LocalEventPublisher, create_publisher

__all__ = ['Session', 'SessionRegistry', 'SessionState', 'RealtimeDistributor', 'envelope', 'EventPublisher',
           'RedisEventPublisher', 'LocalEventPublisher', 'create_publisher']
