from __future__ import annotations

import json
import logging

import redis

from chirp.realtime.distributor import RealtimeDistributor, envelope
from chirp.utils import get_redis_connection

logger = logging.getLogger(__name__)


class EventPublisher:
    """Hands committed events to whatever fans them out. Never raises: delivery is best effort."""

    def publish(self, event: str, payload) -> None:
        raise NotImplementedError


class RedisEventPublisher(EventPublisher):
    """Publishes to the realtime server over Redis pub/sub"""

    def __init__(self, redis_client: redis.Redis, channel: str):
        self.redis_client = redis_client
        self.channel = channel

    def publish(self, event, payload):
        try:
            self.redis_client.publish(self.channel, json.dumps(envelope(event, payload), default=str))
        except redis.RedisError as e:
            logger.error(f'Could not publish {event} to {self.channel}: {e}', exc_info=True)


class LocalEventPublisher(EventPublisher):
    """Delivers straight into a distributor in the same process"""

    def __init__(self, distributor: RealtimeDistributor):
        self.distributor = distributor

    def publish(self, event, payload):
        self.distributor.publish(event, payload)


def create_publisher(config, distributor: RealtimeDistributor | None = None) -> EventPublisher:
    if config['REALTIME_PUBLISHER'] == 'local':
        return LocalEventPublisher(distributor or RealtimeDistributor())
    if config['REALTIME_PUBLISHER'] == 'redis':
        return RedisEventPublisher(get_redis_connection(config['CACHE_REDIS_URL']), config['REALTIME_CHANNEL'])
    raise ValueError(f'Unknown REALTIME_PUBLISHER {config["REALTIME_PUBLISHER"]!r}, expected redis or local')
