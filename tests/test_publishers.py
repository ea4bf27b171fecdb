"""
Tests for handing events to the realtime layer
"""
import json
from unittest.mock import MagicMock, patch

import pytest
import redis

from chirp.constants import EVENT_NEW_POST
from chirp.realtime import RealtimeDistributor, RedisEventPublisher, LocalEventPublisher, create_publisher


class TestRedisEventPublisher:
    def test_publishes_envelope_on_channel(self):
        client = MagicMock()
        RedisEventPublisher(client, 'realtime:test').publish(EVENT_NEW_POST, {'post_id': 'p1'})

        channel, body = client.publish.call_args[0]
        assert channel == 'realtime:test'
        assert json.loads(body) == {'event': EVENT_NEW_POST, 'data': {'post_id': 'p1'}}

    def test_redis_failure_is_logged_not_raised(self, caplog):
        client = MagicMock()
        client.publish.side_effect = redis.ConnectionError('down')
        RedisEventPublisher(client, 'realtime:test').publish(EVENT_NEW_POST, {'post_id': 'p1'})
        assert 'Could not publish newPost' in caplog.text


class TestLocalEventPublisher:
    def test_delivers_to_distributor(self, drain):
        distributor = RealtimeDistributor()
        session = distributor.connect()
        distributor.authenticate(session.handle, 'u1', 'alice')
        drain(session)

        LocalEventPublisher(distributor).publish(EVENT_NEW_POST, {'post_id': 'p1'})
        assert drain(session) == [{'event': EVENT_NEW_POST, 'data': {'post_id': 'p1'}}]


class TestCreatePublisher:
    def test_local(self):
        distributor = RealtimeDistributor()
        publisher = create_publisher({'REALTIME_PUBLISHER': 'local'}, distributor)
        assert isinstance(publisher, LocalEventPublisher)
        assert publisher.distributor is distributor

    def test_redis(self):
        config = {'REALTIME_PUBLISHER': 'redis', 'CACHE_REDIS_URL': 'redis://localhost:6379/1',
                  'REALTIME_CHANNEL': 'realtime:authenticated'}
        with patch('chirp.realtime.publisher.get_redis_connection') as get_connection:
            publisher = create_publisher(config)
        assert isinstance(publisher, RedisEventPublisher)
        get_connection.assert_called_once_with('redis://localhost:6379/1')
        assert publisher.channel == 'realtime:authenticated'

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_publisher({'REALTIME_PUBLISHER': 'carrier-pigeon'})
