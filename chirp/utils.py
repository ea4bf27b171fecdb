from __future__ import annotations

from datetime import datetime
from urllib.parse import urlparse, parse_qs
from zoneinfo import ZoneInfo

import redis
from flask import current_app

from chirp.constants import DATETIME_MS_FORMAT


def utcnow(naive=True):
    if naive:
        return datetime.now(ZoneInfo('UTC')).replace(tzinfo=None)
    return datetime.now(ZoneInfo('UTC'))


def parse_timestamp(value) -> datetime | None:
    # SQLite hands timestamps back as text from raw queries, PostgreSQL as datetime
    if value is None or isinstance(value, datetime):
        return value
    value = str(value).replace('T', ' ')
    if value.endswith('Z'):
        value = value[:-1]
    return datetime.fromisoformat(value)


def format_timestamp(value) -> str | None:
    value = parse_timestamp(value)
    if value is None:
        return None
    return value.strftime(DATETIME_MS_FORMAT)


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user text only ever matches itself. Use with ESCAPE '\\'."""
    return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def shorten_string(input_str, max_length=50):
    if input_str:
        if len(input_str) <= max_length:
            return input_str
        else:
            return input_str[:max_length - 3] + '…'
    else:
        return ''


def get_store():
    return current_app.extensions['chirp_store']


def get_publisher():
    return current_app.extensions['chirp_publisher']


def get_redis_connection(connection_string=None) -> redis.Redis:
    if connection_string is None:
        connection_string = current_app.config['CACHE_REDIS_URL']
    if connection_string.startswith('unix://'):
        unix_socket_path, db, password = parse_redis_pipe_string(connection_string)
        return redis.Redis(unix_socket_path=unix_socket_path, db=db, password=password, decode_responses=True)
    else:
        host, port, db, password = parse_redis_socket_string(connection_string)
        return redis.Redis(host=host, port=port, db=db, password=password, decode_responses=True)


def parse_redis_pipe_string(connection_string: str):
    parsed_url = urlparse(connection_string)
    unix_socket_path = parsed_url.path
    query_params = parse_qs(parsed_url.query)

    # database number defaults to 0
    db = int(query_params.get('db', [0])[0])
    password = query_params.get('password', [None])[0]

    return unix_socket_path, db, password


def parse_redis_socket_string(connection_string: str):
    parsed_url = urlparse(connection_string)
    password = parsed_url.password
    host = parsed_url.hostname
    port = parsed_url.port or 6379
    db_num = int(parsed_url.path.lstrip('/') or 0)

    return host, port, db_num, password


def get_content():
    return current_app.extensions['chirp_content']


def get_mention_index():
    return current_app.extensions['chirp_mentions']


def get_propagator():
    return current_app.extensions['chirp_propagator']


def page_length(limit=None) -> int:
    if not limit or limit < 1:
        return current_app.config['PAGE_LENGTH']
    return min(int(limit), current_app.config['MAX_PAGE_LENGTH'])
