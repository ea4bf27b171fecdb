import os

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, '.env'))


def _env_list(name, default):
    value = os.environ.get(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(',') if item.strip()]


class Config(object):
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guesss'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
                              'sqlite:///' + os.path.join(basedir, 'app.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = False     # set to true to see SQL in console

    # 'remote' uses the Flask-SQLAlchemy session bound to DATABASE_URL, 'local' a standalone SQLite file
    CONTENT_STORE_BACKEND = os.environ.get('CONTENT_STORE_BACKEND') or 'remote'
    LOCAL_DATABASE_PATH = os.environ.get('LOCAL_DATABASE_PATH') or os.path.join(basedir, 'database', 'chirp.db')

    DB_POOL_SIZE = int(os.environ.get('DB_POOL_SIZE') or 10)
    DB_MAX_OVERFLOW = int(os.environ.get('DB_MAX_OVERFLOW') or 30)

    CACHE_REDIS_URL = os.environ.get('CACHE_REDIS_URL') or 'redis://localhost:6379/1'
    CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL') or 'redis://localhost:6379/0'
    CELERY_RESULT_BACKEND = os.environ.get('RESULT_BACKEND') or 'redis://localhost:6379/0'

    # 'redis' publishes to the realtime server over pub/sub, 'local' delivers to an in-process distributor
    REALTIME_PUBLISHER = os.environ.get('REALTIME_PUBLISHER') or 'redis'
    REALTIME_CHANNEL = os.environ.get('REALTIME_CHANNEL') or 'realtime:authenticated'

    MAX_POST_LENGTH = int(os.environ.get('MAX_POST_LENGTH') or 280)
    NICKNAME_MAX_LENGTH = int(os.environ.get('NICKNAME_MAX_LENGTH') or 20)

    MENTION_ALIASES = _env_list('MENTION_ALIASES', ['山田', '矢間田', 'ヤマダ', 'やまだ'])
    MENTION_HONORIFICS = _env_list('MENTION_HONORIFICS', ['さん'])

    # identical content from the same author inside this window is refused. 0 turns the check off
    DUPLICATE_POST_WINDOW_SECONDS = int(os.environ.get('DUPLICATE_POST_WINDOW_SECONDS') or 60)
    DUPLICATE_POST_LOOKBACK = int(os.environ.get('DUPLICATE_POST_LOOKBACK') or 5)

    PROPAGATION_ATOMIC = os.environ.get('PROPAGATION_ATOMIC', '1') in ('1', 'true', 'True')
    # renames of one user are serialized across processes by a redis lock
    RENAME_LOCK_TIMEOUT = int(os.environ.get('RENAME_LOCK_TIMEOUT') or 60)
    RENAME_LOCK_WAIT = int(os.environ.get('RENAME_LOCK_WAIT') or 6)
    BACKFILL_ON_STARTUP = os.environ.get('BACKFILL_ON_STARTUP', '1') in ('1', 'true', 'True')

    PAGE_LENGTH = int(os.environ.get('PAGE_LENGTH') or 50)
    MAX_PAGE_LENGTH = int(os.environ.get('MAX_PAGE_LENGTH') or 100)
    TRENDING_LENGTH = int(os.environ.get('TRENDING_LENGTH') or 20)

    SENTRY_DSN = os.environ.get('SENTRY_DSN') or None
    SERVE_API_DOCS = os.environ.get('SERVE_API_DOCS') or False
    ALLOWED_ORIGINS = _env_list('ALLOWED_ORIGINS', ['*'])
    LOG_DIR = os.environ.get('LOG_DIR') or 'logs'
