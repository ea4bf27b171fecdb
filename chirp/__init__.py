# This file is part of Chirp, which is licensed under the GNU Affero General Public License (AGPL) version 3.0.
# You should have received a copy of the GPL along with this program. If not, see <http://www.gnu.org/licenses/>.

import logging
from logging.handlers import RotatingFileHandler
import os
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_smorest import Api
from werkzeug.middleware.proxy_fix import ProxyFix
from celery import Celery
from celery.schedules import crontab

from config import Config


db = SQLAlchemy(session_options={"autoflush": False})
celery = Celery(__name__, broker=Config.CELERY_BROKER_URL)
rest_api = Api()
redis_client = None  # Will be initialized in create_app()


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    if app.config['SENTRY_DSN']:
        import sentry_sdk
        sentry_sdk.init(
            dsn=app.config["SENTRY_DSN"],
            enable_tracing=False,
        )

    from chirp.orjson_provider import ORJSONProvider
    app.json = ORJSONProvider(app)

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1)

    if app.config['SQLALCHEMY_DATABASE_URI'].startswith('postgresql'):
        app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {'pool_size': app.config['DB_POOL_SIZE'],
                                                            'max_overflow': app.config['DB_MAX_OVERFLOW'],
                                                            'pool_recycle': 3600})

    app.config["API_TITLE"] = "Chirp API"
    app.config["API_VERSION"] = "v1"
    app.config["OPENAPI_VERSION"] = "3.1.1"
    if app.config["SERVE_API_DOCS"]:
        app.config["OPENAPI_URL_PREFIX"] = "/api/v1"
        app.config["OPENAPI_JSON_PATH"] = "/swagger.json"
        app.config["OPENAPI_SWAGGER_UI_PATH"] = "/swagger"
        app.config["OPENAPI_SWAGGER_UI_URL"] = "https://cdn.jsdelivr.net/npm/swagger-ui-dist/"
    rest_api.init_app(app)
    rest_api.DEFAULT_ERROR_RESPONSE_NAME = None  # Don't include default errors, define them ourselves

    db.init_app(app)
    celery.conf.update(app.config)
    celery.conf.update(CELERY_ROUTES={
        'chirp.shared.tasks.maintenance.*': {'queue': 'background'},
    })
    celery.conf.update(
        CELERY_TIMEZONE='UTC',
        CELERY_ENABLE_UTC=True,
        CELERYBEAT_SCHEDULE={
            'periodic_cleanup_unused_hashtags': {
                'task': 'chirp.shared.tasks.maintenance.cleanup_unused_hashtags',
                'schedule': crontab(minute=0, hour=3),  # daily at 3am
            },
        }
    )

    # content store, mention index, propagator and realtime publisher, chosen once here
    from chirp.content import ContentStore
    from chirp.mentions import MentionAliases, MentionIndex, NicknameChangePropagator
    from chirp.realtime import RealtimeDistributor, create_publisher
    from chirp.store import create_store
    from chirp.utils import get_redis_connection

    # Initialize redis_client
    global redis_client
    redis_client = get_redis_connection(app.config['CACHE_REDIS_URL'])

    store = create_store(app.config)
    aliases = MentionAliases.from_config(app.config)
    index = MentionIndex(store, aliases)
    app.extensions['chirp_store'] = store
    app.extensions['chirp_content'] = ContentStore(store)
    app.extensions['chirp_mentions'] = index
    app.extensions['chirp_propagator'] = NicknameChangePropagator(store, index, redis_client,
                                                                  atomic=app.config['PROPAGATION_ATOMIC'],
                                                                  lock_timeout=app.config['RENAME_LOCK_TIMEOUT'],
                                                                  lock_wait=app.config['RENAME_LOCK_WAIT'])
    if app.config['REALTIME_PUBLISHER'] == 'local':
        app.extensions['chirp_distributor'] = RealtimeDistributor()
    app.extensions['chirp_publisher'] = create_publisher(app.config, app.extensions.get('chirp_distributor'))

    # API Namespaces
    from chirp.api import user_bp, post_bp, hashtag_bp, site_bp
    rest_api.register_blueprint(user_bp)
    rest_api.register_blueprint(post_bp)
    rest_api.register_blueprint(hashtag_bp)
    rest_api.register_blueprint(site_bp)

    # log rotation
    log_dir = app.config['LOG_DIR']
    if not os.path.exists(log_dir):
        os.mkdir(log_dir)
    file_handler = RotatingFileHandler(os.path.join(log_dir, 'chirp.log'),
                                       maxBytes=1002400, backupCount=15)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s %(levelname)s: %(message)s '
        '[in %(pathname)s:%(lineno)d]'))
    file_handler.setLevel(logging.INFO)
    app.logger.addHandler(file_handler)

    app.logger.setLevel(logging.INFO)  # app.logger is the 'chirp' logger, module loggers propagate to it

    with app.app_context():
        store.create_schema()
        if app.config['BACKFILL_ON_STARTUP']:
            index.migrate_backfill()

    app.logger.info('Started!') # let's go!

    return app


from chirp import models
