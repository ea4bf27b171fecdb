# if commands in this file are not working (e.g. 'flask init-db') make sure you set the FLASK_APP environment variable.
# e.g. export FLASK_APP=chirp_web.py
import click
from flask import current_app

from chirp.shared.tasks import task_selector
from chirp.utils import get_store, get_content


def register(app):
    @app.cli.command("init-db")
    def init_db():
        """Create any missing tables."""
        store = get_store()
        store.create_schema()
        print(f'Schema ready on the {store.name} backend')

    @app.cli.command("backfill-mentions")
    @click.option('--async', 'send_async', is_flag=True, help='Queue the backfill on celery instead of running it here.')
    def backfill_mentions(send_async):
        """Index mentions in posts written before the mention index existed."""
        inserted = task_selector('backfill_mentions', send_async=send_async)
        if inserted is not None:
            print(f'Indexed {inserted} mentions')
        else:
            print('Backfill queued')

    @app.cli.command("cleanup-hashtags")
    def cleanup_hashtags():
        """Delete hashtags no live post uses."""
        deleted = task_selector('cleanup_unused_hashtags', send_async=False)
        print(f'Removed {deleted} unused hashtags')

    @app.cli.command("stats")
    def stats():
        """Print site totals."""
        totals = get_content().stats(trending_length=current_app.config['TRENDING_LENGTH'])
        print(f"Users: {totals['users']}")
        print(f"Posts: {totals['posts']} ({totals['posts_today']} today)")
        for hashtag in totals['popular_hashtags']:
            print(f"  {hashtag['tag']}: {hashtag['usage_count']}")
