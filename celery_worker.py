#!/usr/bin/env python
from chirp import celery, create_app, db
from celery.signals import worker_process_init, task_prerun, task_postrun


app = create_app()
app.app_context().push()

from chirp.shared.tasks import maintenance


# Dispose of connection pool inherited from parent process after fork
@worker_process_init.connect
def init_celery_worker(**kwargs):
    """
    Called once when each Celery worker process starts (after fork).
    Disposes of the connection pool inherited from the parent process, so no two processes share
    the same PostgreSQL connection file descriptors.
    """
    # close=False prevents closing parent process connections
    db.engine.dispose(close=False)


# Ensure fresh database session for each Celery task
@task_prerun.connect
def celery_task_prerun(*args, **kwargs):
    """Remove any existing database session before task starts to prevent stale connections"""
    db.session.remove()


@task_postrun.connect
def celery_task_postrun(*args, **kwargs):
    """Clean up database session after task completes"""
    db.session.remove()
