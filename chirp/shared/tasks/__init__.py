from flask import current_app


def task_selector(task_key, send_async=True, **kwargs):
    # Import tasks here to avoid circular imports
    from chirp.shared.tasks.maintenance import cleanup_unused_hashtags, backfill_mentions

    tasks = {
        'cleanup_unused_hashtags': cleanup_unused_hashtags,
        'backfill_mentions': backfill_mentions,
    }

    if current_app.debug or current_app.testing:
        send_async = False

    if send_async:
        result = tasks[task_key].delay(**kwargs)
        current_app.logger.info(f'task_selector: Celery task {task_key} dispatched with id={result.id}')
        return None
    else:
        current_app.logger.info(f'task_selector: executing {task_key} synchronously with kwargs: {kwargs}')
        return tasks[task_key](**kwargs)
