# celery_worker.py
from app import create_app
from celery_config import create_celery_app
from logging_config import get_logger

logger = get_logger(__name__)

# Create Celery instance with shared configuration
celery = create_celery_app(__name__)

# Create the Flask app instance. This is still needed to provide context for tasks when they run.
flask_app = create_app()


# Set the custom Task class to ensure tasks run within the Flask app context.
class ContextTask(celery.Task):
    def __call__(self, *args, **kwargs):
        with flask_app.app_context():
            return self.run(*args, **kwargs)


celery.Task = ContextTask

# --- Celery Beat Schedule ---
from celery.schedules import crontab

celery.conf.beat_schedule = {
    'nightly-rentcast-sync': {
        'task': 'tasks.listing_import_tasks.sync_rentcast_listings',
        # Executes daily at 3 AM UTC for the configured default market
        'schedule': crontab(hour=3, minute=0),
        'kwargs': {
            'city': flask_app.config.get('RENTCAST_DEFAULT_CITY'),
            'state': flask_app.config.get('RENTCAST_DEFAULT_STATE'),
            'property_type': flask_app.config.get('RENTCAST_DEFAULT_PROPERTY_TYPE'),
        },
    },
}
celery.conf.timezone = 'UTC'

# Import tasks to ensure they're registered with Celery
# This must be done after the Flask app is created
with flask_app.app_context():
    import tasks.listing_import_tasks  # noqa: F401
    logger.info("Registered tasks", tasks=sorted(t for t in celery.tasks.keys() if t.startswith('tasks.')))
