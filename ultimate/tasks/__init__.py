"""
Celery tasks for background processing.

Tasks are defined here and imported by both the API (to enqueue) and
the worker (to execute).
"""
from celery import Celery, signals
from ultimate.core.config import settings
from ultimate.core.logging import setup_logging
from ultimate.celerybeat_schedule import beat_schedule
from ultimate.services.reminders import LoggingReminderScheduler, ReminderHooks

# Create Celery app instance
celery_app = Celery(
    "ultimate",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=10 * 60,  # 10 minutes max per task
    task_soft_time_limit=8 * 60,
    beat_schedule=beat_schedule,
)

reminder_hooks = ReminderHooks(LoggingReminderScheduler())


@signals.setup_logging.connect
def configure_worker_logging(**kwargs):
    """Worker and beat log through the same handlers as the API."""
    setup_logging()


@signals.worker_init.connect
def register_worker_hooks(**kwargs):
    """Schedule reminders for tasks the daily refresh generates."""
    reminder_hooks.register()


@signals.worker_shutdown.connect
def unregister_worker_hooks(**kwargs):
    reminder_hooks.unregister()


# Import tasks to register them
from . import daily_refresh_tasks  # noqa: E402

__all__ = ["celery_app", "reminder_hooks"]
