"""
Celery Beat Schedule Configuration

Defines periodic tasks that run on a schedule.
"""

from celery.schedules import crontab

from ultimate.core.config import settings

beat_schedule = {
    # New day: create its DailyTasks, then close challenges whose end date arrived
    'refresh-daily-tasks': {
        'task': 'tasks.refresh_daily_tasks',
        'schedule': crontab(hour=settings.DAILY_REFRESH_HOUR, minute=5),
    },
    # Catch up if the daily run was missed (worker down, app closed)
    'refresh-daily-tasks-catchup': {
        'task': 'tasks.refresh_daily_tasks',
        'schedule': crontab(minute=0, hour='*/6'),
    },
}
