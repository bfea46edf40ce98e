"""
Scheduled daily refresh.

Generates the day's DailyTasks for every in-progress challenge and then
recomputes progress, closing challenges whose end date has arrived.
Both steps are idempotent, so overlapping or repeated runs are harmless.
"""

from datetime import date, timedelta
from typing import Dict, Optional
from celery import Task
from sqlalchemy.orm import Session
from ultimate.core.database import get_db_sync
from ultimate.core.exceptions import PersistenceError
from ultimate.tasks import celery_app
from ultimate.services.progress_calculator import refresh_active_challenges
from ultimate.services.task_generator import generate_for_range
import logging

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.refresh_daily_tasks", bind=True, max_retries=3)
def refresh_daily_tasks_task(self: Task, target_date: Optional[str] = None, backfill_days: int = 0) -> Dict:
    """
    Generate DailyTasks and refresh progress.

    Args:
        target_date: ISO date to generate for (default today)
        backfill_days: also generate this many days before target_date
    """
    day = date.fromisoformat(target_date) if target_date else date.today()
    db: Session = get_db_sync()

    try:
        results = generate_for_range(db, day - timedelta(days=max(0, backfill_days)), day)
        progress = refresh_active_challenges(db, today=day)

        summary = {
            "status": "success",
            "date": day.isoformat(),
            "created": sum(r.created_count for r in results),
            "refreshed": len(progress),
            "closed": sum(1 for p in progress if p.status_changed),
        }
        logger.info(f"Daily refresh complete: {summary}", extra={"extra_fields": summary})
        return summary
    except PersistenceError as e:
        logger.warning(f"Daily refresh for {day.isoformat()} failed, will retry: {e.detail}")
        raise self.retry(exc=e, countdown=60)
    finally:
        db.close()
