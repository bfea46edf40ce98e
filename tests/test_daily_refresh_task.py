"""
Tests for the scheduled daily refresh task.

The task body runs directly via .run() against the test database; no
broker is involved.
"""

from datetime import datetime, time, timedelta
from unittest.mock import MagicMock, patch

import pytest

from ultimate.core.exceptions import PersistenceError
from ultimate.models import Challenge, DailyTask
from ultimate.services.reminders import reminder_key
from ultimate.tasks import celery_app, configure_worker_logging, register_worker_hooks, reminder_hooks
from ultimate.tasks.daily_refresh_tasks import refresh_daily_tasks_task
from tests.conftest import MONDAY


class TestRefreshDailyTasksTask:
    def test_registered_and_scheduled(self):
        assert "tasks.refresh_daily_tasks" in celery_app.tasks
        schedule = celery_app.conf.beat_schedule
        assert {entry["task"] for entry in schedule.values()} == {"tasks.refresh_daily_tasks"}

    def test_generates_and_refreshes(self, db_session, make_challenge):
        challenge = make_challenge(duration=10, tasks=[{}, {}])

        with patch("ultimate.tasks.daily_refresh_tasks.get_db_sync", return_value=db_session):
            summary = refresh_daily_tasks_task.run(target_date=(MONDAY + timedelta(days=2)).isoformat(), backfill_days=2)

        assert summary["status"] == "success"
        assert summary["created"] == 6
        assert summary["refreshed"] == 1
        assert summary["closed"] == 0
        assert db_session.query(DailyTask).filter_by(challenge_id=challenge.id).count() == 6

    def test_closes_challenges_at_end_date(self, db_session, make_challenge):
        challenge = make_challenge(duration=2)

        with patch("ultimate.tasks.daily_refresh_tasks.get_db_sync", return_value=db_session):
            refresh_daily_tasks_task.run(target_date=(MONDAY + timedelta(days=1)).isoformat(), backfill_days=1)
            summary = refresh_daily_tasks_task.run(target_date=(MONDAY + timedelta(days=2)).isoformat())

        assert summary["closed"] == 1
        assert db_session.get(Challenge, challenge.id).status == "Failed"

    def test_persistence_failure_closes_session_and_raises(self):
        session = MagicMock()
        failure = PersistenceError("generate daily tasks failed", attempts=3)

        with patch("ultimate.tasks.daily_refresh_tasks.get_db_sync", return_value=session), \
                patch("ultimate.tasks.daily_refresh_tasks.generate_for_range", side_effect=failure):
            with pytest.raises(PersistenceError):
                refresh_daily_tasks_task.run(target_date=MONDAY.isoformat())

        session.close.assert_called_once()


class TestWorkerSetup:
    def test_worker_logging_uses_app_configuration(self):
        with patch("ultimate.tasks.setup_logging") as setup:
            configure_worker_logging()
        setup.assert_called_once_with()

    def test_refresh_schedules_reminders_once_worker_started(self, db_session, make_challenge):
        make_challenge(duration=10, tasks=[
            {"name": "Run", "scheduled_time": time(7, 0)},
            {"name": "Stretch"},
        ])
        reminder_hooks.scheduler.scheduled.clear()
        register_worker_hooks()

        with patch("ultimate.tasks.daily_refresh_tasks.get_db_sync", return_value=db_session):
            refresh_daily_tasks_task.run(target_date=(MONDAY + timedelta(days=1)).isoformat(), backfill_days=1)

        runs = db_session.query(DailyTask).filter_by(title="Run").order_by(DailyTask.date).all()
        assert len(runs) == 2
        scheduled = reminder_hooks.scheduler.scheduled
        assert set(scheduled) == {reminder_key(row.id) for row in runs}
        assert scheduled[reminder_key(runs[1].id)].at == datetime.combine(MONDAY + timedelta(days=1), time(7, 0))
        reminder_hooks.unregister()
        scheduled.clear()
