"""
Reminder planning.

Turns the day's DailyTasks into reminders at each task's scheduled time
and hands them to a ReminderScheduler. Delivering the notification is
the scheduler's job; the default one only logs.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from ultimate.core.events import subscribe, unsubscribe, EVENT_DAILY_TASKS_GENERATED, EVENT_DAILY_TASK_UPDATED
from ultimate.models import DailyTask, Task, TaskCompletionStatus

logger = logging.getLogger(__name__)

# Reminders are dropped for tasks that no longer need doing
_SETTLED_STATUSES = {
    TaskCompletionStatus.COMPLETED.value,
    TaskCompletionStatus.MISSED.value,
    TaskCompletionStatus.FAILED.value,
}


@dataclass(frozen=True)
class Reminder:
    key: str
    at: datetime
    title: str
    body: str


class ReminderScheduler(Protocol):
    def schedule(self, reminder: Reminder) -> None: ...

    def cancel(self, key: str) -> None: ...


class LoggingReminderScheduler:
    """Records what would be scheduled. Stands in until a real notifier is wired up."""

    def __init__(self):
        self.scheduled: Dict[str, Reminder] = {}

    def schedule(self, reminder: Reminder) -> None:
        self.scheduled[reminder.key] = reminder
        logger.info(
            f"Reminder scheduled: {reminder.title} at {reminder.at.isoformat()}",
            extra={"extra_fields": {"reminder_key": reminder.key, "at": reminder.at.isoformat()}}
        )

    def cancel(self, key: str) -> None:
        if self.scheduled.pop(key, None) is not None:
            logger.info(f"Reminder cancelled: {key}")


def reminder_key(daily_task_id: UUID) -> str:
    return f"daily-task-{daily_task_id}"


def build_reminders(daily_tasks: Iterable[DailyTask], tasks_by_id: Dict[UUID, Task], day: date) -> List[Reminder]:
    reminders = []
    for daily_task in daily_tasks:
        if daily_task.date != day or daily_task.status in _SETTLED_STATUSES:
            continue
        task = tasks_by_id.get(daily_task.task_id)
        if task is None or task.scheduled_time is None:
            continue
        reminders.append(Reminder(
            key=reminder_key(daily_task.id),
            at=datetime.combine(day, task.scheduled_time),
            title=daily_task.title,
            body=task.description,
        ))
    return sorted(reminders, key=lambda r: r.at)


def schedule_reminders_for(
    db: Session,
    day: date,
    scheduler: ReminderScheduler,
    daily_task_ids: Optional[List[UUID]] = None,
) -> List[Reminder]:
    query = db.query(DailyTask).filter(DailyTask.date == day, DailyTask.is_deleted.is_(False))
    if daily_task_ids is not None:
        query = query.filter(DailyTask.id.in_(daily_task_ids))
    daily_tasks = query.all()

    task_ids = {dt.task_id for dt in daily_tasks}
    tasks_by_id = {t.id: t for t in db.query(Task).filter(Task.id.in_(task_ids)).all()} if task_ids else {}

    reminders = build_reminders(daily_tasks, tasks_by_id, day)
    for reminder in reminders:
        scheduler.schedule(reminder)
    return reminders


class ReminderHooks:
    """Keeps a scheduler in step with generator and daily-task events."""

    def __init__(self, scheduler: ReminderScheduler):
        self.scheduler = scheduler

    def on_generated(self, db: Session, target_date: date, daily_task_ids: List[UUID], **_):
        schedule_reminders_for(db, target_date, self.scheduler, daily_task_ids)

    def on_updated(self, db: Session, daily_task_id: UUID, status: str, **_):
        if status in _SETTLED_STATUSES:
            self.scheduler.cancel(reminder_key(daily_task_id))
            return
        # Reopened (reset) or started: the reminder comes back under the same key
        daily_task = db.get(DailyTask, daily_task_id)
        if daily_task is not None and not daily_task.is_deleted:
            schedule_reminders_for(db, daily_task.date, self.scheduler, [daily_task.id])

    def register(self) -> "ReminderHooks":
        subscribe(EVENT_DAILY_TASKS_GENERATED, self.on_generated)
        subscribe(EVENT_DAILY_TASK_UPDATED, self.on_updated)
        return self

    def unregister(self) -> None:
        unsubscribe(EVENT_DAILY_TASKS_GENERATED, self.on_generated)
        unsubscribe(EVENT_DAILY_TASK_UPDATED, self.on_updated)
