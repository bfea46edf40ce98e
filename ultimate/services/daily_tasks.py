"""
Daily task commands and queries.

Every state change on a DailyTask recomputes its challenge's progress in
the same transaction, so the two never disagree.
"""

import logging
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from ultimate.core.database import run_in_transaction
from ultimate.core.events import emit, EVENT_DAILY_TASK_UPDATED
from ultimate.models import Challenge, DailyTask, Task, TaskCompletionStatus
from ultimate.services import record_store
from ultimate.services.progress_calculator import ProgressResult, apply_progress, emit_progress_events
from ultimate.services.validation import raise_for_issues, validate_daily_task

logger = logging.getLogger(__name__)

# Display order: open work first
STATUS_ORDER = {
    TaskCompletionStatus.IN_PROGRESS.value: 0,
    TaskCompletionStatus.NOT_STARTED.value: 1,
    TaskCompletionStatus.COMPLETED.value: 2,
    TaskCompletionStatus.MISSED.value: 3,
    TaskCompletionStatus.FAILED.value: 4,
}


def get_daily_tasks(db: Session, day: Optional[date] = None, challenge_id: Optional[UUID] = None) -> List[DailyTask]:
    """DailyTasks for a day, open ones first, then by scheduled time."""
    day = day or date.today()
    query = (
        db.query(DailyTask, Task.scheduled_time)
        .join(Task, Task.id == DailyTask.task_id)
        .filter(DailyTask.date == day, DailyTask.is_deleted.is_(False))
    )
    if challenge_id is not None:
        query = query.filter(DailyTask.challenge_id == challenge_id)

    rows = query.all()
    rows.sort(key=lambda row: (
        STATUS_ORDER.get(row[0].status, len(STATUS_ORDER)),
        row[1] is None,
        row[1] or datetime.min.time(),
        row[0].title,
    ))
    return [daily_task for daily_task, _ in rows]


def get_task_history(db: Session, challenge_id: UUID, limit: Optional[int] = None) -> List[DailyTask]:
    """Finished DailyTasks (completed or failed) for a challenge, newest first."""
    query = (
        db.query(DailyTask)
        .filter(
            DailyTask.challenge_id == challenge_id,
            DailyTask.is_deleted.is_(False),
            DailyTask.status.in_([TaskCompletionStatus.COMPLETED.value, TaskCompletionStatus.FAILED.value]),
        )
        .order_by(DailyTask.date.desc(), DailyTask.completion_time.desc())
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def _transition(
    db: Session,
    daily_task_id: UUID,
    mutate: Callable[[DailyTask], None],
    description: str,
    today: Optional[date] = None,
) -> DailyTask:
    today = today or date.today()

    def work(session: Session) -> Tuple[DailyTask, ProgressResult]:
        daily_task = record_store.daily_tasks.get(session, daily_task_id)
        mutate(daily_task)
        raise_for_issues(validate_daily_task(daily_task))
        session.flush()
        challenge = session.get(Challenge, daily_task.challenge_id)
        result = apply_progress(session, challenge, today)
        session.flush()
        return daily_task, result

    daily_task, result = run_in_transaction(db, work, description)

    logger.info(
        f"Daily task {daily_task.id} -> {daily_task.status}",
        extra={"extra_fields": {
            "daily_task_id": str(daily_task.id),
            "challenge_id": str(daily_task.challenge_id),
            "status": daily_task.status,
        }}
    )
    emit(
        EVENT_DAILY_TASK_UPDATED,
        db=db,
        daily_task_id=daily_task.id,
        challenge_id=daily_task.challenge_id,
        status=daily_task.status,
    )
    emit_progress_events(result)
    return daily_task


def _now() -> datetime:
    return datetime.now(timezone.utc)


def complete_task(
    db: Session,
    daily_task_id: UUID,
    actual_value: Optional[float] = None,
    notes: Optional[str] = None,
    today: Optional[date] = None,
) -> DailyTask:
    def mutate(daily_task: DailyTask):
        daily_task.status = TaskCompletionStatus.COMPLETED.value
        daily_task.completion_time = _now()
        if actual_value is not None:
            daily_task.actual_value = actual_value
        if notes is not None:
            daily_task.notes = notes

    return _transition(db, daily_task_id, mutate, f"complete daily task {daily_task_id}", today)


def mark_in_progress(db: Session, daily_task_id: UUID, notes: Optional[str] = None, today: Optional[date] = None) -> DailyTask:
    def mutate(daily_task: DailyTask):
        daily_task.status = TaskCompletionStatus.IN_PROGRESS.value
        daily_task.completion_time = None
        if notes is not None:
            daily_task.notes = notes

    return _transition(db, daily_task_id, mutate, f"start daily task {daily_task_id}", today)


def mark_missed(db: Session, daily_task_id: UUID, notes: Optional[str] = None, today: Optional[date] = None) -> DailyTask:
    def mutate(daily_task: DailyTask):
        daily_task.status = TaskCompletionStatus.MISSED.value
        daily_task.completion_time = _now()
        if notes is not None:
            daily_task.notes = notes

    return _transition(db, daily_task_id, mutate, f"miss daily task {daily_task_id}", today)


def mark_failed(db: Session, daily_task_id: UUID, notes: Optional[str] = None, today: Optional[date] = None) -> DailyTask:
    def mutate(daily_task: DailyTask):
        daily_task.status = TaskCompletionStatus.FAILED.value
        daily_task.completion_time = _now()
        if notes is not None:
            daily_task.notes = notes

    return _transition(db, daily_task_id, mutate, f"fail daily task {daily_task_id}", today)


def reset_task(db: Session, daily_task_id: UUID, today: Optional[date] = None) -> DailyTask:
    """Back to NotStarted; clears completion time and actual value, keeps notes."""
    def mutate(daily_task: DailyTask):
        daily_task.status = TaskCompletionStatus.NOT_STARTED.value
        daily_task.completion_time = None
        daily_task.actual_value = None

    return _transition(db, daily_task_id, mutate, f"reset daily task {daily_task_id}", today)
