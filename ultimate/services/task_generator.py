"""
Task Generator

Decides which tasks are due on a date for every in-progress challenge and
creates the missing DailyTask rows.

A challenge runs for duration_in_days calendar days, from start_date up
to (not including) end_date. Recurrence is anchored on start_date:

    Daily    every day
    Weekly   same weekday as start_date
    Monthly  same day of the month as start_date
    Anytime  once, on start_date

Generation is idempotent: a (task, date) pair that already has a row is
skipped, so running it twice for the same date writes nothing the second
time. Each date is one all-or-nothing transaction, serialised in-process
by a lock striped on the date; the (task_id, date) unique constraint turns a
cross-process race into a rollback and retry.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from ultimate.core.database import run_in_transaction
from ultimate.core.events import emit, EVENT_DAILY_TASKS_GENERATED
from ultimate.models import Challenge, ChallengeStatus, DailyTask, Task, TaskCompletionStatus, TaskFrequency
from ultimate.services.record_store import apply_column_defaults
from ultimate.services.validation import raise_for_issues, validate_daily_task

logger = logging.getLogger(__name__)

# Fixed pool of locks striped by date; guards read-existing -> write-new -> commit.
# Consecutive dates land on different stripes.
DATE_LOCK_STRIPES = 64
_date_locks: List[threading.Lock] = [threading.Lock() for _ in range(DATE_LOCK_STRIPES)]


def date_lock(target_date: date) -> threading.Lock:
    return _date_locks[target_date.toordinal() % DATE_LOCK_STRIPES]


@dataclass
class GenerationResult:
    """Outcome of one generator run for one date."""
    target_date: date
    challenges_checked: int
    created: List[DailyTask] = field(default_factory=list)

    @property
    def created_count(self) -> int:
        return len(self.created)


def is_task_due(task: Task, challenge_start: Optional[date], target_date: date) -> bool:
    """Recurrence predicate for one task on one calendar date."""
    if challenge_start is None or target_date < challenge_start:
        return False

    frequency = TaskFrequency(task.frequency)
    if frequency == TaskFrequency.DAILY:
        return True
    if frequency == TaskFrequency.WEEKLY:
        return target_date.weekday() == challenge_start.weekday()
    if frequency == TaskFrequency.MONTHLY:
        return target_date.day == challenge_start.day
    return target_date == challenge_start


def is_within_challenge(challenge: Challenge, target_date: date) -> bool:
    if challenge.start_date is None or target_date < challenge.start_date:
        return False
    return challenge.end_date is None or target_date < challenge.end_date


def plan_daily_tasks(
    challenges: Iterable[Challenge],
    tasks_by_challenge: Dict[UUID, List[Task]],
    existing_keys: Set[Tuple[UUID, date]],
    target_date: date,
) -> List[DailyTask]:
    """
    Build (but do not persist) the DailyTasks missing for target_date.

    Pure: depends only on its arguments. existing_keys holds the
    (task_id, date) pairs already stored.
    """
    planned: List[DailyTask] = []
    seen = set(existing_keys)

    for challenge in challenges:
        if challenge.status != ChallengeStatus.IN_PROGRESS.value:
            continue
        if not is_within_challenge(challenge, target_date):
            continue

        for task in tasks_by_challenge.get(challenge.id, []):
            key = (task.id, target_date)
            if key in seen or not is_task_due(task, challenge.start_date, target_date):
                continue
            daily_task = DailyTask(
                task_id=task.id,
                challenge_id=challenge.id,
                title=task.name,
                date=target_date,
                status=TaskCompletionStatus.NOT_STARTED.value,
            )
            apply_column_defaults(daily_task)
            planned.append(daily_task)
            seen.add(key)

    return planned


def stage_daily_tasks(session: Session, target_date: date, challenge_id: Optional[UUID] = None) -> GenerationResult:
    """
    Add the missing DailyTasks for target_date to session without committing.

    The caller owns the transaction and must hold date_lock(target_date)
    until it commits.
    """
    query = session.query(Challenge).filter(
        Challenge.status == ChallengeStatus.IN_PROGRESS.value,
        Challenge.is_deleted.is_(False),
    )
    if challenge_id is not None:
        query = query.filter(Challenge.id == challenge_id)
    challenges = query.all()
    if not challenges:
        return GenerationResult(target_date=target_date, challenges_checked=0)

    tasks = (
        session.query(Task)
        .filter(Task.challenge_id.in_([c.id for c in challenges]), Task.is_deleted.is_(False))
        .order_by(Task.position)
        .all()
    )
    tasks_by_challenge: Dict[UUID, List[Task]] = {}
    for task in tasks:
        tasks_by_challenge.setdefault(task.challenge_id, []).append(task)

    # Soft-deleted rows still hold the unique key, so they count as existing
    existing_keys = {
        (task_id, target_date)
        for (task_id,) in session.query(DailyTask.task_id).filter(
            DailyTask.date == target_date,
            DailyTask.task_id.in_([t.id for t in tasks]),
        )
    } if tasks else set()

    planned = plan_daily_tasks(challenges, tasks_by_challenge, existing_keys, target_date)
    for daily_task in planned:
        raise_for_issues(validate_daily_task(daily_task))

    session.add_all(planned)
    session.flush()
    return GenerationResult(target_date=target_date, challenges_checked=len(challenges), created=planned)


def announce_generated(db: Session, result: GenerationResult) -> None:
    """Log a committed generation run and notify subscribers."""
    logger.info(
        f"Generated {result.created_count} daily tasks for {result.target_date.isoformat()}",
        extra={"extra_fields": {
            "target_date": result.target_date.isoformat(),
            "created": result.created_count,
            "challenges": result.challenges_checked,
        }}
    )
    if result.created:
        emit(
            EVENT_DAILY_TASKS_GENERATED,
            db=db,
            target_date=result.target_date,
            daily_task_ids=[dt.id for dt in result.created],
        )


def _generate(db: Session, target_date: date, challenge_id: Optional[UUID] = None) -> GenerationResult:
    def work(session: Session) -> GenerationResult:
        return stage_daily_tasks(session, target_date, challenge_id)

    with date_lock(target_date):
        result = run_in_transaction(db, work, f"generate daily tasks for {target_date.isoformat()}")

    announce_generated(db, result)
    return result


def generate_daily_tasks(db: Session, target_date: Optional[date] = None) -> GenerationResult:
    """Create the missing DailyTasks for every in-progress challenge on target_date (default today)."""
    return _generate(db, target_date or date.today())


def generate_for_new_challenge(db: Session, challenge_id: UUID, target_date: Optional[date] = None) -> GenerationResult:
    """Same as generate_daily_tasks, restricted to one freshly started challenge."""
    return _generate(db, target_date or date.today(), challenge_id=challenge_id)


def generate_for_range(db: Session, start: date, end: date) -> List[GenerationResult]:
    """
    Backfill every date from start to end inclusive.

    Each date commits on its own; if one fails, earlier dates stay written
    and the error propagates. Re-running the range is safe.
    """
    if end < start:
        return []
    results = []
    current = start
    while current <= end:
        results.append(_generate(db, current))
        current += timedelta(days=1)
    return results
