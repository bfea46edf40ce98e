"""
Challenge lifecycle service.

Create (from scratch or from a template), edit, start, complete, fail,
stop and delete challenges, plus search and analytics.

    NotStarted --start--> InProgress --complete--> Completed
                               |------fail/stop--> Failed
                               '--end date (progress calculator)--> Completed | Failed

Only one challenge may be in progress at a time.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ultimate.core.database import run_in_transaction
from ultimate.core.events import emit, EVENT_CHALLENGE_CREATED, EVENT_CHALLENGE_STATUS_CHANGED
from ultimate.core.exceptions import ConflictError, ValidationError, ValidationIssue
from ultimate.models import Challenge, ChallengeStatus, ChallengeType, DailyTask, Task
from ultimate.services import record_store
from ultimate.services.challenge_templates import get_template
from ultimate.services.progress_calculator import ChallengeAnalytics, build_challenge_analytics, load_daily_tasks
from ultimate.services.record_store import apply_column_defaults, as_uuid
from ultimate.services.task_generator import (
    GenerationResult,
    announce_generated,
    date_lock,
    generate_for_new_challenge,
    stage_daily_tasks,
)
from ultimate.services.validation import (
    raise_for_issues,
    validate_challenge,
    validate_challenge_update,
    validate_task,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20

SORT_FIELDS = {
    "name": Challenge.name,
    "created_at": Challenge.created_at,
    "start_date": Challenge.start_date,
    "end_date": Challenge.end_date,
    "progress": Challenge.progress,
    "status": Challenge.status,
}

# Fields a client may edit directly; dates, status and progress are derived
EDITABLE_FIELDS = {"name", "description", "image_name", "duration_in_days", "type"}


@dataclass
class ChallengePage:
    items: List[Challenge]
    total_count: int
    page_size: int
    current_page: int
    total_pages: int
    has_next: bool
    has_previous: bool


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _build_task(challenge_id: UUID, position: int, fields: Dict[str, Any]) -> Task:
    task = Task(challenge_id=challenge_id, position=position, **fields)
    apply_column_defaults(task)
    return task


def _ensure_no_active_challenge(db: Session, excluding: Optional[UUID] = None) -> None:
    active = get_active_challenge(db)
    if active is not None and active.id != excluding:
        raise ConflictError(f"Challenge '{active.name}' is already in progress")


def _begin(challenge: Challenge, start: date) -> None:
    challenge.start_date = start
    challenge.end_date = start + timedelta(days=challenge.duration_in_days)
    challenge.status = ChallengeStatus.IN_PROGRESS.value
    challenge.progress = 0.0
    challenge.closed_at = None


def _backfill(db: Session, challenge: Challenge, today: date) -> None:
    """Generate the started challenge's DailyTasks from its start date through today."""
    day = challenge.start_date
    last = min(today, challenge.end_date - timedelta(days=1))
    while day <= last:
        generate_for_new_challenge(db, challenge.id, day)
        day += timedelta(days=1)


def get_active_challenge(db: Session) -> Optional[Challenge]:
    return (
        db.query(Challenge)
        .filter(Challenge.status == ChallengeStatus.IN_PROGRESS.value, Challenge.is_deleted.is_(False))
        .order_by(Challenge.start_date.desc())
        .first()
    )


def list_tasks(db: Session, challenge_id: UUID) -> List[Task]:
    return (
        db.query(Task)
        .filter(Task.challenge_id == challenge_id, Task.is_deleted.is_(False))
        .order_by(Task.position)
        .all()
    )


def create_challenge(
    db: Session,
    name: str,
    description: str,
    duration_in_days: int,
    type: ChallengeType = ChallengeType.CUSTOM,
    tasks: Optional[List[Dict[str, Any]]] = None,
    start_date: Optional[date] = None,
    image_name: Optional[str] = None,
    today: Optional[date] = None,
) -> Challenge:
    """
    Create a challenge with its tasks in one transaction.

    With a start_date the challenge starts immediately (subject to the
    one-active-challenge rule) and that day's tasks are generated.
    """
    challenge = Challenge(
        name=name,
        description=description,
        duration_in_days=duration_in_days,
        type=ChallengeType(type).value,
        image_name=image_name,
    )
    apply_column_defaults(challenge)
    task_rows = [_build_task(challenge.id, position, fields) for position, fields in enumerate(tasks or [])]

    if start_date is not None and duration_in_days is not None:
        _begin(challenge, start_date)

    issues = validate_challenge(challenge, task_count=len(task_rows))
    for position, task in enumerate(task_rows):
        issues.extend(
            ValidationIssue(f"tasks[{position}].{issue.field}", issue.rule, issue.message)
            for issue in validate_task(task)
        )
    raise_for_issues(issues)

    def work(session: Session) -> Challenge:
        if challenge.status == ChallengeStatus.IN_PROGRESS.value:
            _ensure_no_active_challenge(session)
        session.add(challenge)
        session.add_all(task_rows)
        session.flush()
        return challenge

    challenge = run_in_transaction(db, work, "create challenge")
    logger.info(
        f"Created challenge {challenge.id} ({challenge.type}) with {len(task_rows)} tasks",
        extra={"extra_fields": {"challenge_id": str(challenge.id), "type": challenge.type}}
    )
    emit(EVENT_CHALLENGE_CREATED, challenge_id=challenge.id, type=challenge.type)

    if challenge.status == ChallengeStatus.IN_PROGRESS.value:
        emit(EVENT_CHALLENGE_STATUS_CHANGED, challenge_id=challenge.id, status=challenge.status)
        _backfill(db, challenge, today or date.today())
    return challenge


def create_from_template(
    db: Session,
    challenge_type: ChallengeType,
    duration_in_days: Optional[int] = None,
    start_date: Optional[date] = None,
    name: Optional[str] = None,
    today: Optional[date] = None,
) -> Challenge:
    template = get_template(challenge_type)
    return create_challenge(
        db,
        name=name or template.name,
        description=template.description,
        duration_in_days=duration_in_days or template.duration_in_days,
        type=template.type,
        image_name=template.image_name,
        start_date=start_date,
        today=today,
        tasks=[
            {
                "name": t.name,
                "description": t.description,
                "type": t.type.value,
                "frequency": t.frequency.value,
                "time_of_day": t.time_of_day.value,
                "duration_minutes": t.duration_minutes,
                "target_value": t.target_value,
                "target_unit": t.target_unit,
            }
            for t in template.tasks
        ],
    )


def update_challenge(db: Session, challenge_id: Any, **changes) -> Challenge:
    challenge = record_store.challenges.get(db, challenge_id)

    issues = [
        ValidationIssue(field, "business_rule", f"'{field}' cannot be edited directly")
        for field in changes if field not in EDITABLE_FIELDS
    ]
    issues.extend(validate_challenge_update(challenge, changes))
    raise_for_issues(issues)

    if "type" in changes:
        changes["type"] = ChallengeType(changes["type"]).value
    return record_store.challenges.update(db, challenge.id, **changes)


def add_task(db: Session, challenge_id: Any, **fields) -> Task:
    """Append a task to a challenge that has not started yet."""
    challenge = record_store.challenges.get(db, challenge_id)
    if challenge.status != ChallengeStatus.NOT_STARTED.value:
        raise ConflictError("Tasks can only be added before a challenge starts")

    existing = list_tasks(db, challenge.id)
    task = _build_task(challenge.id, len(existing), fields)
    issues = validate_task(task) + validate_challenge(challenge, task_count=len(existing) + 1)
    raise_for_issues(issues)

    def work(session: Session) -> Task:
        session.add(task)
        session.flush()
        return task

    return run_in_transaction(db, work, f"add task to challenge {challenge.id}")


def remove_task(db: Session, challenge_id: Any, task_id: Any) -> Task:
    challenge = record_store.challenges.get(db, challenge_id)
    if challenge.status != ChallengeStatus.NOT_STARTED.value:
        raise ConflictError("Tasks can only be removed before a challenge starts")

    task = record_store.tasks.get(db, task_id)
    if task.challenge_id != challenge.id:
        raise ConflictError("Task does not belong to this challenge")

    remaining = len(list_tasks(db, challenge.id)) - 1
    raise_for_issues(validate_challenge(challenge, task_count=remaining))
    return record_store.tasks.soft_delete(db, task.id)


def start_challenge(db: Session, challenge_id: Any, today: Optional[date] = None) -> Challenge:
    """
    Start now: dates are set from today and today's tasks are generated.

    The status change and the day's DailyTasks commit together, so a
    failed start leaves the challenge NotStarted with nothing generated.
    """
    today = today or date.today()
    key = as_uuid(challenge_id, "Challenge")

    def work(session: Session) -> Tuple[Challenge, GenerationResult]:
        challenge = record_store.challenges.get(session, key)
        if challenge.status != ChallengeStatus.NOT_STARTED.value:
            raise ConflictError(f"Challenge cannot be started from status {challenge.status}")
        _ensure_no_active_challenge(session, excluding=challenge.id)
        if not list_tasks(session, challenge.id):
            raise ValidationError([ValidationIssue("tasks", "business_rule", "Add at least one task before starting")])

        _begin(challenge, today)
        record_store.challenges.validate(session, challenge)
        session.flush()
        return challenge, stage_daily_tasks(session, today, challenge_id=challenge.id)

    with date_lock(today):
        challenge, generated = run_in_transaction(db, work, f"start challenge {key}")
    logger.info(f"Started challenge {challenge.id}, ends {challenge.end_date.isoformat()}")
    emit(EVENT_CHALLENGE_STATUS_CHANGED, challenge_id=challenge.id, status=challenge.status)
    announce_generated(db, generated)
    return challenge


def _close(db: Session, challenge_id: Any, status: ChallengeStatus, verb: str, stop: bool = False) -> Challenge:
    key = as_uuid(challenge_id, "Challenge")

    def work(session: Session) -> Challenge:
        challenge = record_store.challenges.get(session, key)
        if challenge.status != ChallengeStatus.IN_PROGRESS.value:
            raise ConflictError(f"Only an in-progress challenge can be {verb}")

        challenge.status = status.value
        challenge.closed_at = _utcnow()
        if status == ChallengeStatus.COMPLETED:
            challenge.progress = 1.0

        if stop:
            removed = (
                session.query(DailyTask)
                .filter(DailyTask.challenge_id == challenge.id, DailyTask.is_deleted.is_(False))
                .update({"is_deleted": True, "deleted_at": _utcnow()}, synchronize_session="fetch")
            )
            logger.info(f"Stopping challenge {challenge.id}: removed {removed} daily tasks")

        record_store.challenges.validate(session, challenge)
        session.flush()
        return challenge

    challenge = run_in_transaction(db, work, f"{verb} challenge {key}")
    emit(EVENT_CHALLENGE_STATUS_CHANGED, challenge_id=challenge.id, status=challenge.status)
    return challenge


def complete_challenge(db: Session, challenge_id: Any) -> Challenge:
    return _close(db, challenge_id, ChallengeStatus.COMPLETED, "completed")


def fail_challenge(db: Session, challenge_id: Any) -> Challenge:
    return _close(db, challenge_id, ChallengeStatus.FAILED, "failed")


def stop_challenge(db: Session, challenge_id: Any) -> Challenge:
    """Give up on an active challenge: it is marked Failed and its DailyTasks are removed."""
    return _close(db, challenge_id, ChallengeStatus.FAILED, "stopped", stop=True)


def delete_challenge(db: Session, challenge_id: Any) -> Challenge:
    """Soft-delete a challenge and its tasks. An active challenge must be stopped first."""
    key = as_uuid(challenge_id, "Challenge")

    def work(session: Session) -> Challenge:
        challenge = record_store.challenges.get(session, key)
        if challenge.status == ChallengeStatus.IN_PROGRESS.value:
            raise ConflictError("Stop the challenge before deleting it")
        for task in list_tasks(session, challenge.id):
            record_store.tasks.soft_delete(session, task.id, commit=False)
        return record_store.challenges.soft_delete(session, challenge.id, commit=False)

    return run_in_transaction(db, work, f"delete challenge {key}")


def search_challenges(
    db: Session,
    query: Optional[str] = None,
    challenge_type: Optional[ChallengeType] = None,
    status: Optional[ChallengeStatus] = None,
    started_from: Optional[date] = None,
    started_to: Optional[date] = None,
    sort_by: str = "created_at",
    descending: bool = True,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> ChallengePage:
    if sort_by not in SORT_FIELDS:
        raise ValidationError([ValidationIssue("sort_by", "format", f"Cannot sort by '{sort_by}'")])
    limit = max(1, limit)
    offset = max(0, offset)

    q = db.query(Challenge).filter(Challenge.is_deleted.is_(False))
    if query:
        pattern = f"%{query.strip()}%"
        q = q.filter(or_(Challenge.name.ilike(pattern), Challenge.description.ilike(pattern)))
    if challenge_type is not None:
        q = q.filter(Challenge.type == ChallengeType(challenge_type).value)
    if status is not None:
        q = q.filter(Challenge.status == ChallengeStatus(status).value)
    if started_from is not None:
        q = q.filter(Challenge.start_date >= started_from)
    if started_to is not None:
        q = q.filter(Challenge.start_date <= started_to)

    total = q.count()
    column = SORT_FIELDS[sort_by]
    q = q.order_by(column.desc() if descending else column.asc(), Challenge.id)
    items = q.offset(offset).limit(limit).all()

    total_pages = math.ceil(total / limit) if total else 0
    current_page = offset // limit + 1
    return ChallengePage(
        items=items,
        total_count=total,
        page_size=limit,
        current_page=current_page,
        total_pages=total_pages,
        has_next=offset + len(items) < total,
        has_previous=offset > 0,
    )


def get_challenge_analytics(db: Session, challenge_id: Any, today: Optional[date] = None) -> ChallengeAnalytics:
    challenge = record_store.challenges.get(db, challenge_id)
    return build_challenge_analytics(
        challenge,
        list_tasks(db, challenge.id),
        load_daily_tasks(db, challenge.id),
        today or date.today(),
    )
