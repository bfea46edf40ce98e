"""
Progress Calculator

Derives challenge progress, terminal status and the historical metrics
(consistency, streaks, per-day and per-task completion) from a
challenge's DailyTasks.

Progress is the share of due DailyTasks completed so far:

    D         = start_date .. min(today, end_date)
    total_due = DailyTasks dated in D
    progress  = completed / total_due  (0.0 when nothing is due yet)

Once today reaches end_date an in-progress challenge closes: Completed
when progress >= 0.8, Failed otherwise. The calculations here are pure;
update_challenge_progress and refresh_active_challenges persist them.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from ultimate.core.database import run_in_transaction
from ultimate.core.events import emit, EVENT_CHALLENGE_PROGRESS_UPDATED, EVENT_CHALLENGE_STATUS_CHANGED
from ultimate.core.exceptions import NotFoundError
from ultimate.models import Challenge, ChallengeStatus, DailyTask, Task, TaskCompletionStatus

logger = logging.getLogger(__name__)

# 80% adherence counts as success
COMPLETION_THRESHOLD = 0.8


@dataclass
class ProgressResult:
    """Progress for one challenge as of one day."""
    challenge_id: Optional[UUID]
    progress: float
    total_due: int
    completed: int
    new_status: Optional[str] = None  # terminal status to apply, if any

    @property
    def status_changed(self) -> bool:
        return self.new_status is not None


@dataclass
class StreakData:
    current: int
    best: int
    total: int  # days with at least one completion


@dataclass
class DailyCompletion:
    date: date
    total: int
    completed: int
    missed: int

    @property
    def completion_rate(self) -> float:
        """Percentage 0-100."""
        if self.total == 0:
            return 0.0
        return round(self.completed / self.total * 100, 1)


@dataclass
class ChallengeAnalytics:
    challenge_id: UUID
    total_days: int
    current_day: int
    days_remaining: int
    completed_days: int  # days where every due task was completed
    progress: float
    completion_rate: float
    consistency_score: float
    current_streak: int
    longest_streak: int
    average_tasks_per_day: float
    task_completion_rates: Dict[str, float] = field(default_factory=dict)
    daily_progress: List[DailyCompletion] = field(default_factory=list)


def _live(daily_tasks: Iterable[DailyTask]) -> List[DailyTask]:
    return [dt for dt in daily_tasks if not getattr(dt, "is_deleted", False)]


def _is_completed(daily_task: DailyTask) -> bool:
    return daily_task.status == TaskCompletionStatus.COMPLETED.value


def _days(start: date, end: date) -> List[date]:
    if end < start:
        return []
    return [start + timedelta(days=offset) for offset in range((end - start).days + 1)]


def due_window_end(challenge: Challenge, today: date) -> date:
    if challenge.end_date is None:
        return today
    return min(today, challenge.end_date)


def elapsed_days(challenge: Challenge, today: date) -> List[date]:
    """Days of the challenge that have begun, capped at its last day (end_date - 1)."""
    if challenge.start_date is None:
        return []
    last = today
    if challenge.end_date is not None:
        last = min(today, challenge.end_date - timedelta(days=1))
    return _days(challenge.start_date, last)


def calculate_progress(challenge: Challenge, daily_tasks: Sequence[DailyTask], today: date) -> ProgressResult:
    """Progress and any terminal transition for challenge as of today."""
    if challenge.start_date is None:
        return ProgressResult(challenge.id, 0.0, 0, 0)

    window_end = due_window_end(challenge, today)
    due = [dt for dt in _live(daily_tasks) if challenge.start_date <= dt.date <= window_end]
    total_due = len(due)
    completed = sum(1 for dt in due if _is_completed(dt))

    progress = completed / total_due if total_due else 0.0
    progress = max(0.0, min(1.0, progress))

    new_status = None
    if (total_due > 0
            and challenge.status == ChallengeStatus.IN_PROGRESS.value
            and challenge.end_date is not None
            and today >= challenge.end_date):
        if progress >= COMPLETION_THRESHOLD:
            new_status = ChallengeStatus.COMPLETED.value
        else:
            new_status = ChallengeStatus.FAILED.value

    return ProgressResult(challenge.id, progress, total_due, completed, new_status)


def _completed_dates(daily_tasks: Sequence[DailyTask]) -> set:
    return {dt.date for dt in _live(daily_tasks) if _is_completed(dt)}


def consistency_score(challenge: Challenge, daily_tasks: Sequence[DailyTask], today: date) -> float:
    """Fraction (0-1) of elapsed days with at least one completed task."""
    days = elapsed_days(challenge, today)
    if not days:
        return 0.0
    done = _completed_dates(daily_tasks)
    return sum(1 for day in days if day in done) / len(days)


def calculate_streaks(challenge: Challenge, daily_tasks: Sequence[DailyTask], today: date) -> StreakData:
    """
    Runs of consecutive days with at least one completion.

    The current streak counts back from the latest elapsed day. Today does
    not break it while it is still empty; the day isn't over.
    """
    days = elapsed_days(challenge, today)
    done = _completed_dates(daily_tasks)

    best = run = 0
    for day in days:
        run = run + 1 if day in done else 0
        best = max(best, run)

    current = 0
    remaining = list(days)
    if remaining and remaining[-1] == today and today not in done:
        remaining.pop()
    for day in reversed(remaining):
        if day not in done:
            break
        current += 1

    return StreakData(current=current, best=best, total=sum(1 for day in days if day in done))


def daily_completion_data(challenge: Challenge, daily_tasks: Sequence[DailyTask], today: date) -> List[DailyCompletion]:
    by_date: Dict[date, List[DailyTask]] = {}
    for dt in _live(daily_tasks):
        by_date.setdefault(dt.date, []).append(dt)

    data = []
    for day in elapsed_days(challenge, today):
        entries = by_date.get(day, [])
        data.append(DailyCompletion(
            date=day,
            total=len(entries),
            completed=sum(1 for dt in entries if _is_completed(dt)),
            missed=sum(1 for dt in entries if dt.status == TaskCompletionStatus.MISSED.value),
        ))
    return data


def task_completion_rates(tasks: Sequence[Task], daily_tasks: Sequence[DailyTask], through: date) -> Dict[str, float]:
    """Completed / due (0-1) per task name, counting DailyTasks dated on or before through."""
    rates: Dict[str, float] = {}
    live = [dt for dt in _live(daily_tasks) if dt.date <= through]
    for task in tasks:
        entries = [dt for dt in live if dt.task_id == task.id]
        if entries:
            rates[task.name] = sum(1 for dt in entries if _is_completed(dt)) / len(entries)
        else:
            rates[task.name] = 0.0
    return rates


def build_challenge_analytics(
    challenge: Challenge,
    tasks: Sequence[Task],
    daily_tasks: Sequence[DailyTask],
    today: date,
) -> ChallengeAnalytics:
    result = calculate_progress(challenge, daily_tasks, today)
    streaks = calculate_streaks(challenge, daily_tasks, today)
    daily = daily_completion_data(challenge, daily_tasks, today)
    days = len(daily)

    completed_total = sum(day.completed for day in daily)
    # Terminal challenges keep the progress they closed with
    progress = result.progress if challenge.status == ChallengeStatus.IN_PROGRESS.value else challenge.progress

    return ChallengeAnalytics(
        challenge_id=challenge.id,
        total_days=challenge.duration_in_days,
        current_day=days,
        days_remaining=max(0, challenge.duration_in_days - days) if challenge.start_date else challenge.duration_in_days,
        completed_days=sum(1 for day in daily if day.total and day.completed == day.total),
        progress=progress,
        completion_rate=result.completed / result.total_due if result.total_due else 0.0,
        consistency_score=consistency_score(challenge, daily_tasks, today),
        current_streak=streaks.current,
        longest_streak=streaks.best,
        average_tasks_per_day=round(completed_total / days, 2) if days else 0.0,
        task_completion_rates=task_completion_rates(tasks, daily_tasks, due_window_end(challenge, today)),
        daily_progress=daily,
    )


def load_daily_tasks(db: Session, challenge_id: UUID) -> List[DailyTask]:
    return (
        db.query(DailyTask)
        .filter(DailyTask.challenge_id == challenge_id, DailyTask.is_deleted.is_(False))
        .order_by(DailyTask.date)
        .all()
    )


def apply_progress(db: Session, challenge: Challenge, today: date) -> ProgressResult:
    """
    Recompute and stage progress on a challenge inside the caller's transaction.

    Challenges that are not in progress keep the progress they closed with.
    """
    result = calculate_progress(challenge, load_daily_tasks(db, challenge.id), today)
    if challenge.status != ChallengeStatus.IN_PROGRESS.value:
        return ProgressResult(challenge.id, challenge.progress, result.total_due, result.completed)

    challenge.progress = result.progress
    if result.new_status:
        challenge.status = result.new_status
        logger.info(
            f"Challenge {challenge.id} closed as {result.new_status} at {result.progress:.0%}",
            extra={"extra_fields": {
                "challenge_id": str(challenge.id),
                "status": result.new_status,
                "progress": result.progress,
            }}
        )
    return result


def emit_progress_events(result: ProgressResult) -> None:
    if result.challenge_id is None:
        return
    emit(EVENT_CHALLENGE_PROGRESS_UPDATED, challenge_id=result.challenge_id, progress=result.progress)
    if result.status_changed:
        emit(EVENT_CHALLENGE_STATUS_CHANGED, challenge_id=result.challenge_id, status=result.new_status)


def update_challenge_progress(db: Session, challenge_id: UUID, today: Optional[date] = None) -> ProgressResult:
    """Recompute one challenge's progress and persist it (and any closing status)."""
    today = today or date.today()

    def work(session: Session) -> ProgressResult:
        challenge = (
            session.query(Challenge)
            .filter(Challenge.id == challenge_id, Challenge.is_deleted.is_(False))
            .first()
        )
        if challenge is None:
            raise NotFoundError("Challenge", challenge_id)
        result = apply_progress(session, challenge, today)
        session.flush()
        return result

    result = run_in_transaction(db, work, f"update progress for challenge {challenge_id}")
    emit_progress_events(result)
    return result


def refresh_active_challenges(db: Session, today: Optional[date] = None) -> List[ProgressResult]:
    """Recompute every in-progress challenge in a single transaction."""
    today = today or date.today()

    def work(session: Session) -> List[ProgressResult]:
        active = (
            session.query(Challenge)
            .filter(
                Challenge.status == ChallengeStatus.IN_PROGRESS.value,
                Challenge.is_deleted.is_(False),
            )
            .all()
        )
        results = [apply_progress(session, challenge, today) for challenge in active]
        session.flush()
        return results

    results = run_in_transaction(db, work, "refresh active challenges")
    for result in results:
        emit_progress_events(result)

    closed = sum(1 for r in results if r.status_changed)
    logger.info(
        f"Refreshed progress for {len(results)} active challenges ({closed} closed)",
        extra={"extra_fields": {"refreshed": len(results), "closed": closed}}
    )
    return results
