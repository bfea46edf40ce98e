"""
Daily Tasks API Router

Today's checklist: list, generate, and move a DailyTask through its
states. Each state change also refreshes the challenge's progress.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ultimate.core.database import get_db
from ultimate.core.exceptions import ValidationError, ValidationIssue
from ultimate.schemas import (
    DailyTaskComplete,
    DailyTaskNote,
    DailyTaskResponse,
    GenerationRequest,
    GenerationResponse,
)
from ultimate.services import daily_tasks as daily_task_service
from ultimate.services.task_generator import GenerationResult, generate_daily_tasks, generate_for_range
from ultimate.services.validation import MAX_DURATION_DAYS

router = APIRouter(prefix="/v1/daily-tasks", tags=["Daily Tasks"])


def _summary(result: GenerationResult) -> GenerationResponse:
    return GenerationResponse(
        target_date=result.target_date,
        challenges_checked=result.challenges_checked,
        created_count=result.created_count,
    )


@router.get("", response_model=List[DailyTaskResponse])
async def list_daily_tasks(
    day: Optional[date] = None,
    challenge_id: Optional[UUID] = None,
    db: Session = Depends(get_db),
):
    """Tasks for a day (default today), open ones first."""
    return daily_task_service.get_daily_tasks(db, day, challenge_id)


@router.post("/generate", response_model=List[GenerationResponse])
async def generate(request: Optional[GenerationRequest] = None, db: Session = Depends(get_db)):
    """
    Create any missing DailyTasks.

    Safe to call repeatedly; dates already covered are left alone.
    """
    request = request or GenerationRequest()
    if request.start is not None:
        end = request.end or date.today()
        if (end - request.start).days >= MAX_DURATION_DAYS:
            raise ValidationError([ValidationIssue(
                "start", "range", f"A generation range covers at most {MAX_DURATION_DAYS} days"
            )])
        results = generate_for_range(db, request.start, end)
    else:
        results = [generate_daily_tasks(db, request.target_date)]
    return [_summary(result) for result in results]


@router.post("/{daily_task_id}/complete", response_model=DailyTaskResponse)
async def complete(daily_task_id: UUID, payload: Optional[DailyTaskComplete] = None, db: Session = Depends(get_db)):
    payload = payload or DailyTaskComplete()
    return daily_task_service.complete_task(db, daily_task_id, payload.actual_value, payload.notes)


@router.post("/{daily_task_id}/start", response_model=DailyTaskResponse)
async def start(daily_task_id: UUID, payload: Optional[DailyTaskNote] = None, db: Session = Depends(get_db)):
    return daily_task_service.mark_in_progress(db, daily_task_id, (payload or DailyTaskNote()).notes)


@router.post("/{daily_task_id}/miss", response_model=DailyTaskResponse)
async def miss(daily_task_id: UUID, payload: Optional[DailyTaskNote] = None, db: Session = Depends(get_db)):
    return daily_task_service.mark_missed(db, daily_task_id, (payload or DailyTaskNote()).notes)


@router.post("/{daily_task_id}/fail", response_model=DailyTaskResponse)
async def fail(daily_task_id: UUID, payload: Optional[DailyTaskNote] = None, db: Session = Depends(get_db)):
    return daily_task_service.mark_failed(db, daily_task_id, (payload or DailyTaskNote()).notes)


@router.post("/{daily_task_id}/reset", response_model=DailyTaskResponse)
async def reset(daily_task_id: UUID, db: Session = Depends(get_db)):
    return daily_task_service.reset_task(db, daily_task_id)
