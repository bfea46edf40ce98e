"""
Challenges API Router

Lifecycle endpoints for challenges and their tasks. Business rules live
in services.challenge_service; handlers only translate HTTP to calls.
"""

from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ultimate.core.database import get_db
from ultimate.core.exceptions import ValidationIssue
from ultimate.models import Challenge, ChallengeStatus, ChallengeType
from ultimate.schemas import (
    ChallengeCreate,
    ChallengeDetailResponse,
    ChallengeFromTemplate,
    ChallengePageResponse,
    ChallengeResponse,
    ChallengeUpdate,
    DailyTaskResponse,
    TaskCreate,
    TaskResponse,
    ValidationIssueResponse,
    ValidationReport,
)
from ultimate.services import challenge_service, record_store
from ultimate.services.challenge_templates import list_templates
from ultimate.services.daily_tasks import get_task_history
from ultimate.services.validation import validate_challenge, validate_task

router = APIRouter(prefix="/v1/challenges", tags=["Challenges"])


def _detail(db: Session, challenge: Challenge) -> ChallengeDetailResponse:
    response = ChallengeDetailResponse.model_validate(challenge)
    tasks = challenge_service.list_tasks(db, challenge.id)
    return response.model_copy(update={"tasks": [TaskResponse.model_validate(t) for t in tasks]})


@router.get("", response_model=ChallengePageResponse)
async def search_challenges(
    q: Optional[str] = None,
    type: Optional[ChallengeType] = None,
    status_filter: Optional[ChallengeStatus] = Query(default=None, alias="status"),
    started_from: Optional[date] = None,
    started_to: Optional[date] = None,
    sort_by: str = "created_at",
    order: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=challenge_service.DEFAULT_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    """Filter, sort and page through challenges."""
    page = challenge_service.search_challenges(
        db,
        query=q,
        challenge_type=type,
        status=status_filter,
        started_from=started_from,
        started_to=started_to,
        sort_by=sort_by,
        descending=order == "desc",
        limit=limit,
        offset=offset,
    )
    return ChallengePageResponse.model_validate(page)


@router.post("", response_model=ChallengeDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_challenge(payload: ChallengeCreate, db: Session = Depends(get_db)):
    data = payload.model_dump()
    tasks = data.pop("tasks")
    challenge = challenge_service.create_challenge(db, tasks=tasks, **data)
    return _detail(db, challenge)


@router.get("/templates")
async def get_templates():
    """Built-in challenge programs."""
    return [
        {
            "type": t.type.value,
            "name": t.name,
            "description": t.description,
            "duration_in_days": t.duration_in_days,
            "difficulty": t.difficulty,
            "tasks": [task.name for task in t.tasks],
        }
        for t in list_templates()
    ]


@router.post("/templates/{challenge_type}", response_model=ChallengeDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_from_template(
    challenge_type: ChallengeType,
    overrides: Optional[ChallengeFromTemplate] = None,
    db: Session = Depends(get_db),
):
    overrides = overrides or ChallengeFromTemplate()
    challenge = challenge_service.create_from_template(
        db,
        challenge_type,
        duration_in_days=overrides.duration_in_days,
        start_date=overrides.start_date,
        name=overrides.name,
    )
    return _detail(db, challenge)


@router.post("/validate", response_model=ValidationReport)
async def validate_payload(payload: ChallengeCreate):
    """Run every challenge and task rule without saving anything."""
    issues = validate_challenge(payload, task_count=len(payload.tasks))
    for position, task in enumerate(payload.tasks):
        issues.extend(
            ValidationIssue(f"tasks[{position}].{issue.field}", issue.rule, issue.message)
            for issue in validate_task(task)
        )
    return ValidationReport(
        valid=not issues,
        errors=[ValidationIssueResponse(**issue.to_dict()) for issue in issues],
    )


@router.get("/active", response_model=Optional[ChallengeDetailResponse])
async def get_active_challenge(db: Session = Depends(get_db)):
    challenge = challenge_service.get_active_challenge(db)
    return _detail(db, challenge) if challenge else None


@router.get("/{challenge_id}", response_model=ChallengeDetailResponse)
async def get_challenge(challenge_id: UUID, db: Session = Depends(get_db)):
    return _detail(db, record_store.challenges.get(db, challenge_id))


@router.patch("/{challenge_id}", response_model=ChallengeDetailResponse)
async def update_challenge(challenge_id: UUID, payload: ChallengeUpdate, db: Session = Depends(get_db)):
    changes = payload.model_dump(exclude_unset=True)
    challenge = challenge_service.update_challenge(db, challenge_id, **changes)
    return _detail(db, challenge)


@router.delete("/{challenge_id}", response_model=ChallengeResponse)
async def delete_challenge(challenge_id: UUID, db: Session = Depends(get_db)):
    return challenge_service.delete_challenge(db, challenge_id)


@router.post("/{challenge_id}/start", response_model=ChallengeDetailResponse)
async def start_challenge(challenge_id: UUID, db: Session = Depends(get_db)):
    return _detail(db, challenge_service.start_challenge(db, challenge_id))


@router.post("/{challenge_id}/complete", response_model=ChallengeResponse)
async def complete_challenge(challenge_id: UUID, db: Session = Depends(get_db)):
    return challenge_service.complete_challenge(db, challenge_id)


@router.post("/{challenge_id}/fail", response_model=ChallengeResponse)
async def fail_challenge(challenge_id: UUID, db: Session = Depends(get_db)):
    return challenge_service.fail_challenge(db, challenge_id)


@router.post("/{challenge_id}/stop", response_model=ChallengeResponse)
async def stop_challenge(challenge_id: UUID, db: Session = Depends(get_db)):
    """Mark the challenge failed and remove its daily tasks."""
    return challenge_service.stop_challenge(db, challenge_id)


@router.post("/{challenge_id}/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def add_task(challenge_id: UUID, payload: TaskCreate, db: Session = Depends(get_db)):
    return challenge_service.add_task(db, challenge_id, **payload.model_dump())


@router.delete("/{challenge_id}/tasks/{task_id}", response_model=TaskResponse)
async def remove_task(challenge_id: UUID, task_id: UUID, db: Session = Depends(get_db)):
    return challenge_service.remove_task(db, challenge_id, task_id)


@router.get("/{challenge_id}/history", response_model=List[DailyTaskResponse])
async def get_history(challenge_id: UUID, limit: Optional[int] = Query(default=None, ge=1), db: Session = Depends(get_db)):
    challenge = record_store.challenges.get(db, challenge_id)
    return get_task_history(db, challenge.id, limit=limit)
