"""
Progress API Router

Read-side metrics for a challenge plus the endpoints that persist
recomputed progress.
"""

import logging
from dataclasses import asdict
from datetime import date
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ultimate.core.database import get_db
from ultimate.schemas import ChallengeAnalyticsResponse, ProgressResponse, RefreshResponse
from ultimate.services import challenge_service, record_store
from ultimate.services.progress_calculator import (
    calculate_progress,
    consistency_score,
    load_daily_tasks,
    refresh_active_challenges,
    update_challenge_progress,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/progress", tags=["progress"])


def _progress_response(db: Session, challenge_id: UUID) -> ProgressResponse:
    challenge = record_store.challenges.get(db, challenge_id)
    daily = load_daily_tasks(db, challenge.id)
    today = date.today()
    result = calculate_progress(challenge, daily, today)
    return ProgressResponse(
        challenge_id=challenge.id,
        progress=challenge.progress,
        total_due=result.total_due,
        completed=result.completed,
        status=challenge.status,
        consistency_score=consistency_score(challenge, daily, today),
    )


@router.get("/{challenge_id}", response_model=ProgressResponse)
async def get_progress(challenge_id: UUID, db: Session = Depends(get_db)):
    """Stored progress with today's due/completed counts and consistency."""
    return _progress_response(db, challenge_id)


@router.post("/{challenge_id}/recalculate", response_model=ProgressResponse)
async def recalculate(challenge_id: UUID, db: Session = Depends(get_db)):
    update_challenge_progress(db, challenge_id)
    return _progress_response(db, challenge_id)


@router.get("/{challenge_id}/analytics", response_model=ChallengeAnalyticsResponse)
async def get_analytics(challenge_id: UUID, db: Session = Depends(get_db)):
    analytics = challenge_service.get_challenge_analytics(db, challenge_id)
    data = asdict(analytics)
    data["daily_progress"] = [
        {**asdict(day), "completion_rate": day.completion_rate} for day in analytics.daily_progress
    ]
    return ChallengeAnalyticsResponse(**data)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(db: Session = Depends(get_db)):
    """Recompute every in-progress challenge; closes those past their end date."""
    results = refresh_active_challenges(db)
    return RefreshResponse(
        refreshed=len(results),
        closed=sum(1 for r in results if r.status_changed),
    )
