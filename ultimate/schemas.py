from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime, date, time
from uuid import UUID
from typing import Optional, List, Dict

from ultimate.models import (
    ChallengeStatus,
    ChallengeType,
    PhotoAngle,
    TaskCompletionStatus,
    TaskFrequency,
    TaskType,
    TimeOfDay,
)


class TaskCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: str
    description: str
    type: TaskType = TaskType.CUSTOM
    frequency: TaskFrequency = TaskFrequency.DAILY
    time_of_day: TimeOfDay = TimeOfDay.ANYTIME
    duration_minutes: Optional[int] = None
    target_value: Optional[float] = None
    target_unit: Optional[str] = None  # e.g. 'liters', 'pages'
    scheduled_time: Optional[time] = None


class TaskResponse(BaseModel):
    id: UUID
    challenge_id: UUID
    position: int
    name: str
    description: str
    type: TaskType
    frequency: TaskFrequency
    time_of_day: TimeOfDay
    duration_minutes: Optional[int] = None
    target_value: Optional[float] = None
    target_unit: Optional[str] = None
    scheduled_time: Optional[time] = None

    model_config = ConfigDict(from_attributes=True)


class ChallengeCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: str
    description: str
    duration_in_days: int
    type: ChallengeType = ChallengeType.CUSTOM
    image_name: Optional[str] = None
    start_date: Optional[date] = None  # set to start immediately
    tasks: List[TaskCreate] = Field(default_factory=list)


class ChallengeFromTemplate(BaseModel):
    """Optional overrides when instantiating a built-in template."""
    name: Optional[str] = None
    duration_in_days: Optional[int] = None
    start_date: Optional[date] = None


class ChallengeUpdate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: Optional[str] = None
    description: Optional[str] = None
    image_name: Optional[str] = None
    duration_in_days: Optional[int] = None  # only before the challenge starts
    type: Optional[ChallengeType] = None


class ChallengeResponse(BaseModel):
    id: UUID
    type: ChallengeType
    name: str
    description: str
    image_name: Optional[str] = None
    duration_in_days: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: ChallengeStatus
    progress: float
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ChallengeDetailResponse(ChallengeResponse):
    tasks: List[TaskResponse] = Field(default_factory=list)


class ChallengePageResponse(BaseModel):
    items: List[ChallengeResponse]
    total_count: int
    page_size: int
    current_page: int
    total_pages: int
    has_next: bool
    has_previous: bool

    model_config = ConfigDict(from_attributes=True)


class ValidationIssueResponse(BaseModel):
    field: str
    rule: str
    message: str


class ValidationReport(BaseModel):
    valid: bool
    errors: List[ValidationIssueResponse] = Field(default_factory=list)


class DailyTaskResponse(BaseModel):
    id: UUID
    task_id: UUID
    challenge_id: UUID
    title: str
    date: date
    status: TaskCompletionStatus
    actual_value: Optional[float] = None
    completion_time: Optional[datetime] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DailyTaskComplete(BaseModel):
    actual_value: Optional[float] = None
    notes: Optional[str] = None


class DailyTaskNote(BaseModel):
    notes: Optional[str] = None


class GenerationRequest(BaseModel):
    """Generate for one date (default today) or backfill start..end."""
    target_date: Optional[date] = None
    start: Optional[date] = None
    end: Optional[date] = None


class GenerationResponse(BaseModel):
    target_date: date
    challenges_checked: int
    created_count: int


class ProgressResponse(BaseModel):
    challenge_id: UUID
    progress: float
    total_due: int
    completed: int
    status: ChallengeStatus
    consistency_score: float


class DailyCompletionResponse(BaseModel):
    date: date
    total: int
    completed: int
    missed: int
    completion_rate: float

    model_config = ConfigDict(from_attributes=True)


class ChallengeAnalyticsResponse(BaseModel):
    challenge_id: UUID
    total_days: int
    current_day: int
    days_remaining: int
    completed_days: int
    progress: float
    completion_rate: float
    consistency_score: float
    current_streak: int
    longest_streak: int
    average_tasks_per_day: float
    task_completion_rates: Dict[str, float]
    daily_progress: List[DailyCompletionResponse]

    model_config = ConfigDict(from_attributes=True)


class RefreshResponse(BaseModel):
    refreshed: int
    closed: int


class UserCreate(BaseModel):
    name: str
    email: Optional[str] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    appearance_preference: str = "system"
    language_code: str = "en"
    morning_reminder_time: Optional[time] = None
    evening_reminder_time: Optional[time] = None


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    appearance_preference: Optional[str] = None
    language_code: Optional[str] = None
    has_completed_onboarding: Optional[bool] = None
    morning_reminder_time: Optional[time] = None
    evening_reminder_time: Optional[time] = None


class UserResponse(BaseModel):
    id: UUID
    name: str
    email: Optional[str] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    appearance_preference: str
    language_code: str
    has_completed_onboarding: bool
    morning_reminder_time: Optional[time] = None
    evening_reminder_time: Optional[time] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProgressPhotoCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    challenge_id: UUID
    date: date
    angle: PhotoAngle = PhotoAngle.FRONT
    file_path: str
    notes: Optional[str] = None
    is_blurred: bool = False
    challenge_iteration: int = 1


class ProgressPhotoResponse(BaseModel):
    id: UUID
    challenge_id: UUID
    date: date
    angle: PhotoAngle
    file_path: str
    notes: Optional[str] = None
    is_blurred: bool
    challenge_iteration: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
