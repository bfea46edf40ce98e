from sqlalchemy import Column, Integer, Boolean, CheckConstraint, Float, Date, DateTime, ForeignKey, Text, Time, Index, UniqueConstraint, Uuid
from ultimate.core.database import Base
from enum import Enum
import uuid
from datetime import datetime, timezone


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChallengeType(str, Enum):
    SEVENTY_FIVE_HARD = "75Hard"
    WATER_FASTING = "WaterFasting"
    THIRTY_ONE_MODIFIED = "31Modified"
    CUSTOM = "Custom"


class ChallengeStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"


class TaskType(str, Enum):
    WORKOUT = "Workout"
    NUTRITION = "Nutrition"
    WATER = "Water"
    READING = "Reading"
    PHOTO = "Photo"
    JOURNAL = "Journal"
    MINDFULNESS = "Meditation"
    CUSTOM = "Custom"
    FASTING = "Fasting"
    WEIGHT = "Weight"
    HABIT = "Habit"


class TaskFrequency(str, Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    ANYTIME = "Anytime"  # once, on the challenge start date


class TimeOfDay(str, Enum):
    MORNING = "Morning"
    EVENING = "Evening"
    ANYTIME = "Anytime"


class TaskCompletionStatus(str, Enum):
    NOT_STARTED = "NotStarted"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    MISSED = "Missed"
    FAILED = "Failed"


class PhotoAngle(str, Enum):
    FRONT = "Front"
    LEFT_SIDE = "Left Side"
    RIGHT_SIDE = "Right Side"
    BACK = "Back"


def _in(column: str, enum_cls) -> str:
    values = ", ".join(f"'{member.value}'" for member in enum_cls)
    return f"{column} IN ({values})"


class SoftDeleteMixin:
    """Rows are flagged, never removed; list queries filter on is_deleted."""
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)


class Challenge(SoftDeleteMixin, Base):
    """
    A bounded-duration program made of recurring tasks.

    Created NotStarted; start() sets start_date/end_date and moves it to
    InProgress. Completed/Failed are terminal, set either explicitly or by
    the progress calculator once end_date has passed.
    """
    __tablename__ = "challenge"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(Text, default=ChallengeType.CUSTOM.value, nullable=False)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    image_name = Column(Text, nullable=True)
    duration_in_days = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)  # start_date + duration_in_days
    status = Column(Text, default=ChallengeStatus.NOT_STARTED.value, nullable=False)
    progress = Column(Float, default=0.0, nullable=False)  # 0.0 - 1.0, derived
    # Set when the challenge is closed before its end date (complete/fail/stop)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        CheckConstraint(_in("type", ChallengeType), name="ck_challenge_type"),
        CheckConstraint(_in("status", ChallengeStatus), name="ck_challenge_status"),
        CheckConstraint("progress >= 0 AND progress <= 1", name="ck_challenge_progress_range"),
        Index("ix_challenge_status", "status"),
    )

    @property
    def is_active(self) -> bool:
        return self.status == ChallengeStatus.IN_PROGRESS.value


class Task(SoftDeleteMixin, Base):
    """A recurring action owned by exactly one challenge."""
    __tablename__ = "task"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    challenge_id = Column(Uuid, ForeignKey("challenge.id"), nullable=False, index=True)
    position = Column(Integer, default=0, nullable=False)  # order within the challenge
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(Text, default=TaskType.CUSTOM.value, nullable=False)
    frequency = Column(Text, default=TaskFrequency.DAILY.value, nullable=False)
    time_of_day = Column(Text, default=TimeOfDay.ANYTIME.value, nullable=False)
    duration_minutes = Column(Integer, nullable=True)
    target_value = Column(Float, nullable=True)
    target_unit = Column(Text, nullable=True)  # e.g. 'oz', 'pages', 'minutes'
    scheduled_time = Column(Time, nullable=True)  # reminder time of day

    __table_args__ = (
        CheckConstraint(_in("type", TaskType), name="ck_task_type"),
        CheckConstraint(_in("frequency", TaskFrequency), name="ck_task_frequency"),
        CheckConstraint(_in("time_of_day", TimeOfDay), name="ck_task_time_of_day"),
    )


class DailyTask(SoftDeleteMixin, Base):
    """One day's concrete instance of a Task."""
    __tablename__ = "daily_task"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    task_id = Column(Uuid, ForeignKey("task.id"), nullable=False)
    challenge_id = Column(Uuid, ForeignKey("challenge.id"), nullable=False, index=True)
    title = Column(Text, nullable=False)
    date = Column(Date, nullable=False)
    status = Column(Text, default=TaskCompletionStatus.NOT_STARTED.value, nullable=False)
    actual_value = Column(Float, nullable=True)
    completion_time = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (
        # The generator relies on this to make a racing second write fail
        UniqueConstraint("task_id", "date", name="uq_daily_task_task_date"),
        CheckConstraint(_in("status", TaskCompletionStatus), name="ck_daily_task_status"),
        Index("ix_daily_task_date", "date"),
    )

    @property
    def is_completed(self) -> bool:
        return self.status == TaskCompletionStatus.COMPLETED.value


class User(SoftDeleteMixin, Base):
    __tablename__ = "app_user"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    height_cm = Column(Float, nullable=True)
    weight_kg = Column(Float, nullable=True)
    appearance_preference = Column(Text, default="system", nullable=False)  # 'system', 'light', 'dark'
    language_code = Column(Text, default="en", nullable=False)
    has_completed_onboarding = Column(Boolean, default=False, nullable=False)
    morning_reminder_time = Column(Time, nullable=True)
    evening_reminder_time = Column(Time, nullable=True)


class ProgressPhoto(SoftDeleteMixin, Base):
    """Metadata for a progress photo; the image itself lives outside the store."""
    __tablename__ = "progress_photo"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    challenge_id = Column(Uuid, ForeignKey("challenge.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    angle = Column(Text, default=PhotoAngle.FRONT.value, nullable=False)
    file_path = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    is_blurred = Column(Boolean, default=False, nullable=False)
    challenge_iteration = Column(Integer, default=1, nullable=False)

    __table_args__ = (
        CheckConstraint(_in("angle", PhotoAngle), name="ck_progress_photo_angle"),
    )
