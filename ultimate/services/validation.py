"""
Validation Layer

Field, cross-field and business-rule checks for every entity, run before
anything is written. Checks never stop at the first problem: each
validator returns the full list of issues so a client can show them all
at once.

Validators read attributes with getattr, so they accept ORM rows and
pydantic payloads alike.
"""

import re
from enum import Enum
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from ultimate.core.exceptions import ValidationError, ValidationIssue
from ultimate.models import (
    ChallengeStatus,
    ChallengeType,
    PhotoAngle,
    TaskCompletionStatus,
    TaskFrequency,
    TaskType,
    TimeOfDay,
)

# Field limits
CHALLENGE_NAME_MAX = 100
CHALLENGE_DESCRIPTION_MAX = 500
MIN_DURATION_DAYS = 1
MAX_DURATION_DAYS = 365
TASK_NAME_MAX = 80
TASK_DESCRIPTION_MAX = 500
DAILY_TASK_TITLE_MAX = 100
NOTES_MAX = 500
USER_NAME_MAX = 100

# Challenge types whose task list is fixed once populated
FIXED_STRUCTURE_TASK_COUNTS = {
    ChallengeType.SEVENTY_FIVE_HARD.value: 5,
}

# Statuses that only make sense once the challenge has a start date
STARTED_STATUSES = {ChallengeStatus.IN_PROGRESS.value, ChallengeStatus.COMPLETED.value}

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")


def _value(obj: Any, name: str) -> Any:
    value = obj.get(name) if isinstance(obj, dict) else getattr(obj, name, None)
    return value.value if isinstance(value, Enum) else value


def _check_text(issues: List[ValidationIssue], obj: Any, field: str, max_length: int, label: str, required: bool = True):
    value = _value(obj, field)
    if value is None or not str(value).strip():
        if required:
            issues.append(ValidationIssue(field, "required", f"{label} is required"))
        return
    if len(str(value)) > max_length:
        issues.append(ValidationIssue(field, "max_length", f"{label} must be at most {max_length} characters"))


def _check_enum(issues: List[ValidationIssue], obj: Any, field: str, enum_cls, label: str):
    value = _value(obj, field)
    if value is None:
        return
    if value not in {member.value for member in enum_cls}:
        issues.append(ValidationIssue(field, "format", f"{label} '{value}' is not recognised"))


def _check_positive(issues: List[ValidationIssue], obj: Any, field: str, label: str):
    value = _value(obj, field)
    if value is not None and value <= 0:
        issues.append(ValidationIssue(field, "range", f"{label} must be greater than 0"))


def validate_challenge(challenge: Any, task_count: Optional[int] = None) -> List[ValidationIssue]:
    """
    Check a challenge's fields and their consistency.

    task_count is the number of tasks the challenge owns (or will own once
    written). When None the fixed-structure rule is skipped.
    """
    issues: List[ValidationIssue] = []

    _check_text(issues, challenge, "name", CHALLENGE_NAME_MAX, "Challenge name")
    _check_text(issues, challenge, "description", CHALLENGE_DESCRIPTION_MAX, "Description")
    _check_enum(issues, challenge, "type", ChallengeType, "Challenge type")
    _check_enum(issues, challenge, "status", ChallengeStatus, "Challenge status")

    duration = _value(challenge, "duration_in_days")
    if duration is None:
        issues.append(ValidationIssue("duration_in_days", "required", "Duration is required"))
    elif not MIN_DURATION_DAYS <= duration <= MAX_DURATION_DAYS:
        issues.append(ValidationIssue(
            "duration_in_days", "range",
            f"Duration must be between {MIN_DURATION_DAYS} and {MAX_DURATION_DAYS} days"
        ))

    status = _value(challenge, "status")
    start_date: Optional[date] = _value(challenge, "start_date")
    end_date: Optional[date] = _value(challenge, "end_date")

    if status in STARTED_STATUSES and start_date is None:
        issues.append(ValidationIssue("start_date", "cross_field", "A started challenge must have a start date"))

    if start_date is not None and end_date is not None and duration is not None:
        if (end_date - start_date).days != duration:
            issues.append(ValidationIssue(
                "end_date", "cross_field",
                f"End date must be exactly {duration} days after the start date"
            ))

    progress = _value(challenge, "progress")
    if progress is not None and not 0.0 <= progress <= 1.0:
        issues.append(ValidationIssue("progress", "range", "Progress must be between 0 and 1"))

    required_count = FIXED_STRUCTURE_TASK_COUNTS.get(_value(challenge, "type"))
    if required_count is not None and task_count and task_count != required_count:
        issues.append(ValidationIssue(
            "tasks", "business_rule",
            f"This challenge type requires exactly {required_count} tasks"
        ))

    return issues


def validate_task(task: Any) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []

    _check_text(issues, task, "name", TASK_NAME_MAX, "Task name")
    _check_text(issues, task, "description", TASK_DESCRIPTION_MAX, "Task description")
    _check_enum(issues, task, "type", TaskType, "Task type")
    _check_enum(issues, task, "frequency", TaskFrequency, "Frequency")
    _check_enum(issues, task, "time_of_day", TimeOfDay, "Time of day")
    _check_positive(issues, task, "target_value", "Target value")
    _check_positive(issues, task, "duration_minutes", "Duration")

    if _value(task, "target_unit") and _value(task, "target_value") is None:
        issues.append(ValidationIssue("target_value", "cross_field", "A target unit needs a target value"))

    return issues


def validate_daily_task(daily_task: Any) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []

    _check_text(issues, daily_task, "title", DAILY_TASK_TITLE_MAX, "Title")
    _check_text(issues, daily_task, "notes", NOTES_MAX, "Notes", required=False)
    _check_enum(issues, daily_task, "status", TaskCompletionStatus, "Task status")

    actual_value = _value(daily_task, "actual_value")
    if actual_value is not None and actual_value < 0:
        issues.append(ValidationIssue("actual_value", "range", "Actual value cannot be negative"))

    if (_value(daily_task, "status") == TaskCompletionStatus.COMPLETED.value
            and _value(daily_task, "completion_time") is None):
        issues.append(ValidationIssue("completion_time", "cross_field", "A completed task needs a completion time"))

    return issues


def validate_user(user: Any) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []

    _check_text(issues, user, "name", USER_NAME_MAX, "Name")
    email = _value(user, "email")
    if email and not EMAIL_PATTERN.match(email):
        issues.append(ValidationIssue("email", "format", "Email address is not valid"))
    _check_positive(issues, user, "height_cm", "Height")
    _check_positive(issues, user, "weight_kg", "Weight")

    return issues


def validate_progress_photo(photo: Any) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []

    _check_text(issues, photo, "file_path", 1024, "File path")
    _check_text(issues, photo, "notes", NOTES_MAX, "Notes", required=False)
    _check_enum(issues, photo, "angle", PhotoAngle, "Photo angle")

    iteration = _value(photo, "challenge_iteration")
    if iteration is not None and iteration < 1:
        issues.append(ValidationIssue("challenge_iteration", "range", "Challenge iteration starts at 1"))

    return issues


# Fields that are frozen once a challenge has left NotStarted
_LOCKED_AFTER_START = {
    "duration_in_days": "Duration",
    "start_date": "Start date",
    "end_date": "End date",
    "type": "Challenge type",
}


def validate_challenge_update(challenge: Any, changes: Dict[str, Any]) -> List[ValidationIssue]:
    """Reject structural edits to a challenge that has already started."""
    issues: List[ValidationIssue] = []
    if _value(challenge, "status") == ChallengeStatus.NOT_STARTED.value:
        return issues

    for field, label in _LOCKED_AFTER_START.items():
        if field not in changes:
            continue
        new_value = changes[field]
        new_value = new_value.value if isinstance(new_value, Enum) else new_value
        if new_value != _value(challenge, field):
            issues.append(ValidationIssue(field, "business_rule", f"{label} cannot change once a challenge has started"))

    return issues


def raise_for_issues(issues: Iterable[ValidationIssue]) -> None:
    """Raise one ValidationError carrying every issue, if there are any."""
    issues = list(issues)
    if issues:
        raise ValidationError(issues)
