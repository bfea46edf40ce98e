"""
Unit tests for the validation layer

Field, cross-field and business rules for challenges, tasks and the
other records. Validators take plain dicts here; they read ORM rows
and pydantic payloads the same way.
"""

import pytest
from datetime import date, datetime, timedelta, timezone

from ultimate.core.exceptions import ValidationError
from ultimate.schemas import ChallengeCreate
from ultimate.services.validation import (
    raise_for_issues,
    validate_challenge,
    validate_challenge_update,
    validate_daily_task,
    validate_progress_photo,
    validate_task,
    validate_user,
)


def _challenge(**overrides):
    data = {
        "name": "Spring Reset",
        "description": "Thirty days of small habits",
        "duration_in_days": 30,
        "type": "Custom",
        "status": "NotStarted",
        "progress": 0.0,
        "start_date": None,
        "end_date": None,
    }
    data.update(overrides)
    return data


def _rules(issues):
    return {(issue.field, issue.rule) for issue in issues}


class TestChallengeDuration:
    """Duration must be within 1..365 days."""

    def test_zero_days_is_a_range_violation(self):
        assert ("duration_in_days", "range") in _rules(validate_challenge(_challenge(duration_in_days=0)))

    def test_366_days_is_a_range_violation(self):
        assert ("duration_in_days", "range") in _rules(validate_challenge(_challenge(duration_in_days=366)))

    def test_365_days_passes(self):
        assert validate_challenge(_challenge(duration_in_days=365)) == []

    def test_one_day_passes(self):
        assert validate_challenge(_challenge(duration_in_days=1)) == []

    def test_missing_duration_is_required(self):
        assert ("duration_in_days", "required") in _rules(validate_challenge(_challenge(duration_in_days=None)))


class TestChallengeFields:
    """Name and description rules."""

    def test_blank_name_is_required(self):
        assert ("name", "required") in _rules(validate_challenge(_challenge(name="   ")))

    def test_long_name_exceeds_max_length(self):
        assert ("name", "max_length") in _rules(validate_challenge(_challenge(name="x" * 101)))

    def test_name_at_limit_passes(self):
        assert validate_challenge(_challenge(name="x" * 100)) == []

    def test_empty_description_is_required(self):
        assert ("description", "required") in _rules(validate_challenge(_challenge(description="")))

    def test_long_description_exceeds_max_length(self):
        assert ("description", "max_length") in _rules(validate_challenge(_challenge(description="d" * 501)))

    def test_unknown_type_is_a_format_error(self):
        assert ("type", "format") in _rules(validate_challenge(_challenge(type="Marathon")))

    def test_all_issues_are_collected(self):
        """Nothing short-circuits: every broken field is reported."""
        issues = validate_challenge(_challenge(name="", description="", duration_in_days=0, progress=1.5))
        assert _rules(issues) >= {
            ("name", "required"),
            ("description", "required"),
            ("duration_in_days", "range"),
            ("progress", "range"),
        }


class TestChallengeCrossField:
    """Rules spanning status, dates and duration."""

    def test_in_progress_requires_start_date(self):
        issues = validate_challenge(_challenge(status="InProgress"))
        assert ("start_date", "cross_field") in _rules(issues)

    def test_completed_requires_start_date(self):
        issues = validate_challenge(_challenge(status="Completed"))
        assert ("start_date", "cross_field") in _rules(issues)

    def test_failed_does_not_require_start_date(self):
        assert validate_challenge(_challenge(status="Failed")) == []

    def test_end_date_must_match_duration(self):
        start = date(2024, 3, 1)
        issues = validate_challenge(_challenge(
            status="InProgress", start_date=start, end_date=start + timedelta(days=29)
        ))
        assert ("end_date", "cross_field") in _rules(issues)

    def test_matching_dates_pass(self):
        start = date(2024, 3, 1)
        assert validate_challenge(_challenge(
            status="InProgress", start_date=start, end_date=start + timedelta(days=30)
        )) == []

    def test_progress_out_of_range(self):
        assert ("progress", "range") in _rules(validate_challenge(_challenge(progress=-0.1)))


class TestFixedStructureRule:
    """75 Hard needs exactly five tasks once it has any."""

    def test_no_tasks_is_allowed(self):
        assert validate_challenge(_challenge(type="75Hard"), task_count=0) == []

    def test_five_tasks_pass(self):
        assert validate_challenge(_challenge(type="75Hard"), task_count=5) == []

    @pytest.mark.parametrize("count", [1, 4, 6])
    def test_other_counts_fail(self, count):
        issues = validate_challenge(_challenge(type="75Hard"), task_count=count)
        assert ("tasks", "business_rule") in _rules(issues)

    def test_custom_challenges_allow_any_count(self):
        assert validate_challenge(_challenge(type="Custom"), task_count=3) == []


class TestTaskValidation:
    def test_valid_task(self):
        assert validate_task({"name": "Read", "description": "Read 10 pages", "frequency": "Daily"}) == []

    def test_name_limit_is_80(self):
        issues = validate_task({"name": "r" * 81, "description": "Read"})
        assert ("name", "max_length") in _rules(issues)

    def test_target_value_must_be_positive(self):
        issues = validate_task({"name": "Water", "description": "Drink", "target_value": 0, "target_unit": "l"})
        assert ("target_value", "range") in _rules(issues)

    def test_unit_without_value(self):
        issues = validate_task({"name": "Water", "description": "Drink", "target_unit": "liters"})
        assert ("target_value", "cross_field") in _rules(issues)

    def test_unknown_frequency(self):
        issues = validate_task({"name": "Water", "description": "Drink", "frequency": "Hourly"})
        assert ("frequency", "format") in _rules(issues)


class TestDailyTaskValidation:
    def test_completed_needs_completion_time(self):
        issues = validate_daily_task({"title": "Read", "status": "Completed"})
        assert ("completion_time", "cross_field") in _rules(issues)

    def test_completed_with_time_passes(self):
        assert validate_daily_task({
            "title": "Read", "status": "Completed", "completion_time": datetime.now(timezone.utc)
        }) == []

    def test_negative_actual_value(self):
        issues = validate_daily_task({"title": "Water", "status": "InProgress", "actual_value": -1})
        assert ("actual_value", "range") in _rules(issues)

    def test_notes_limit(self):
        issues = validate_daily_task({"title": "Read", "status": "NotStarted", "notes": "n" * 501})
        assert ("notes", "max_length") in _rules(issues)


class TestUserAndPhotoValidation:
    def test_bad_email(self):
        assert ("email", "format") in _rules(validate_user({"name": "Sam", "email": "not-an-email"}))

    def test_good_user(self):
        assert validate_user({"name": "Sam", "email": "sam@example.com", "height_cm": 170}) == []

    def test_photo_needs_path(self):
        assert ("file_path", "required") in _rules(validate_progress_photo({"file_path": "", "angle": "Front"}))

    def test_photo_iteration_starts_at_one(self):
        issues = validate_progress_photo({"file_path": "a.jpg", "angle": "Back", "challenge_iteration": 0})
        assert ("challenge_iteration", "range") in _rules(issues)


class TestChallengeUpdateRules:
    """Structural fields freeze once a challenge starts."""

    def test_not_started_can_change_duration(self):
        assert validate_challenge_update(_challenge(), {"duration_in_days": 45}) == []

    def test_started_cannot_change_duration(self):
        started = _challenge(status="InProgress", start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        issues = validate_challenge_update(started, {"duration_in_days": 45})
        assert ("duration_in_days", "business_rule") in _rules(issues)

    def test_started_can_rename(self):
        started = _challenge(status="InProgress", start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        assert validate_challenge_update(started, {"name": "New name"}) == []


class TestRaiseForIssues:
    def test_no_issues_is_silent(self):
        raise_for_issues([])

    def test_raises_with_every_issue(self):
        issues = validate_challenge(_challenge(name="", duration_in_days=400))
        with pytest.raises(ValidationError) as exc_info:
            raise_for_issues(issues)
        error = exc_info.value
        assert error.status_code == 422
        assert error.has("name", "required")
        assert error.has("duration_in_days", "range")
        assert len(error.to_dict()["errors"]) == len(issues)

    def test_pydantic_payload_is_accepted(self):
        payload = ChallengeCreate(name="Walks", description="Walk daily", duration_in_days=0)
        assert ("duration_in_days", "range") in _rules(validate_challenge(payload))
