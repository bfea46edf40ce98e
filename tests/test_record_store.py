"""
Tests for the record store: validated CRUD with soft delete.
"""

import uuid

import pytest
from sqlalchemy.exc import OperationalError

from ultimate.core.exceptions import NotFoundError, ValidationError
from ultimate.models import Challenge, ChallengeStatus, Task
from ultimate.services import record_store


def _create_challenge(db, **overrides):
    fields = {"name": "Morning Routine", "description": "Build a morning routine", "duration_in_days": 21}
    fields.update(overrides)
    return record_store.challenges.create(db, **fields)


class TestCreate:
    def test_create_applies_defaults(self, db_session):
        challenge = _create_challenge(db_session)
        assert challenge.id is not None
        assert challenge.status == ChallengeStatus.NOT_STARTED.value
        assert challenge.progress == 0.0
        assert challenge.is_deleted is False

    def test_invalid_record_is_not_written(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            _create_challenge(db_session, duration_in_days=0)
        assert exc_info.value.has("duration_in_days", "range")
        assert db_session.query(Challenge).count() == 0

    def test_create_without_commit_stays_in_callers_transaction(self, db_session):
        challenge = _create_challenge(db_session, commit=False)
        db_session.rollback()
        assert record_store.challenges.get_raw(db_session, challenge.id) is None


class TestGet:
    def test_get_returns_live_record(self, db_session):
        challenge = _create_challenge(db_session)
        assert record_store.challenges.get(db_session, str(challenge.id)).id == challenge.id

    def test_get_missing_raises_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            record_store.challenges.get(db_session, uuid.uuid4())

    def test_malformed_id_is_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            record_store.challenges.get(db_session, "not-a-uuid")
        assert record_store.challenges.get_raw(db_session, "not-a-uuid") is None


class TestUpdate:
    def test_update_persists_changes(self, db_session):
        challenge = _create_challenge(db_session)
        record_store.challenges.update(db_session, challenge.id, name="Evening Routine")
        assert record_store.challenges.get(db_session, challenge.id).name == "Evening Routine"

    def test_invalid_update_is_rolled_back(self, db_session):
        challenge = _create_challenge(db_session)
        with pytest.raises(ValidationError):
            record_store.challenges.update(db_session, challenge.id, name="")
        assert record_store.challenges.get(db_session, challenge.id).name == "Morning Routine"

    def test_unknown_field_is_rejected(self, db_session):
        challenge = _create_challenge(db_session)
        with pytest.raises(ValidationError) as exc_info:
            record_store.challenges.update(db_session, challenge.id, colour="blue")
        assert exc_info.value.has("colour", "format")


class TestSoftDelete:
    """Deleted rows disappear from lookups but stay in the table."""

    def test_get_raises_after_delete(self, db_session):
        challenge = _create_challenge(db_session)
        record_store.challenges.soft_delete(db_session, challenge.id)
        with pytest.raises(NotFoundError):
            record_store.challenges.get(db_session, challenge.id)

    def test_get_raw_still_returns_deleted_row(self, db_session):
        challenge = _create_challenge(db_session)
        record_store.challenges.soft_delete(db_session, challenge.id)
        raw = record_store.challenges.get_raw(db_session, challenge.id)
        assert raw is not None
        assert raw.is_deleted is True
        assert raw.deleted_at is not None

    def test_list_all_skips_deleted(self, db_session):
        keep = _create_challenge(db_session, name="Keep")
        drop = _create_challenge(db_session, name="Drop")
        record_store.challenges.soft_delete(db_session, drop.id)
        assert [c.id for c in record_store.challenges.list_all(db_session)] == [keep.id]

    def test_deleting_twice_is_not_found(self, db_session):
        challenge = _create_challenge(db_session)
        record_store.challenges.soft_delete(db_session, challenge.id)
        with pytest.raises(NotFoundError):
            record_store.challenges.soft_delete(db_session, challenge.id)


class TestTransientFailures:
    """A write that hits a locked database once is retried and still lands."""

    @pytest.fixture
    def fail_next_flush(self, db_session, monkeypatch):
        """Calling the returned function makes the session's next flush raise once."""
        original = db_session.flush
        state = {"armed": False, "raised": 0}

        def flaky_flush(*args, **kwargs):
            if state["armed"]:
                state["armed"] = False
                state["raised"] += 1
                raise OperationalError("UPDATE", {}, Exception("database is locked"))
            return original(*args, **kwargs)

        def arm():
            state["armed"] = True
            return state

        monkeypatch.setattr(db_session, "flush", flaky_flush)
        return arm

    def test_update_is_reapplied_after_retry(self, db_session, fail_next_flush):
        challenge = _create_challenge(db_session)
        state = fail_next_flush()

        returned = record_store.challenges.update(db_session, challenge.id, name="Evening Routine")

        assert state["raised"] == 1
        assert returned.name == "Evening Routine"
        db_session.expunge_all()
        assert record_store.challenges.get(db_session, challenge.id).name == "Evening Routine"

    def test_soft_delete_is_reapplied_after_retry(self, db_session, fail_next_flush):
        challenge = _create_challenge(db_session)
        state = fail_next_flush()

        returned = record_store.challenges.soft_delete(db_session, challenge.id)

        assert state["raised"] == 1
        assert returned.is_deleted is True
        db_session.expunge_all()
        with pytest.raises(NotFoundError):
            record_store.challenges.get(db_session, challenge.id)
        assert record_store.challenges.get_raw(db_session, challenge.id).is_deleted is True


class TestChallengeTaskCount:
    """The challenge store checks the live task count on every write."""

    def test_fixed_structure_counted_from_store(self, db_session, make_challenge):
        challenge = make_challenge(
            status=ChallengeStatus.NOT_STARTED,
            tasks=[{}, {}, {}],
        )
        with pytest.raises(ValidationError) as exc_info:
            record_store.challenges.update(db_session, challenge.id, type="75Hard")
        assert exc_info.value.has("tasks", "business_rule")

    def test_deleted_tasks_are_not_counted(self, db_session, make_challenge):
        challenge = make_challenge(status=ChallengeStatus.NOT_STARTED, tasks=[{}, {}])
        task = db_session.query(Task).filter_by(challenge_id=challenge.id).first()
        record_store.tasks.soft_delete(db_session, task.id)
        assert record_store.count_live_tasks(db_session, challenge.id) == 1


class TestOtherStores:
    def test_user_email_is_validated(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            record_store.users.create(db_session, name="Alex", email="alex-at-example")
        assert exc_info.value.has("email", "format")

    def test_user_defaults(self, db_session):
        user = record_store.users.create(db_session, name="Alex")
        assert user.appearance_preference == "system"
        assert user.language_code == "en"
        assert user.has_completed_onboarding is False

    def test_photo_for_challenge(self, db_session, make_challenge):
        challenge = make_challenge()
        photo = record_store.photos.create(
            db_session, challenge_id=challenge.id, date=challenge.start_date, file_path="photos/day1.jpg"
        )
        assert photo.angle == "Front"
        assert photo.challenge_iteration == 1
