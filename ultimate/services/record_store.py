"""
Record Store

Thin CRUD wrapper per entity: create, get, update, soft-delete and
list-all, each validated before anything is written. Soft-deleted rows
stay in the table with is_deleted set; every lookup except get_raw
skips them.

Writes commit by default through run_in_transaction (retry with backoff,
then PersistenceError). Pass commit=False to stage a write inside a
larger transaction owned by the caller.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Generic, List, Optional, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session

from ultimate.core.database import run_in_transaction
from ultimate.core.exceptions import NotFoundError, ValidationError, ValidationIssue
from ultimate.models import Challenge, DailyTask, ProgressPhoto, Task, User
from ultimate.services.validation import (
    raise_for_issues,
    validate_challenge,
    validate_daily_task,
    validate_progress_photo,
    validate_task,
    validate_user,
)

logger = logging.getLogger(__name__)

M = TypeVar("M")
Validator = Callable[[Session, Any], List[ValidationIssue]]


def as_uuid(value: Any, resource: str) -> uuid.UUID:
    """Coerce an id from a path or payload; malformed ids are simply not found."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise NotFoundError(resource, value)


def apply_column_defaults(obj: Any) -> None:
    """
    Fill unset columns with their Python-side defaults.

    Defaults normally land at flush time; validation runs before that and
    needs to see the real status, progress and id values.
    """
    for column in obj.__table__.columns:
        if column.default is None or getattr(obj, column.key, None) is not None:
            continue
        default = column.default
        if default.is_scalar:
            setattr(obj, column.key, default.arg)
        elif default.is_callable:
            setattr(obj, column.key, default.arg(None))


class RecordStore(Generic[M]):
    """CRUD over one model, with validation on every write."""

    def __init__(self, model: Type[M], resource: str, validator: Validator):
        self.model = model
        self.resource = resource
        self.validator = validator

    def validate(self, db: Session, obj: M) -> None:
        raise_for_issues(self.validator(db, obj))

    def _write(self, db: Session, work: Callable[[Session], M], commit: bool, description: str) -> M:
        if commit:
            return run_in_transaction(db, work, description)
        return work(db)

    def create(self, db: Session, commit: bool = True, **fields) -> M:
        obj = self.model(**fields)
        apply_column_defaults(obj)
        self.validate(db, obj)

        def work(session: Session) -> M:
            session.add(obj)
            session.flush()
            return obj

        obj = self._write(db, work, commit, f"create {self.resource}")
        logger.debug(f"Created {self.resource} {obj.id}")
        return obj

    def get(self, db: Session, record_id: Any) -> M:
        """Live record by id; raises NotFoundError if missing or soft-deleted."""
        obj = (
            db.query(self.model)
            .filter(self.model.id == as_uuid(record_id, self.resource), self.model.is_deleted.is_(False))
            .first()
        )
        if obj is None:
            raise NotFoundError(self.resource, record_id)
        return obj

    def get_raw(self, db: Session, record_id: Any) -> Optional[M]:
        """Direct lookup that also returns soft-deleted rows."""
        try:
            key = as_uuid(record_id, self.resource)
        except NotFoundError:
            return None
        return db.get(self.model, key)

    def update(self, db: Session, record_id: Any, commit: bool = True, **changes) -> M:
        self.get(db, record_id)
        unknown = [name for name in changes if name not in self.model.__table__.columns.keys()]
        if unknown:
            raise ValidationError([
                ValidationIssue(name, "format", f"Unknown field '{name}'") for name in unknown
            ])

        # A retry starts from a rolled-back session, so the row is fetched
        # and the changes applied again on every attempt.
        def work(session: Session) -> M:
            obj = self.get(session, record_id)
            for name, value in changes.items():
                setattr(obj, name, value)
            self.validate(session, obj)
            session.flush()
            return obj

        return self._write(db, work, commit, f"update {self.resource}")

    def soft_delete(self, db: Session, record_id: Any, commit: bool = True) -> M:
        def work(session: Session) -> M:
            obj = self.get(session, record_id)
            obj.is_deleted = True
            obj.deleted_at = datetime.now(timezone.utc)
            session.flush()
            return obj

        obj = self._write(db, work, commit, f"delete {self.resource}")
        logger.info(f"Soft-deleted {self.resource} {obj.id}")
        return obj

    def list_all(self, db: Session) -> List[M]:
        return (
            db.query(self.model)
            .filter(self.model.is_deleted.is_(False))
            .order_by(self.model.created_at, self.model.id)
            .all()
        )


def count_live_tasks(db: Session, challenge_id: Any) -> int:
    if challenge_id is None:
        return 0
    return (
        db.query(func.count(Task.id))
        .filter(Task.challenge_id == challenge_id, Task.is_deleted.is_(False))
        .scalar()
    ) or 0


def _check_challenge(db: Session, challenge: Challenge) -> List[ValidationIssue]:
    return validate_challenge(challenge, task_count=count_live_tasks(db, challenge.id))


challenges: RecordStore[Challenge] = RecordStore(Challenge, "Challenge", _check_challenge)
tasks: RecordStore[Task] = RecordStore(Task, "Task", lambda db, obj: validate_task(obj))
daily_tasks: RecordStore[DailyTask] = RecordStore(DailyTask, "DailyTask", lambda db, obj: validate_daily_task(obj))
users: RecordStore[User] = RecordStore(User, "User", lambda db, obj: validate_user(obj))
photos: RecordStore[ProgressPhoto] = RecordStore(ProgressPhoto, "ProgressPhoto", lambda db, obj: validate_progress_photo(obj))
