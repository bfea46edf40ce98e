"""
Pytest configuration and fixtures

Every test gets its own in-memory SQLite database built from the models,
so nothing leaks between tests and no server is needed.
"""
import pytest
from datetime import date, timedelta
from typing import Dict, List, Optional

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ultimate.core import events
from ultimate.core.config import settings
from ultimate.core.database import Base, build_engine, get_db
from ultimate.models import Challenge, ChallengeStatus, ChallengeType, DailyTask, Task, TaskCompletionStatus

# 2024-01-01 is a Monday
MONDAY = date(2024, 1, 1)


@pytest.fixture(scope="function")
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Session on a fresh database; discarded with the engine after the test."""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def isolated_event_handlers():
    """Handlers subscribed during a test do not outlive it."""
    saved = {name: list(handlers) for name, handlers in events._event_handlers.items()}
    yield
    events._event_handlers.clear()
    events._event_handlers.update(saved)


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    """Retry backoff is real time; tests don't wait for it."""
    monkeypatch.setattr(settings, "DB_RETRY_BASE_DELAY_S", 0.0)


@pytest.fixture
def make_challenge(db_session):
    """
    Factory for a challenge with tasks, written straight to the store.

    tasks is a list of dicts with Task column values; name and description
    get defaults. In-progress challenges get start/end dates from start.
    """
    def _make(
        start: date = MONDAY,
        duration: int = 10,
        tasks: Optional[List[Dict]] = None,
        status: ChallengeStatus = ChallengeStatus.IN_PROGRESS,
        challenge_type: ChallengeType = ChallengeType.CUSTOM,
        name: str = "Test Challenge",
    ) -> Challenge:
        challenge = Challenge(
            name=name,
            description="A challenge used in tests",
            duration_in_days=duration,
            type=challenge_type.value,
            status=status.value,
            progress=0.0,
        )
        if status != ChallengeStatus.NOT_STARTED:
            challenge.start_date = start
            challenge.end_date = start + timedelta(days=duration)
        db_session.add(challenge)
        db_session.flush()

        for position, overrides in enumerate(tasks if tasks is not None else [{}]):
            fields = {"name": f"Task {position + 1}", "description": "Do the thing", **overrides}
            db_session.add(Task(challenge_id=challenge.id, position=position, **fields))
        db_session.commit()
        return challenge

    return _make


@pytest.fixture
def set_daily_statuses(db_session):
    """Mark the first `completed` DailyTasks of a challenge Completed (ordered by date)."""
    def _set(challenge: Challenge, completed: int):
        rows = (
            db_session.query(DailyTask)
            .filter(DailyTask.challenge_id == challenge.id)
            .order_by(DailyTask.date)
            .all()
        )
        for row in rows[:completed]:
            row.status = TaskCompletionStatus.COMPLETED.value
        db_session.commit()
        return rows

    return _set


@pytest.fixture
def client(db_session):
    """TestClient whose requests share the test's database session."""
    from ultimate.main import app

    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
