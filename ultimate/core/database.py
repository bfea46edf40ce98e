"""
Database connection management.

Builds the engine from settings.DATABASE_URL, provides the session
factory and the FastAPI session dependency, and wraps write batches in
a retrying all-or-nothing transaction.
"""
import logging
import time
from typing import Callable, Iterator, Optional, TypeVar

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker, Session

from ultimate.core.config import settings
from ultimate.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine with the pool and pragmas appropriate to its dialect."""
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False, "timeout": 15})
    else:
        kwargs.setdefault("pool_size", settings.DB_POOL_SIZE)
        kwargs.setdefault("max_overflow", settings.DB_MAX_OVERFLOW)
        kwargs.setdefault("pool_timeout", settings.DB_POOL_TIMEOUT)
        kwargs.setdefault("pool_recycle", settings.DB_POOL_RECYCLE)
        kwargs.setdefault("pool_pre_ping", True)

    new_engine = create_engine(url, echo=settings.DEBUG, **kwargs)

    if new_engine.dialect.name == "sqlite":
        @event.listens_for(new_engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """Enforce foreign keys on every SQLite connection."""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return new_engine


engine = build_engine(settings.DATABASE_URL)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,  # Prevent lazy loading issues
)

Base = declarative_base()


def get_db() -> Iterator[Session]:
    """
    Dependency for FastAPI to get database session.

    Verifies the connection with a short retry loop, commits when the
    request handler returns and rolls back if it raises.
    """
    db = None
    max_retries = 3
    retry_delay = 0.1  # 100ms initial delay

    for attempt in range(max_retries):
        try:
            db = SessionLocal()
            db.execute(text("SELECT 1"))
            break
        except OperationalError as e:
            if db:
                db.close()
            if attempt == max_retries - 1:
                logger.error(f"Failed to establish database connection after {max_retries} attempts: {e}")
                raise PersistenceError("Database unavailable", attempts=max_retries) from e
            logger.warning(f"Database connection attempt {attempt + 1} failed, retrying...")
            time.sleep(retry_delay * (2 ** attempt))

    try:
        yield db
        db.commit()
    except Exception as e:
        db.rollback()
        # Only log actual database errors, not HTTP exceptions
        from fastapi import HTTPException
        if not isinstance(e, HTTPException):
            logger.error(f"Database transaction error: {e}")
        raise
    finally:
        db.close()


def get_db_sync() -> Session:
    """
    Synchronous database session getter for scripts and background tasks.

    Note: This does NOT auto-commit or auto-rollback.
    Caller must manage transactions explicitly and close the session.
    """
    return SessionLocal()


def run_in_transaction(
    db: Session,
    work: Callable[[Session], T],
    description: str,
    attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
) -> T:
    """
    Run work(db) and commit it as one unit.

    Transient store failures (locked database, unique-constraint races)
    roll back and re-run work from scratch with exponential backoff. Once
    the attempts are used up the failure surfaces as PersistenceError.
    Any other exception rolls back and propagates unchanged, so nothing
    is ever half-written.
    """
    attempts = attempts or settings.DB_RETRY_ATTEMPTS
    delay = settings.DB_RETRY_BASE_DELAY_S if base_delay is None else base_delay

    for attempt in range(attempts):
        try:
            result = work(db)
            db.commit()
            return result
        except (OperationalError, IntegrityError) as e:
            db.rollback()
            if attempt == attempts - 1:
                logger.error(
                    f"{description} failed after {attempts} attempts: {e}",
                    extra={"extra_fields": {"operation": description, "attempts": attempts}}
                )
                raise PersistenceError(f"{description} failed after {attempts} attempts", attempts=attempts) from e
            logger.warning(f"{description} attempt {attempt + 1} failed, retrying: {e}")
            time.sleep(delay * (2 ** attempt))
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"{description} failed: {e}")
            raise PersistenceError(f"{description} failed") from e
        except Exception:
            db.rollback()
            raise

    raise PersistenceError(f"{description} failed", attempts=attempts)


def check_db_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.error(f"Database connection check failed: {e}")
        return False
