"""Database connection layer with SQLAlchemy.

Backs the ``database`` workflow store. PostgreSQL in production; any
SQLAlchemy URL works (SQLite is used by the unit tests).
"""

import functools
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Generator

from sqlalchemy import create_engine, exc, select, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from src.database.models import Base, WorkflowRecord
from src.utils.config import get_settings
from src.utils.logging_config import get_logger

# Global engine and session factory
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


class DatabaseError(Exception):
    """Base exception for database errors."""


class DatabaseConnectionError(DatabaseError):
    """Exception raised when database connection fails."""


class DatabaseRetryError(DatabaseError):
    """Exception raised when all retry attempts are exhausted."""


def _get_logger():
    """Get logger instance lazily to avoid import-time config loading."""
    return get_logger(__name__)


def _is_transient_error(error: Exception) -> bool:
    """
    Check if the error is transient and should be retried.

    Args:
        error: The exception to check

    Returns:
        True if the error is transient, False otherwise
    """
    if isinstance(error, exc.OperationalError):
        return True

    error_str = str(error).lower()
    transient_keywords = [
        "connection refused",
        "connection reset",
        "connection timed out",
        "server closed the connection",
        "could not connect",
        "connection lost",
        "deadlock",
        "lock timeout",
        "database is locked",
        "connection pool exhausted",
    ]

    return any(keyword in error_str for keyword in transient_keywords)


def retry_on_transient_error(max_retries: int | None = None, delay: float | None = None):
    """
    Decorator to retry database operations on transient errors.

    Args:
        max_retries: Maximum number of retry attempts (uses config default if None)
        delay: Initial delay between retries in seconds (uses config default if None)

    Returns:
        Decorated function with retry logic
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            settings = get_settings()
            retries = max_retries if max_retries is not None else settings.DB_MAX_RETRIES
            retry_delay = delay if delay is not None else settings.DB_RETRY_DELAY

            last_error = None
            for attempt in range(retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    last_error = e

                    if not _is_transient_error(e):
                        _get_logger().error("Non-transient database error: %s", e)
                        raise

                    if attempt < retries:
                        wait_time = retry_delay * (2**attempt)
                        _get_logger().warning(
                            "Transient database error (attempt %d/%d): %s. Retrying in %.2fs...",
                            attempt + 1,
                            retries + 1,
                            e,
                            wait_time,
                        )
                        time.sleep(wait_time)
                    else:
                        _get_logger().error(
                            "All %d retry attempts exhausted for database operation", retries + 1
                        )

            raise DatabaseRetryError(
                f"Failed after {retries + 1} attempts. Last error: {last_error}"
            ) from last_error

        return wrapper

    return decorator


def init_db(database_url: str | None = None) -> None:
    """
    Initialize database engine and session factory.

    Args:
        database_url: Overrides DATABASE_URL from settings when given

    Raises:
        DatabaseConnectionError: If no database URL is configured
        DatabaseError: If engine creation fails
    """
    global _engine, _session_factory

    settings = get_settings()
    database_url = database_url or settings.get_database_url()

    if not database_url:
        raise DatabaseConnectionError(
            "DATABASE_URL is not configured. Please set it in environment variables."
        )

    try:
        _get_logger().info("Initializing database connection...")

        engine_kwargs: dict[str, Any] = {
            "pool_pre_ping": True,
            "echo": settings.DEBUG,
        }
        # SQLite uses a singleton/static pool without sizing options
        if make_url(database_url).get_backend_name() != "sqlite":
            engine_kwargs.update(
                pool_size=settings.DB_POOL_SIZE,
                max_overflow=settings.DB_MAX_OVERFLOW,
                pool_timeout=settings.DB_POOL_TIMEOUT,
            )

        _engine = create_engine(database_url, **engine_kwargs)

        _session_factory = sessionmaker(
            bind=_engine,
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )

        _get_logger().info("Database initialized successfully")

    except Exception as e:
        _get_logger().error("Failed to initialize database: %s", e)
        raise DatabaseError(f"Database initialization failed: {e}") from e


def create_tables() -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(get_engine())


def get_engine() -> Engine:
    """
    Get the SQLAlchemy engine instance.

    Returns:
        The initialized engine

    Raises:
        DatabaseError: If engine is not initialized
    """
    if _engine is None:
        raise DatabaseError("Database engine not initialized. Call init_db() first.")
    return _engine


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Automatically handles session lifecycle:
    - Creates session
    - Commits on success
    - Rolls back on error
    - Closes session

    Usage:
        with get_session() as session:
            records = list_workflow_records(session)

    Yields:
        Database session

    Raises:
        DatabaseError: If session factory is not initialized
    """
    if _session_factory is None:
        raise DatabaseError("Database session factory not initialized. Call init_db() first.")

    session = _session_factory()
    try:
        yield session
        session.commit()
        _get_logger().debug("Database session committed successfully")
    except Exception as e:
        session.rollback()
        _get_logger().error("Database session rolled back due to error: %s", e)
        raise
    finally:
        session.close()
        _get_logger().debug("Database session closed")


@retry_on_transient_error()
def health_check() -> bool:
    """
    Check database connectivity.

    Returns:
        True if database is accessible

    Raises:
        DatabaseError: If engine is not initialized
        DatabaseRetryError: If all retry attempts fail
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            _get_logger().info("Database health check passed")
            return True
    except Exception as e:
        _get_logger().error("Database health check failed: %s", e)
        raise


def close_db() -> None:
    """
    Close database connections and cleanup resources.

    Disposes of the engine and clears global state.
    """
    global _engine, _session_factory

    if _engine is not None:
        _get_logger().info("Closing database connections...")
        _engine.dispose()
        _engine = None
        _session_factory = None
        _get_logger().info("Database connections closed")


# ============================================================================
# CRUD Helpers
# ============================================================================


def list_workflow_records(session: Session) -> list[WorkflowRecord]:
    """
    Get all workflow rows in catalog order.

    Args:
        session: SQLAlchemy session

    Returns:
        Rows ordered by position, then creation time
    """
    stmt = select(WorkflowRecord).order_by(
        WorkflowRecord.position, WorkflowRecord.created_at
    )
    return list(session.scalars(stmt))


def get_workflow_record(session: Session, workflow_id: str) -> WorkflowRecord | None:
    """
    Get workflow row by ID.

    Args:
        session: SQLAlchemy session
        workflow_id: Workflow ID

    Returns:
        WorkflowRecord instance or None if not found
    """
    return session.get(WorkflowRecord, workflow_id)


def upsert_workflow_record(session: Session, document: dict) -> WorkflowRecord:
    """
    Insert or replace a workflow row from its persisted document.

    New rows are appended at the end of the catalog order.

    Args:
        session: SQLAlchemy session (caller must commit)
        document: Workflow document with id, name, description, protected, steps

    Returns:
        The stored WorkflowRecord

    Raises:
        ValueError: If the document has no id
    """
    workflow_id = document.get("id")
    if not workflow_id:
        raise ValueError("Workflow document must carry an id")

    record = session.get(WorkflowRecord, workflow_id)
    if record is None:
        last_position = session.scalar(
            select(WorkflowRecord.position).order_by(WorkflowRecord.position.desc()).limit(1)
        )
        record = WorkflowRecord(
            id=workflow_id,
            position=0 if last_position is None else last_position + 1,
        )
        session.add(record)

    record.name = document["name"]
    record.description = document.get("description") or ""
    record.protected = bool(document.get("protected", False))
    record.steps = document.get("steps") or []
    record.updated_at = datetime.now(timezone.utc)

    session.flush()
    return record


def delete_workflow_record(session: Session, workflow_id: str) -> bool:
    """
    Delete workflow row by ID.

    Args:
        session: SQLAlchemy session (caller must commit)
        workflow_id: Workflow ID

    Returns:
        True if a row was deleted, False if none existed
    """
    record = session.get(WorkflowRecord, workflow_id)
    if record is None:
        return False
    session.delete(record)
    session.flush()
    return True
