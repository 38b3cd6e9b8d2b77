"""Database configuration, async session management and transaction scopes."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from .config import settings
from .exceptions import ConcurrencyConflictError, PersistenceFailureError, ProblemDetailsException
from .observability import metrics_collector

logger = logging.getLogger(__name__)

# SQLSTATE codes that mean "contention, try again" rather than "broken"
RETRYABLE_SQLSTATES = {
    "40001",  # serialization_failure
    "40P01",  # deadlock_detected
    "55P03",  # lock_not_available
    "57014",  # query_canceled (statement_timeout)
    "23P01",  # exclusion_violation
}


# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    future=True,
    pool_pre_ping=True,
    # Use StaticPool for SQLite in-memory databases (if needed for testing)
    poolclass=StaticPool if "sqlite" in settings.database_url else None,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {},
)

# Create async session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

# Create declarative base for models
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp matching the timezone-less timestamp columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def is_postgres(session: AsyncSession) -> bool:
    """Return True when the session is bound to a PostgreSQL engine."""
    return session.bind is not None and session.bind.dialect.name == "postgresql"


def _sqlstate(exc: DBAPIError) -> str | None:
    orig = getattr(exc, "orig", None)
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def translate_db_error(exc: SQLAlchemyError, operation: str) -> ProblemDetailsException:
    """
    Map a storage error onto the service's error kinds.

    Contention (lock timeouts, serialization failures, deadlocks, exclusion
    violations) becomes a retryable ConcurrencyConflictError; anything else is a
    PersistenceFailureError.
    """
    if isinstance(exc, DBAPIError) and _sqlstate(exc) in RETRYABLE_SQLSTATES:
        return ConcurrencyConflictError(
            detail=f"Transaction for {operation} aborted due to contention",
            operation=operation,
        )
    return PersistenceFailureError(
        detail=f"Storage failure during {operation}",
        operation=operation,
    )


@asynccontextmanager
async def transactional(session: AsyncSession, operation: str) -> AsyncGenerator[AsyncSession, None]:
    """
    Run a unit of work that either commits fully or rolls back fully.

    Business errors raised inside the block propagate unchanged after the
    rollback; raw storage errors are translated via translate_db_error.
    """
    if is_postgres(session):
        # SET does not take bind parameters; set_config(..., is_local=true) is the equivalent
        await session.execute(
            text("SELECT set_config('statement_timeout', :timeout, true)"),
            {"timeout": str(settings.statement_timeout_ms)},
        )
        await session.execute(
            text("SELECT set_config('lock_timeout', :timeout, true)"),
            {"timeout": str(int(settings.lock_timeout_seconds * 1000))},
        )

    try:
        yield session
        await session.commit()
    except ProblemDetailsException:
        await session.rollback()
        raise
    except SQLAlchemyError as e:
        await session.rollback()
        error = translate_db_error(e, operation)
        if isinstance(error, ConcurrencyConflictError):
            metrics_collector.record_concurrency_conflict(operation)
        logger.error(
            "Transaction rolled back after storage error",
            extra={
                "operation": operation,
                "sqlstate": _sqlstate(e) if isinstance(e, DBAPIError) else None,
                "retryable": isinstance(error, ConcurrencyConflictError),
                "error": str(e),
            },
        )
        raise error from e
    except BaseException:
        await session.rollback()
        raise


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields database sessions.

    Yields:
        AsyncSession: Database session
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Alias for FastAPI dependency injection
get_db = get_async_session


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
