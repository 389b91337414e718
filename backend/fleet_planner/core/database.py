"""
Database connection and session management.

Features:
- Connection pooling with configurable size
- Automatic connection recycling
- Pre-ping for connection health checking
- Statement timeout for long-running queries
- Unit-of-work helper that commits or rolls back as a whole
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import Pool

from fleet_planner.core.config import settings
from fleet_planner.core.exceptions import ConcurrencyConflictException

logger = logging.getLogger(__name__)

# SQLSTATE codes PostgreSQL uses for serialization failures and deadlocks
SERIALIZATION_FAILURE_CODES = frozenset({"40001", "40P01"})


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""


engine = create_async_engine(
    settings.DATABASE_URL,
    pool_size=settings.DATABASE_POOL_SIZE,
    max_overflow=settings.DATABASE_MAX_OVERFLOW,
    pool_recycle=settings.DATABASE_POOL_RECYCLE,
    pool_timeout=settings.DATABASE_POOL_TIMEOUT,
    pool_pre_ping=settings.DATABASE_POOL_PRE_PING,
    echo=settings.DEBUG,
    connect_args={
        "server_settings": {
            "statement_timeout": str(settings.DATABASE_STATEMENT_TIMEOUT),
        },
    },
)


@event.listens_for(Pool, "connect")
def on_connect(dbapi_conn, connection_rec):
    """Called when a new connection is created."""
    logger.info(f"New database connection created: {id(dbapi_conn)}")


@event.listens_for(Pool, "invalidate")
def on_invalidate(dbapi_conn, connection_rec, exception):
    """Called when a connection is invalidated."""
    logger.warning(f"Connection invalidated: {id(dbapi_conn)}, reason: {exception}")


AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


def is_serialization_failure(exc: DBAPIError) -> bool:
    """Check whether a driver error is a serialization failure or deadlock."""
    orig = exc.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code in SERIALIZATION_FAILURE_CODES


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block of store calls as one all-or-nothing transaction.

    Commits when the block finishes and rolls back on any exception, so
    callers never observe partial writes. Serialization failures reported
    by the database are re-raised as ConcurrencyConflictException; they
    are not retried.

    Usage:
        async with unit_of_work(db):
            ...
    """
    try:
        yield db
        await db.commit()
    except DBAPIError as e:
        await db.rollback()
        if is_serialization_failure(e):
            logger.warning(f"Transaction aborted by serialization failure: {e.orig}")
            raise ConcurrencyConflictException() from e
        raise
    except BaseException:
        await db.rollback()
        raise


async def init_db() -> None:
    """Initialize database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized")


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
    logger.info("Database connections closed")


async def get_pool_status() -> dict:
    """
    Get connection pool status for monitoring.

    Returns:
        Dictionary with pool statistics
    """
    pool = engine.pool
    return {
        "pool_size": pool.size(),
        "checked_in": pool.checkedin(),
        "checked_out": pool.checkedout(),
        "overflow": pool.overflow(),
        "max_overflow": settings.DATABASE_MAX_OVERFLOW,
        "pool_recycle_seconds": settings.DATABASE_POOL_RECYCLE,
    }


async def check_db_connection(db: AsyncSession) -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        await db.execute(text("SELECT 1"))
        return True
    except DBAPIError as e:
        logger.error(f"Database connection check failed: {e}")
        return False
