"""Database configuration and connection management."""

import asyncio
import time
from collections.abc import AsyncGenerator, Awaitable
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from telehealth.config import settings

T = TypeVar("T")

# Convert sync PostgreSQL URL to async
DATABASE_URL = settings.database_url.replace("postgresql://", "postgresql+asyncpg://")


def _engine_options() -> dict[str, Any]:
    """Connection pool options for the configured backend."""
    if settings.is_sqlite:
        return {"echo": settings.debug}

    return {
        "echo": settings.debug,
        "pool_pre_ping": True,
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,
        "connect_args": {
            "server_settings": {
                "application_name": settings.app_name,
            },
            "command_timeout": settings.db_operation_timeout_seconds,
        },
    }


# Create async engine with connection pooling
engine: AsyncEngine = create_async_engine(DATABASE_URL, **_engine_options())

# Async session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def bounded(awaitable: Awaitable[T], timeout: float | None = None) -> T:
    """
    Await a backing-store call with an upper time bound.

    Args:
        awaitable: Pending database call
        timeout: Seconds to wait, defaults to DB_OPERATION_TIMEOUT_SECONDS

    Returns:
        Result of the call

    Raises:
        TimeoutError: If the call did not finish in time
    """
    limit = settings.db_operation_timeout_seconds if timeout is None else timeout
    return await asyncio.wait_for(awaitable, timeout=limit)


async def database_latency_ms() -> float | None:
    """Round-trip time of a trivial query, or None if the store is down or slower than the bound."""
    started = time.perf_counter()
    try:
        async with engine.connect() as conn:
            await bounded(conn.execute(text("SELECT 1")))
    except Exception:
        return None
    return round((time.perf_counter() - started) * 1000, 2)


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    return await database_latency_ms() is not None
