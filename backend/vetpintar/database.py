"""
VetPintar Backend — Database Session Management
=================================================

What:  Async SQLAlchemy engine, session factory, declarative base and the
       FastAPI session dependency.
How:   One pooled async engine per process; one session per request that
       commits on success and rolls back on error.
Who:   Route handlers (via Depends), the WebSocket endpoint, Alembic and the
       seed CLI.

Connection Pooling:
    pool_size=20, max_overflow=10  → at most 30 connections per process
    pool_pre_ping                  → stale connections are replaced before use
    pool_recycle=3600              → connections are recycled hourly
"""

import logging
from typing import AsyncGenerator, Awaitable, Callable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from vetpintar.config import settings

logger = logging.getLogger(__name__)

# session.info key holding coroutines to run once the session has committed
AFTER_COMMIT_KEY = "after_commit"


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=3600,
    # SQL echo only in DEBUG; very noisy otherwise
    echo=settings.log_level == "DEBUG",
)

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: objects stay readable after commit, which async
# sessions need because expired attributes cannot lazy-load.
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares one metadata object so Alembic sees every table.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction, then runs the callbacks
           queued with `after_commit()` (real-time events)
        4. On error: drops queued callbacks, rolls back and re-raises for
           the global error handler
        5. Always: closes the session (returns connection to pool)

    Example usage in a route:
        @router.get("/patients")
        async def list_patients(db: AsyncSession = Depends(get_db_session)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            session.info.pop(AFTER_COMMIT_KEY, None)
            await session.rollback()
            raise
        finally:
            await session.close()
        await run_after_commit(session)


# ── Post-Commit Callbacks ─────────────────────────────────────────────────
def after_commit(session: AsyncSession, callback: Callable[[], Awaitable[None]]) -> None:
    """Queues `callback` to run only if `session` commits."""
    session.info.setdefault(AFTER_COMMIT_KEY, []).append(callback)


async def run_after_commit(session: AsyncSession) -> None:
    """Runs and clears queued callbacks. A failing callback is logged, not raised."""
    for callback in session.info.pop(AFTER_COMMIT_KEY, []):
        try:
            await callback()
        except Exception as e:
            logger.error("After-commit callback failed: %s", e, exc_info=True)


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def check_database() -> bool:
    """Runs SELECT 1 against the pool. Used by the health endpoint."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    return True


async def dispose_engine() -> None:
    """
    What:  Gracefully closes all connections in the pool.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
