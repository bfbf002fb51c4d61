"""
Database Module

Async SQLAlchemy engine, session factory and the FastAPI session dependency.

Usage in endpoints:
    @router.get("/")
    async def my_endpoint(db: AsyncSession = Depends(get_db)):
        ...

Usage in background jobs (no request scope):
    async with AsyncSessionLocal() as session:
        ...
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.core.config import settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base. All models inherit from this."""
    pass


# ============================================================
# Engine and Session Factory
# ============================================================

def _engine_kwargs(url: str) -> dict:
    """SQLite doesn't support pool sizing, PostgreSQL gets a real pool."""
    kwargs = {"echo": settings.SQLALCHEMY_ECHO}
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = 10
        kwargs["max_overflow"] = 10
        kwargs["pool_pre_ping"] = True
    return kwargs


engine = create_async_engine(
    settings.DATABASE_URL,
    **_engine_kwargs(settings.DATABASE_URL)
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ============================================================
# FastAPI Dependency
# ============================================================

async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a database session per request, rolling back on error."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Session factory for work that outlives the request session, such as a
    streaming response persisting after the handler returned.
    """
    return AsyncSessionLocal


# ============================================================
# Health Check / Lifecycle
# ============================================================

async def check_db_connection() -> bool:
    """
    Check if the database is reachable.

    Returns:
        True if a trivial query succeeds, False otherwise
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def close_db() -> None:
    """Dispose the engine. Called on shutdown."""
    await engine.dispose()
    logger.info("Database engine disposed")
