"""
Database layer — async SQLAlchemy 2.0 (asyncpg in production, aiosqlite in tests).

Provides:
    • Async engine and session factory builders
    • Dependency injection for FastAPI routes
    • Base model for ORM entities

Usage:
    from forecast_service.app.core.database import get_db, Base

    @router.get("/forecasts")
    async def list_forecasts(db: AsyncSession = Depends(get_db)):
        result = await db.execute(select(ForecastRecord))
        return result.scalars().all()
"""

from __future__ import annotations

import logging
from typing import Any, AsyncGenerator, Dict

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from forecast_service.app.core.config import Settings

logger = logging.getLogger(__name__)


# ── ORM Base ──
class Base(DeclarativeBase):
    """Declarative base for all ORM models."""
    pass


# ── Engine ──
def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine; pool sizing only applies to server databases."""
    options: Dict[str, Any] = {"echo": config.DATABASE_ECHO}
    if not config.is_sqlite:
        options["pool_size"] = config.DATABASE_POOL_SIZE
        options["max_overflow"] = config.DATABASE_MAX_OVERFLOW
        options["pool_pre_ping"] = True
    return create_async_engine(config.DATABASE_URL, **options)


# ── Session Factory ──
def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# ── Dependency ──
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields an async database session."""
    session_factory = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Lifecycle ──
async def init_db(engine: AsyncEngine) -> None:
    """Create all tables (dev/test only — use `--migrate` in production)."""
    # Registers the forecasts table on Base.metadata
    from forecast_service.app.forecasts import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


async def ping_db(engine: AsyncEngine) -> None:
    """Round-trip a trivial query; raises if the database is unreachable."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def close_db(engine: AsyncEngine) -> None:
    """Dispose engine connections."""
    await engine.dispose()
    logger.info("Database connections closed")
