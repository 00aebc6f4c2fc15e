"""Shared fixtures: file-backed SQLite databases and test settings."""

from __future__ import annotations

from contextlib import asynccontextmanager

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from forecast_service.app.core.config import Settings
from forecast_service.app.core.database import build_session_factory, init_db


@pytest.fixture
def db_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'forecasts.db'}"


@pytest.fixture
def make_settings(db_url):
    """Settings pointing at the per-test database, Kafka off, no job delay."""
    def _make(**overrides) -> Settings:
        values = dict(
            DATABASE_URL=db_url,
            DATABASE_CREATE_TABLES=True,
            ENVIRONMENT="test",
            KAFKA_ENABLED=False,
            KAFKA_REDELIVERY_DELAY_SECONDS=0.0,
            KAFKA_POLL_TIMEOUT_MS=10,
            JOBS_ENABLED=True,
            JOB_DELAY_SECONDS=0.0,
            HEARTBEAT_INTERVAL_SECONDS=3600.0,
        )
        values.update(overrides)
        return Settings(**values)
    return _make


@pytest.fixture
def open_database(db_url):
    """
    Async context manager yielding a session factory over a fresh schema.

    Must be entered inside the event loop that uses it:

        async def scenario():
            async with open_database() as session_factory:
                ...
    """
    @asynccontextmanager
    async def _open(create_tables: bool = True):
        engine = create_async_engine(db_url)
        if create_tables:
            await init_db(engine)
        try:
            yield build_session_factory(engine)
        finally:
            await engine.dispose()
    return _open
