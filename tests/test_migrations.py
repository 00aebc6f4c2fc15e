"""
test_migrations.py — Alembic migrations applied to a SQLite file.

Run with:
    pytest tests/test_migrations.py -v
"""

from __future__ import annotations

import sqlite3

import pytest

from forecast_service.app.core.migrations import alembic_config, run_migrations
from forecast_service.app.forecasts.models import UNIQUE_KEY_INDEX


@pytest.fixture
def db_file(tmp_path):
    return tmp_path / "migrated.db"


@pytest.fixture
def migrated(db_file, make_settings):
    config = make_settings(DATABASE_URL=f"sqlite+aiosqlite:///{db_file}")
    run_migrations(config)
    return db_file


def _columns(db_file) -> set:
    with sqlite3.connect(db_file) as conn:
        return {row[1] for row in conn.execute("PRAGMA table_info(forecasts)")}


def _indexes(db_file) -> set:
    with sqlite3.connect(db_file) as conn:
        return {row[1] for row in conn.execute("PRAGMA index_list(forecasts)")}


class TestMigrations:

    def test_upgrade_creates_forecast_table(self, migrated):
        assert _columns(migrated) == {"id", "date", "temperature_c", "summary", "location"}
        assert UNIQUE_KEY_INDEX in _indexes(migrated)

    def test_unique_key_treats_missing_location_as_one_value(self, migrated):
        with sqlite3.connect(migrated) as conn:
            conn.execute(
                "INSERT INTO forecasts (date, temperature_c, summary) VALUES ('2024-01-01', 1, 'a')"
            )
            conn.execute(
                "INSERT INTO forecasts (date, temperature_c, summary, location) "
                "VALUES ('2024-01-01', 2, 'b', 'Oslo')"
            )
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO forecasts (date, temperature_c, summary) "
                    "VALUES ('2024-01-01', 3, 'c')"
                )

    def test_upgrade_is_repeatable(self, migrated, make_settings):
        run_migrations(make_settings(DATABASE_URL=f"sqlite+aiosqlite:///{migrated}"))
        assert "location" in _columns(migrated)

    def test_first_revision_has_no_location(self, db_file, make_settings):
        run_migrations(make_settings(DATABASE_URL=f"sqlite+aiosqlite:///{db_file}"), revision="001")
        assert "location" not in _columns(db_file)

    def test_config_escapes_percent_in_url(self, make_settings):
        cfg = alembic_config(make_settings(DATABASE_URL="postgresql+asyncpg://u:p%40ss@db/forecasts"))
        assert cfg.get_main_option("sqlalchemy.url") == "postgresql+asyncpg://u:p%40ss@db/forecasts"
