"""
Schema migrations — Alembic, driven programmatically.

The migration scripts live in ``forecast_service/migrations``; the database
URL comes from settings, so no alembic.ini is needed at runtime.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config

from forecast_service.app.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


def alembic_config(config: Optional[Settings] = None) -> Config:
    config = config or default_settings
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    # configparser interpolation: escape '%' in URL-encoded passwords
    cfg.set_main_option("sqlalchemy.url", config.DATABASE_URL.replace("%", "%%"))
    return cfg


def run_migrations(config: Optional[Settings] = None, revision: str = "head") -> None:
    """Upgrade the database schema to ``revision``."""
    cfg = alembic_config(config)
    logger.info("Applying migrations up to %s", revision)
    command.upgrade(cfg, revision)
    logger.info("Database schema is at %s", revision)
