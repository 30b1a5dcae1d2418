"""
Define application startup and shutdown procedures
"""

import re
from contextlib import asynccontextmanager
from fastapi import FastAPI

from core.cache import init_cache, close_cache
from core.config import get_settings
from core.db import create_db_and_tables
from core.logger import logger


def _log_setting(key: str, value):
    """Log a setting, masking sensitive values like passwords and secrets"""
    if ("PASSWORD" in key or "SECRET" in key) and value is not None:
        logger.info("  %s: %s", key, "*****")
    elif key in ("SQLALCHEMY_DATABASE_URI", "REDIS_URL") and value is not None:
        # Mask password in connection URIs if present
        masked_value = re.sub(r"://(.*?):(.*?)@", r"://\1:*****@", value)
        logger.info("  %s: %s", key, masked_value)
    else:
        logger.info("  %s: %s", key, value)


# Handle startup/shutdown tasks
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("In lifespan...starting up")

    settings = get_settings()

    logger.info("Configuration Settings:")
    # Log computed fields first (they don't appear in vars())
    _log_setting("SQLALCHEMY_DATABASE_URI", settings.SQLALCHEMY_DATABASE_URI)
    _log_setting("REDIS_URL", settings.REDIS_URL)
    for key, value in vars(settings).items():
        _log_setting(key, value)

    # An in-memory database starts empty every time; elsewhere the
    # schema is owned by alembic
    if settings.SQLALCHEMY_DATABASE_URI in ("sqlite://", "sqlite:///:memory:"):
        logger.info("Creating tables in in-memory database...")
        create_db_and_tables()

    logger.info("Initializing cache...")
    init_cache(settings)

    logger.info("In lifespan...yield")
    try:
        yield
    finally:
        # Shutdown
        logger.info("In lifespan...shutting down")
        close_cache()
