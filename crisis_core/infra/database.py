"""
Crisis Event Log Database

Async SQLAlchemy 2.0 engine for the crisis event log. SQLite (aiosqlite)
is the default for a single-process deployment; Postgres (asyncpg) is
used when AUDIT_DATABASE_URL points at it.
"""

import logging
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from crisis_core.config import settings
from crisis_core.models.database import Base

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    """Pool settings per backend."""
    if make_url(url).get_backend_name() == "sqlite":
        # One file, one writer; a pool only holds the file open
        return {"poolclass": NullPool}
    return {"pool_size": 5, "max_overflow": 5, "pool_pre_ping": True}


def build_engine(url: str) -> AsyncEngine:
    return create_async_engine(url, echo=settings.debug, **_engine_options(url))


engine = build_engine(settings.audit_database_url)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


def _ensure_sqlite_directory(url: str) -> None:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite" or not parsed.database or parsed.database == ":memory:":
        return
    Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)


async def init_db() -> None:
    """
    Create the crisis_events table if missing.

    The table is append-only with a single schema version, so
    create_all is the whole migration story.
    """
    _ensure_sqlite_directory(settings.audit_database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.debug(f"Crisis event log schema ensured on {engine.url.get_backend_name()}")


async def close_db() -> None:
    await engine.dispose()


async def check_db_health() -> bool:
    """True if the event log answers a trivial query."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Crisis event log health check failed: {e}")
        return False
    return True
