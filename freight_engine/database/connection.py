"""
Database Connection Management

One async engine per process, PostgreSQL (asyncpg) in production and
SQLite (aiosqlite) for local runs. Sessions are handed out as units of
work that commit on success and roll back on any error.
"""

from contextlib import asynccontextmanager
import time
from typing import Any, AsyncGenerator, Dict, Optional

import structlog
from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from freight_engine.config import get_settings
from freight_engine.database.models import Base

logger = structlog.get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_options(url: str, echo: bool) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": echo}
    if not url.startswith("sqlite"):
        options.update(poolclass=NullPool, pool_pre_ping=True)
    return options


def enable_sqlite_savepoints(engine: AsyncEngine) -> None:
    """
    Have SQLAlchemy emit BEGIN itself on SQLite.

    The sqlite3 driver otherwise defers BEGIN to the first write, and a
    SAVEPOINT issued before it would release as a commit.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _driver_autocommit(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")


async def _reset() -> None:
    global _engine, _session_factory
    engine, _engine, _session_factory = _engine, None, None
    if engine is not None:
        await engine.dispose()


async def init_database(url: Optional[str] = None, create_tables: Optional[bool] = None) -> AsyncEngine:
    """
    Create the engine and session factory, then probe the connection.

    Args:
        url: Async URL overriding the configured one
        create_tables: Create the schema after connecting (defaults to settings)

    Raises:
        SQLAlchemyError, OSError: The database cannot be reached
    """
    global _engine, _session_factory

    if _engine is not None:
        logger.warning("Database already initialized", dialect=_engine.dialect.name)
        return _engine

    db_settings = get_settings().database
    database_url = url or db_settings.async_url
    if create_tables is None:
        create_tables = db_settings.create_tables

    _engine = create_async_engine(database_url, **_engine_options(database_url, db_settings.echo))
    if _engine.dialect.name == "sqlite":
        enable_sqlite_savepoints(_engine)
    _session_factory = async_sessionmaker(bind=_engine, expire_on_commit=False, autoflush=False)

    try:
        async with _engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if create_tables:
                await conn.run_sync(Base.metadata.create_all)
    except (SQLAlchemyError, OSError) as e:
        logger.error("Database connection failed", error=str(e))
        await _reset()
        raise

    logger.info("Database connection established", dialect=_engine.dialect.name, create_tables=create_tables)
    return _engine


async def close_database() -> None:
    """Dispose the engine; a later init_database starts fresh."""
    if _engine is not None:
        await _reset()
        logger.info("Database connection pool closed")


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Unit-of-work session: commit on clean exit, roll back and re-raise on error.

    Example:
        async with get_db() as db:
            store = SqlDimensionStore.from_session(db)
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")

    async with _session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.error("Rolling back session", error=str(e), error_type=type(e).__name__)
            await session.rollback()
            raise


async def get_db_dependency() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one session per request."""
    async with get_db() as session:
        yield session


async def check_database_health() -> Dict[str, Any]:
    """``{"status": "healthy", "latency_ms"}`` or ``{"status": "unhealthy", "error"}``"""
    start = time.perf_counter()
    try:
        async with get_db() as db:
            await db.execute(text("SELECT 1"))
    except (RuntimeError, SQLAlchemyError, OSError) as e:
        return {"status": "unhealthy", "error": str(e)}
    return {"status": "healthy", "latency_ms": round((time.perf_counter() - start) * 1000, 2)}
