"""Database engine, sessions and schema setup for the Voxen store"""
from typing import Any, AsyncGenerator, Dict

import structlog
from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from voxen.config import get_settings

logger = structlog.get_logger()
settings = get_settings()


def engine_options(database_url: str) -> Dict[str, Any]:
    """Engine keyword arguments for the configured backend.

    Vote upserts rely on ON CONFLICT, so only PostgreSQL and SQLite are used.
    Stale pooled connections are checked before use so an unreachable store
    surfaces as a connection error rather than a hung request.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.database_pool_size,
        "pool_pre_ping": True,
    }


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE rules unless foreign keys are switched on."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


engine = create_async_engine(settings.database_url, **engine_options(settings.database_url))
enable_sqlite_foreign_keys(engine)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for spaces, proposals, votes and activity"""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One unit of work per request: commit on success, roll back on error"""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create any missing tables for the Voxen models"""
    # Registers every model on Base.metadata
    import voxen.models  # noqa: F401

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready", tables=sorted(Base.metadata.tables))


async def close_db() -> None:
    """Dispose of pooled connections"""
    await engine.dispose()
