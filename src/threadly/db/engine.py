"""Database engine and session management."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from threadly.config.discovery import get_threadly_data_dir
from threadly.exceptions import StorageError


logger = structlog.get_logger(__name__)

DEFAULT_DB_PATH = get_threadly_data_dir() / "threadly.db"

# Global engine (initialized on startup)
_engine: AsyncEngine | None = None
_async_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_db_url(path: Path | None = None) -> str:
    """Get SQLite database URL."""
    db_path = path or DEFAULT_DB_PATH
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+aiosqlite:///{db_path}"


async def init_db(path: Path | None = None, *, echo: bool = False) -> None:
    """Initialize database and create tables."""
    global _engine, _async_session_maker

    # Register table metadata before create_all
    from threadly.db import models  # noqa: F401

    if _engine is not None:
        await _engine.dispose()

    db_url = get_db_url(path)
    _engine = create_async_engine(db_url, echo=echo)
    _async_session_maker = async_sessionmaker(
        _engine, class_=AsyncSession, expire_on_commit=False
    )

    try:
        async with _engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)
    except (SQLAlchemyError, OSError) as e:
        raise StorageError(f"Failed to initialize database: {e}") from e

    logger.info("database_initialized", path=str(path or DEFAULT_DB_PATH))


async def close_db() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _async_session_maker

    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _async_session_maker = None


def get_engine() -> AsyncEngine:
    """Get the database engine."""
    if _engine is None:
        raise StorageError("Database not initialized. Call init_db() first.")
    return _engine


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get an async database session.

    Commits on success and rolls back on error. Driver failures are
    re-raised as StorageError so callers see one retryable type.
    """
    if _async_session_maker is None:
        raise StorageError("Database not initialized. Call init_db() first.")

    async with _async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except (SQLAlchemyError, OSError) as e:
            await session.rollback()
            raise StorageError(f"Datastore operation failed: {e}") from e
        except Exception:
            await session.rollback()
            raise
