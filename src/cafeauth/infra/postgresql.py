"""Database engine and session management."""

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import SQLModel

from cafeauth.app.config import get_settings
from cafeauth.core.errors import StoreUnavailableError
from cafeauth.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _create_engine(url: str) -> AsyncEngine:
    settings = get_settings().database
    if not url.startswith("postgresql"):
        return create_async_engine(url, echo=settings.echo)

    return create_async_engine(
        url,
        echo=settings.echo,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
        pool_recycle=3600,
        pool_pre_ping=True,
        connect_args={
            "command_timeout": settings.command_timeout,
            "server_settings": {
                "statement_timeout": f"{int(settings.command_timeout * 1000)}",
                "lock_timeout": f"{int(settings.command_timeout * 1000)}",
                "application_name": "cafe-auth",
            },
        },
    )


async def init_db(url: str | None = None, create_tables: bool = False) -> AsyncEngine:
    """Create the engine and verify connectivity.

    Args:
        url: Database URL (defaults to DATABASE_URL)
        create_tables: Create tables from SQLModel metadata. Leave False when
            the schema is managed by Alembic.
    """
    global _engine, _session_factory

    url = url or get_settings().database.url
    _engine = _create_engine(url)
    _session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    try:
        async with _engine.begin() as conn:
            if create_tables:
                await conn.run_sync(SQLModel.metadata.create_all)
            await conn.execute(text("SELECT 1"))
        logger.info(
            "Database connected",
            extra={"event": LogEvent.DB_CONNECTED, "database": url.split("@")[-1]},
        )
    except Exception as e:
        logger.error(
            "Database connection failed",
            extra={
                "event": LogEvent.DB_ERROR,
                "error_type": type(e).__name__,
                "error": str(e),
            },
        )
        raise

    return _engine


async def close_db() -> None:
    global _engine, _session_factory

    if _engine:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database not initialized")
    return _engine


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    if _session_factory is None:
        raise RuntimeError("Database not initialized")

    async with _session_factory() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get session factory for work outside a request (sweeper, CLI)."""
    if _session_factory is None:
        raise RuntimeError("Database not initialized")
    return _session_factory


@asynccontextmanager
async def store_operation(operation: str) -> AsyncIterator[None]:
    """Run a block of store calls under the operation timeout.

    Driver errors and timeouts fail closed as StoreUnavailableError; domain
    errors raised inside the block pass through untouched.
    """
    timeout = get_settings().database.operation_timeout
    try:
        async with asyncio.timeout(timeout):
            yield
    except (SQLAlchemyError, OSError, TimeoutError) as e:
        logger.error(
            "Store operation failed",
            extra={
                "event": LogEvent.STORE_UNAVAILABLE,
                "operation": operation,
                "error_type": type(e).__name__,
                "error": str(e),
            },
        )
        raise StoreUnavailableError() from e
