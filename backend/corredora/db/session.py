"""Async SQLAlchemy engine and session helpers.

:class:`Database` owns the engine and the session factory. One instance is
created by the application lifespan, stored on ``app.state.database`` and
disposed on shutdown; request handlers receive sessions through the
:func:`get_db` dependency.
"""

import asyncio
from collections.abc import AsyncIterator, Awaitable
from typing import TypeVar

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from corredora.core.errors import Unavailable
from corredora.core.logging import logger

T = TypeVar("T")

Base = declarative_base()


async def store_call(operation: Awaitable[T], timeout: float, what: str) -> T:
    """Await a store operation bounded by ``timeout`` seconds.

    Timeouts and connection or driver failures are logged and re-raised as
    :class:`Unavailable`. Integrity violations pass through so callers can
    map them to a conflict.
    """
    try:
        return await asyncio.wait_for(operation, timeout=timeout)
    except IntegrityError:
        raise
    except asyncio.TimeoutError as exc:
        logger.error("Store operation timed out op={} timeout={}s", what, timeout)
        raise Unavailable() from exc
    except (SQLAlchemyError, OSError) as exc:
        logger.exception("Store operation failed op={}", what)
        raise Unavailable() from exc


def _engine_options(url: str, echo: bool, timeout: float) -> dict:
    if url.startswith("sqlite"):
        options = {"echo": echo, "connect_args": {"timeout": timeout}}
        # NOTE: an in-memory SQLite database only exists on one connection.
        if ":memory:" in url:
            options["poolclass"] = StaticPool
        return options
    return {
        "echo": echo,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_pre_ping": True,
        "pool_timeout": timeout,
    }


class Database:
    """Handle to the durable store.

    Args:
        url: Async SQLAlchemy URL (``postgresql+asyncpg://`` in deployments,
            ``sqlite+aiosqlite://`` in tests).
        echo: Log emitted SQL.
        timeout: Seconds to wait for a pooled connection.
    """

    def __init__(self, url: str, *, echo: bool = False, timeout: float = 5.0):
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **_engine_options(url, echo, timeout))
        self.sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    async def create_all(self) -> None:
        """Create the metadata tables that do not exist yet."""
        # Model modules register their tables on Base when imported.
        import corredora.models.auth  # noqa: F401

        logger.info("Initializing database tables")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialization complete")

    async def ping(self) -> None:
        """Run a trivial query; raises if the store is unreachable."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def dispose(self) -> None:
        await self.engine.dispose()

    def session(self) -> AsyncSession:
        return self.sessionmaker()


async def get_db(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an async session bound to the application's database.

    Usage:
        db: AsyncSession = Depends(get_db)
    """
    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
