"""SQLAlchemy 2.x async database setup.

The engine is owned by an explicitly constructed ``Database`` object that the
application opens at startup and disposes at shutdown. Connection credentials
come from settings only.
"""

from __future__ import annotations

import asyncio
import functools
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

from fastapi import Request
from sqlalchemy import exc as sa_exc
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import DatabaseSettings
from .errors import StoreTimeout, StoreUnavailable
from .models import Base

T = TypeVar("T")


def translate_store_errors(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    """Re-raise driver connectivity failures as ``StoreUnavailable``/``StoreTimeout``."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await func(*args, **kwargs)
        except (asyncio.TimeoutError, sa_exc.TimeoutError) as e:
            raise StoreTimeout(f"{func.__name__} timed out") from e
        except (sa_exc.OperationalError, sa_exc.InterfaceError, OSError) as e:
            raise StoreUnavailable(f"{func.__name__} failed: {e}") from e

    return wrapper


class Database:
    """Async engine plus session factory."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.session_factory = async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)

    @classmethod
    def from_settings(cls, config: DatabaseSettings) -> Database:
        kwargs: dict[str, Any] = {"echo": config.echo, "future": True}
        if not config.url.startswith("sqlite"):
            kwargs["pool_size"] = config.pool_size
            kwargs["max_overflow"] = config.max_overflow
            kwargs["pool_pre_ping"] = True
        if config.command_timeout and "+asyncpg" in config.url:
            kwargs["connect_args"] = {"command_timeout": config.command_timeout}
        return cls(create_async_engine(config.url, **kwargs))

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            yield session

    @translate_store_errors
    async def ping(self) -> None:
        """Round-trip a trivial statement to check connectivity."""
        async with self.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def close(self) -> None:
        await self.engine.dispose()


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """FastAPI-friendly async session dependency.

    Usage:
        async def endpoint(session: AsyncSession = Depends(get_session)):
            ...
    """

    database: Database = request.app.state.database
    async with database.session() as session:
        yield session
