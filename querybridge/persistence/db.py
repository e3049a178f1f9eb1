from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from querybridge.core.config import Settings, get_settings


class Database:
    """Owns the shared engine and session factory for the application's own datastore.

    Created once at process start (FastAPI lifespan) and disposed at shutdown;
    services receive it explicitly instead of importing a module-level engine.
    """

    def __init__(self, url: str, *, settings: Settings | None = None, **engine_kwargs: Any) -> None:
        settings = settings or get_settings()
        kwargs: dict[str, Any] = {"pool_pre_ping": True, "echo": settings.db_echo}
        # Configure bounded pools for predictable latency; SQLite has no server-side pool.
        if not url.startswith("sqlite"):
            kwargs["pool_size"] = max(1, int(settings.db_pool_size))
            kwargs["max_overflow"] = max(0, int(settings.db_max_overflow))
            kwargs["pool_timeout"] = 30
            kwargs["pool_recycle"] = 1800
        kwargs.update(engine_kwargs)
        self.url = url
        self.engine: AsyncEngine = create_async_engine(url, **kwargs)
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "Database":
        settings = settings or get_settings()
        return cls(settings.database_url, settings=settings)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            yield session

    async def dispose(self) -> None:
        await self.engine.dispose()

    def pool_stats(self) -> dict[str, int | None]:
        # Expose pool counters for ops visibility without querying server internals.
        pool = self.engine.sync_engine.pool
        checked_out_fn = getattr(pool, "checkedout", None)
        checked_in_fn = getattr(pool, "checkedin", None)
        overflow_fn = getattr(pool, "overflow", None)
        size_fn = getattr(pool, "size", None)
        return {
            "size": int(size_fn()) if callable(size_fn) else None,
            "checked_out": int(checked_out_fn()) if callable(checked_out_fn) else None,
            "checked_in": int(checked_in_fn()) if callable(checked_in_fn) else None,
            "overflow": int(overflow_fn()) if callable(overflow_fn) else None,
        }
