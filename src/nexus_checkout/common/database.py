"""Async database manager for the Nexus checkout service."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from nexus_checkout.common.config import NexusSettings, get_settings
from nexus_checkout.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import nexus_checkout.sessions.models  # noqa: F401
import nexus_checkout.audit.models  # noqa: F401
import nexus_checkout.tenants.models  # noqa: F401
import nexus_checkout.trials.models  # noqa: F401


class DatabaseManager:
    """Manages a single async database engine."""

    def __init__(self, settings: NexusSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        url = self._settings.db_url
        kwargs = {}
        if url.startswith("sqlite") and url.rstrip("/").endswith(":"):
            # In-memory SQLite: every connection must see the same database.
            from sqlalchemy.pool import StaticPool
            kwargs = {"poolclass": StaticPool}
        self.engine = create_async_engine(url, echo=False, **kwargs)
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
