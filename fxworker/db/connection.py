"""
Database connection management.
Handles async SQLAlchemy engine and session creation.

Every queue and store client owns its own ``Database`` so that no two workers,
and no two collaborators of one worker, share a connection.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fxworker.db.models import Base

logger = logging.getLogger(__name__)

# asyncpg connection failures reach callers unwrapped
DATABASE_ERRORS: tuple[type[Exception], ...] = (SQLAlchemyError, OSError)


class Database:
    """
    A single-owner async database handle.
    """

    def __init__(self, url: str, pool_size: int = 1, echo: bool = False):
        """
        Initialize the handle without connecting.

        Args:
            url: SQLAlchemy async database URL.
            pool_size: Connections kept open by this owner.
            echo: Log emitted SQL.
        """
        self.url = url
        self._pool_size = pool_size
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database not initialized. Call init() first.")
        return self._engine

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    async def init(self) -> None:
        """
        Create the engine and verify connectivity.
        Should be called once on worker startup.
        """
        if self._engine is not None:
            return

        engine_kwargs: dict[str, Any] = {"echo": self._echo, "pool_pre_ping": True}
        if not self.url.startswith("sqlite"):
            engine_kwargs["pool_size"] = self._pool_size
            engine_kwargs["max_overflow"] = 0

        engine = create_async_engine(self.url, **engine_kwargs)
        try:
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            await engine.dispose()
            raise

        self._engine = engine
        self._sessionmaker = async_sessionmaker(
            bind=engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
        logger.info("Database connection initialized", extra={"url": engine.url.render_as_string()})

    async def close(self) -> None:
        """
        Close the database connection.
        Safe to call more than once.
        """
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._sessionmaker = None
            logger.info("Database connection closed")

    async def create_schema(self) -> None:
        """Create all tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """
        Context manager for getting async database sessions.
        Commits on success and rolls back on error.

        Yields:
            AsyncSession: An async database session.
        """
        if self._sessionmaker is None:
            raise RuntimeError("Database not initialized. Call init() first.")

        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
