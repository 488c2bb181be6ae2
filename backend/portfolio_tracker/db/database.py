"""Database engine and session utilities."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from portfolio_tracker.db.base import Base

# Import models so that SQLAlchemy is aware of all tables before create_all runs.
import portfolio_tracker.models  # noqa: F401  # pylint: disable=unused-import

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql_insert,
    "sqlite": sqlite_insert,
}


def upsert_insert(dialect: str):
    """Return the dialect `insert` construct that supports `on_conflict_do_update`."""

    insert = _UPSERT_DIALECTS.get(dialect)
    if insert is None:
        raise ValueError(f"Upserts are not supported for the {dialect!r} dialect")
    return insert


class Database:
    """Configure an async SQLAlchemy engine and session factory."""

    def __init__(self, url: str):
        self._url = url
        self._engine: AsyncEngine = create_async_engine(url, future=True, echo=False)
        self._session_factory = async_sessionmaker(bind=self._engine, expire_on_commit=False, class_=AsyncSession)

    @property
    def url(self) -> str:
        return self._url

    @property
    def engine(self) -> AsyncEngine:
        return self._engine

    @property
    def dialect(self) -> str:
        return self._engine.dialect.name

    async def create_all(self) -> None:
        """Ensure all tables exist for the running application."""

        try:
            async with self._engine.begin() as connection:
                await connection.run_sync(Base.metadata.create_all)
        except SQLAlchemyError:
            logger.exception("Failed to initialise database schema")
            raise

    async def dispose(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            yield session

    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Yield an AsyncSession for FastAPI dependency usage."""

        async with self._session_factory() as session:
            yield session


__all__ = ["Database", "upsert_insert"]
