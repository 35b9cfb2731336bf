from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from sqlalchemy import MetaData, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)

from .models import DatabaseConfig

LOGGER = logging.getLogger("migration_toolkit.db")


class DatabaseConnector:
    """Manage the SQLAlchemy engine of one store (source or target)."""

    def __init__(self, config: DatabaseConfig, name: str = "database") -> None:
        self._config = config
        self._name = name
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    async def open(self) -> AsyncEngine:
        if self._engine is not None:
            return self._engine

        deadline = time.time() + self._config.connect_timeout
        attempts = 0
        while True:
            attempts += 1
            async_engine = create_async_engine(self._config.url)
            try:
                LOGGER.info("Connecting to %s (attempt %s)", self._name, attempts)
                async with async_engine.connect() as connection:
                    await connection.execute(text("SELECT 1"))
                self._engine = async_engine
                LOGGER.info("Connected to %s", self._name)
                break
            except OperationalError as exc:
                await async_engine.dispose()
                if time.time() >= deadline:
                    raise RuntimeError(f"Connection to {self._name} timed out") from exc
                LOGGER.warning("%s not ready yet (%s), retrying...", self._name, exc)
                await asyncio.sleep(min(2 * attempts, 10))

        self._session_factory = async_sessionmaker(
            self._engine, autoflush=False, expire_on_commit=False
        )
        return self._engine

    async def ensure_schema(self, metadata: MetaData) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Engine not initialised; call open()")
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("Engine not initialised; call open()")
        return self._session_factory

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None


class SessionLease:
    """A replaceable persistence session.

    After a failed flush the session's identity map can no longer be
    trusted, so it is thrown away (``discard``) and a new one is handed out
    (``renew``).
    """

    def __init__(self, factory: async_sessionmaker[AsyncSession]) -> None:
        self._factory = factory
        self._session: Optional[AsyncSession] = None

    def acquire(self) -> AsyncSession:
        if self._session is None:
            self._session = self._factory()
        return self._session

    async def discard(self) -> None:
        session, self._session = self._session, None
        if session is None:
            return
        try:
            await session.rollback()
        except SQLAlchemyError as exc:
            # The connection may already be gone; the session is dropped anyway.
            LOGGER.warning("Rollback of discarded session failed: %s", exc)
        finally:
            await session.close()

    async def renew(self) -> AsyncSession:
        await self.discard()
        return self.acquire()

    async def close(self) -> None:
        await self.discard()
