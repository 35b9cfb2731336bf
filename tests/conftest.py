"""
Shared fixtures: file-backed SQLite stores for the source and target schemas.
"""
from dataclasses import dataclass

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from migration_toolkit.db_connector import DatabaseConnector
from migration_toolkit.key_mapping import KeyTranslationContext
from migration_toolkit.models import DatabaseConfig
from migration_toolkit.protocol import MigrationProtocol
from migration_toolkit.source_models import SourceBase
from migration_toolkit.target_models import TargetBase

from factories import sqlite_url


@dataclass
class Stores:
    source: DatabaseConnector
    target: DatabaseConnector

    @property
    def source_engine(self) -> AsyncEngine:
        return self.source.engine

    @property
    def target_engine(self) -> AsyncEngine:
        return self.target.engine

    @property
    def source_sessions(self) -> async_sessionmaker[AsyncSession]:
        return self.source.session_factory

    @property
    def target_sessions(self) -> async_sessionmaker[AsyncSession]:
        return self.target.session_factory

    async def add_source(self, *rows) -> None:
        async with self.source_sessions() as session:
            session.add_all(rows)
            await session.commit()

    async def add_target(self, *rows) -> None:
        async with self.target_sessions() as session:
            session.add_all(rows)
            await session.commit()


@pytest_asyncio.fixture
async def stores(tmp_path):
    source = DatabaseConnector(
        DatabaseConfig(url=sqlite_url(tmp_path / "source.db"), connect_timeout=5), "source"
    )
    target = DatabaseConnector(
        DatabaseConfig(url=sqlite_url(tmp_path / "target.db"), connect_timeout=5), "target"
    )
    await source.open()
    await target.open()
    await source.ensure_schema(SourceBase.metadata)
    await target.ensure_schema(TargetBase.metadata)
    yield Stores(source, target)
    await source.dispose()
    await target.dispose()


@pytest.fixture
def key_context():
    return KeyTranslationContext()


@pytest.fixture
def protocol():
    return MigrationProtocol()
