"""Access to classes in the target through a narrow get/save interface.

Classes are not written by the batch driver: saving a class also has to
provision its coupled data table, which only the facade knows how to do.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from . import target_models as tgt
from .class_schema import parse_class_schema
from .errors import classify_persistence_error


@dataclass(frozen=True)
class SaveOutcome:
    class_id: int
    table_created: bool = False


class ClassFacade(Protocol):
    async def get_by_key(self, guid: uuid.UUID) -> Optional[tgt.CmsClass]:
        ...

    async def save(self, handle: tgt.CmsClass) -> SaveOutcome:
        ...


class TargetClassFacade:
    """Class facade writing straight into the target store."""

    def __init__(
        self, engine: AsyncEngine, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        self._engine = engine
        self._session_factory = session_factory

    async def get_by_key(self, guid: uuid.UUID) -> Optional[tgt.CmsClass]:
        async with self._session_factory() as session:
            stmt = select(tgt.CmsClass).where(tgt.CmsClass.class_guid == guid)
            try:
                return (await session.execute(stmt)).scalars().first()
            except SQLAlchemyError as exc:
                raise classify_persistence_error(exc) from exc

    async def save(self, handle: tgt.CmsClass) -> SaveOutcome:
        try:
            async with self._session_factory() as session:
                merged = await session.merge(handle)
                await session.commit()
                class_id = merged.class_id
        except SQLAlchemyError as exc:
            raise classify_persistence_error(exc) from exc
        handle.class_id = class_id

        table_created = False
        if handle.class_table_name:
            table_created = await self._ensure_table(handle)
        return SaveOutcome(class_id=class_id, table_created=table_created)

    async def _ensure_table(self, handle: tgt.CmsClass) -> bool:
        table = parse_class_schema(handle.class_xml_schema).to_table(handle.class_table_name)
        try:
            async with self._engine.begin() as conn:
                exists = await conn.run_sync(
                    lambda sync_conn: sync_conn.dialect.has_table(sync_conn, table.name)
                )
                if exists:
                    return False
                await conn.run_sync(table.create)
        except SQLAlchemyError as exc:
            raise classify_persistence_error(exc) from exc
        return True
