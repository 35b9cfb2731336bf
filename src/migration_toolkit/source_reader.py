"""Read-only, ordered access to the source store."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional, Sequence, Type

from sqlalchemy import inspect as sa_inspect, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import DEFAULT_SOURCE_PAGE_SIZE

LOGGER = logging.getLogger("migration_toolkit.source")


def primary_key_attr(model: Type[Any]) -> str:
    mapper = sa_inspect(model)
    return mapper.get_property_by_column(mapper.primary_key[0]).key


class SourceReader:
    """Streams source rows in ascending primary key order.

    Pages are fetched with keyset pagination, each page in its own short
    session, so that a long run never holds a source transaction open.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        page_size: int = DEFAULT_SOURCE_PAGE_SIZE,
    ) -> None:
        self._session_factory = session_factory
        self._page_size = max(1, page_size)

    async def iter_rows(
        self,
        model: Type[Any],
        pk: Optional[str] = None,
        page_size: Optional[int] = None,
        options: Sequence[Any] = (),
        where: Sequence[Any] = (),
    ) -> AsyncIterator[Any]:
        pk_name = pk or primary_key_attr(model)
        pk_column = getattr(model, pk_name)
        size = max(1, page_size or self._page_size)
        last_key = None
        while True:
            stmt = select(model).where(*where).order_by(pk_column).limit(size)
            if options:
                stmt = stmt.options(*options)
            if last_key is not None:
                stmt = stmt.where(pk_column > last_key)
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).scalars().all()
            LOGGER.debug("Fetched %s %s rows after key %s", len(rows), model.__name__, last_key)
            for row in rows:
                yield row
            if len(rows) < size:
                return
            last_key = getattr(rows[-1], pk_name)
