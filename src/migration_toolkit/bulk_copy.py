"""Raw table-to-table copy of coupled data tables.

Coupled data rows have no entity mapper: they are copied column by column
from the source table into the (empty) target table of the same name.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping

from sqlalchemy import MetaData, Table, literal_column, select, table
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from .models import DEFAULT_BULK_COPY_BATCH_SIZE

LOGGER = logging.getLogger("migration_toolkit.bulk_copy")

ColumnFilter = Callable[[str], bool]
RowFilter = Callable[[Mapping[str, Any]], bool]


def _all_columns(_: str) -> bool:
    return True


def _all_rows(_: Mapping[str, Any]) -> bool:
    return True


@dataclass(frozen=True)
class BulkCopyRequest:
    source_table: str
    target_table: str
    column_include: ColumnFilter = _all_columns
    row_filter: RowFilter = _all_rows
    batch_size: int = DEFAULT_BULK_COPY_BATCH_SIZE

    @classmethod
    def same_table(
        cls,
        table_name: str,
        column_include: ColumnFilter = _all_columns,
        row_filter: RowFilter = _all_rows,
        batch_size: int = DEFAULT_BULK_COPY_BATCH_SIZE,
    ) -> "BulkCopyRequest":
        return cls(table_name, table_name, column_include, row_filter, batch_size)


async def _reflect(conn: AsyncConnection, name: str) -> Table:
    return await conn.run_sync(
        lambda sync_conn: Table(name, MetaData(), autoload_with=sync_conn)
    )


class BulkDataCopyService:
    def __init__(self, source_engine: AsyncEngine, target_engine: AsyncEngine) -> None:
        self._source_engine = source_engine
        self._target_engine = target_engine

    async def table_is_empty(self, table_name: str) -> bool:
        stmt = select(literal_column("1")).select_from(table(table_name)).limit(1)
        async with self._target_engine.connect() as conn:
            return (await conn.execute(stmt)).first() is None

    async def copy_rows(self, request: BulkCopyRequest) -> int:
        """Copy all filtered rows; returns the number of rows written.

        Every chunk of ``batch_size`` rows is committed on its own.
        """
        async with self._target_engine.connect() as target_conn:
            target_table = await _reflect(target_conn, request.target_table)

        copied = 0
        async with self._source_engine.connect() as source_conn:
            source_table = await _reflect(source_conn, request.source_table)
            columns = [
                column
                for column in source_table.columns
                if column.name in target_table.c and request.column_include(column.name)
            ]
            if not columns:
                LOGGER.warning(
                    "No columns to copy from %s to %s", request.source_table, request.target_table
                )
                return 0

            stmt = select(*columns)
            order_by = list(source_table.primary_key.columns)
            if order_by:
                stmt = stmt.order_by(*order_by)

            result = await source_conn.stream(stmt)
            async for partition in result.partitions(max(1, request.batch_size)):
                rows: List[Dict[str, Any]] = [
                    dict(row._mapping)
                    for row in partition
                    if request.row_filter(row._mapping)
                ]
                if not rows:
                    continue
                async with self._target_engine.begin() as target_conn:
                    await target_conn.execute(target_table.insert(), rows)
                copied += len(rows)
                LOGGER.debug("Copied %s rows into %s", copied, request.target_table)

        LOGGER.info(
            "Copied %s rows from %s to %s", copied, request.source_table, request.target_table
        )
        return copied
