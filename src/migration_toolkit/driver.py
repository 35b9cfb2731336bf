"""Batched persistence of mapped records with conflict isolation.

For every entity kind the driver streams source rows, looks up the target
counterpart by business key, runs the mapper and buffers the result. A full
buffer is written in one unit. A failed unit never takes the run down: the
session is thrown away, every record of the unit is reported, and streaming
resumes with a fresh session.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Set, Tuple, Type

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from . import handbook
from .db_connector import SessionLease
from .errors import (DuplicateKeyConflict, KeyMappingConflictError,
                     PersistenceError, classify_persistence_error)
from .key_mapping import EntityKind, KeyTranslationContext
from .logging_utils import (log_entities_set_error, log_entity_set_action,
                            log_entity_set_error)
from .mappings.base import EntityMapperBase, KeyBinding
from .models import DEFAULT_FLUSH_RETRIES, effective_batch_size
from .protocol import MigrationProtocol
from .source_reader import SourceReader

LOGGER = logging.getLogger("migration_toolkit.driver")

# Returns the reason why a source record must not be migrated, or None.
Prerequisite = Callable[[Any], Optional[str]]


class DriverState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    MAPPING = "mapping"
    BUFFERING = "buffering"
    FLUSHING = "flushing"
    RECOVERING = "recovering"
    DONE = "done"


@dataclass(frozen=True)
class EntityKindPlan:
    """How one entity kind is read, matched and written."""

    kind: EntityKind
    source_model: Type[Any]
    target_model: Type[Any]
    # (source attribute, target attribute) of the business key
    business_key: Tuple[str, str]
    # None: use the driver's configured batch size
    batch_size: Optional[int] = None
    source_options: Sequence[Any] = ()
    source_where: Sequence[Any] = ()
    target_options: Sequence[Any] = ()
    prerequisite: Optional[Prerequisite] = None


@dataclass
class PendingRecord:
    source: Any
    source_id: int
    target: Any
    is_new_instance: bool
    bindings: Tuple[KeyBinding, ...] = ()


@dataclass
class DriverStats:
    kind: EntityKind
    fetched: int = 0
    skipped: int = 0
    mapping_failed: int = 0
    inserted: int = 0
    updated: int = 0
    failed: int = 0
    cancelled: bool = False


class BatchMigrationDriver:
    def __init__(
        self,
        reader: SourceReader,
        session_factory: async_sessionmaker[AsyncSession],
        key_context: KeyTranslationContext,
        protocol: MigrationProtocol,
        batch_size: int,
        flush_retries: int = DEFAULT_FLUSH_RETRIES,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> None:
        self._reader = reader
        self._session_factory = session_factory
        self._key_context = key_context
        self._protocol = protocol
        self._batch_size = effective_batch_size(batch_size)
        self._flush_retries = max(0, flush_retries)
        self._cancel_event = cancel_event
        self._lease: Optional[SessionLease] = None
        self._pending: List[PendingRecord] = []
        self.state = DriverState.IDLE

    def _cancelled(self) -> bool:
        return self._cancel_event is not None and self._cancel_event.is_set()

    def batch_size_for(self, plan: EntityKindPlan) -> int:
        if plan.batch_size is not None:
            return max(1, plan.batch_size)
        return self._batch_size

    async def migrate(
        self, plan: EntityKindPlan, mapper: EntityMapperBase[Any, Any]
    ) -> DriverStats:
        """Migrate every source record of ``plan.kind``."""
        stats = DriverStats(plan.kind)
        batch_size = self.batch_size_for(plan)
        self._lease = SessionLease(self._session_factory)
        self._pending = []
        batch: List[Any] = []
        LOGGER.info("Migrating %s (batch size %s)", plan.kind.value, batch_size)
        try:
            self.state = DriverState.STREAMING
            async for source in self._reader.iter_rows(
                plan.source_model, options=plan.source_options, where=plan.source_where
            ):
                if self._cancelled():
                    stats.cancelled = True
                    break
                stats.fetched += 1
                self._protocol.fetched_source(plan.kind, source)

                reason = plan.prerequisite(source) if plan.prerequisite else None
                if reason is not None:
                    LOGGER.warning(
                        "Skipping %s %s: %s",
                        plan.kind.value,
                        handbook.identity_print(source),
                        reason,
                    )
                    self._protocol.append(
                        handbook.prerequisite_unmet(plan.kind, source, reason)
                    )
                    stats.skipped += 1
                    continue

                batch.append(source)
                if len(batch) >= batch_size:
                    await self._write_batch(plan, mapper, batch, batch_size, stats)
                    batch = []
                    if self._cancelled():
                        stats.cancelled = True
                        break
                self.state = DriverState.STREAMING

            if stats.cancelled:
                LOGGER.warning(
                    "Migration of %s cancelled, %s fetched records were not written",
                    plan.kind.value,
                    len(batch),
                )
            elif batch:
                await self._write_batch(plan, mapper, batch, batch_size, stats)
        finally:
            await self._lease.close()
            self._lease = None
            self._pending = []
            self.state = DriverState.DONE

        LOGGER.info(
            "Finished %s: %s inserted, %s updated, %s failed, %s skipped",
            plan.kind.value,
            stats.inserted,
            stats.updated,
            stats.failed + stats.mapping_failed,
            stats.skipped,
        )
        return stats

    async def _lookup(self, session: AsyncSession, plan: EntityKindPlan, source: Any) -> Any:
        source_attr, target_attr = plan.business_key
        value = getattr(source, source_attr, None)
        if value is None:
            return None
        stmt = select(plan.target_model).where(
            getattr(plan.target_model, target_attr) == value
        )
        if plan.target_options:
            stmt = stmt.options(*plan.target_options)
        try:
            return (await session.execute(stmt)).scalars().first()
        except SQLAlchemyError as exc:
            raise classify_persistence_error(exc) from exc

    async def _write_batch(
        self,
        plan: EntityKindPlan,
        mapper: EntityMapperBase[Any, Any],
        sources: List[Any],
        batch_size: int,
        stats: DriverStats,
    ) -> None:
        """Stage one batch of source records and commit it.

        When the session has to be given up before the commit succeeded, after
        a transient error or after a lookup error that takes one record out of
        the batch, the batch is staged again from its source records in a
        fresh session. Every round either uses up a retry or drops a record.
        """
        dropped: Set[int] = set()
        staged_once: Set[int] = set()
        attempt = 0
        while True:
            self._pending = []
            position = 0
            try:
                for position, source in enumerate(sources):
                    if position in dropped:
                        continue
                    first = position not in staged_once
                    staged_once.add(position)
                    if not await self._stage(plan, mapper, source, first):
                        dropped.add(position)
                        stats.mapping_failed += 1
            except PersistenceError as error:
                self.state = DriverState.RECOVERING
                source = sources[position]
                if error.transient and attempt < self._flush_retries:
                    attempt += 1
                    LOGGER.warning(
                        "Transient error while looking up %s %s (attempt %s of %s): %s",
                        plan.kind.value,
                        handbook.identity_print(source),
                        attempt,
                        self._flush_retries,
                        error,
                    )
                    staged_once.discard(position)
                else:
                    dropped.add(position)
                    stats.failed += 1
                    LOGGER.error(
                        "Failed to look up target %s for %s: %s",
                        plan.kind.value,
                        handbook.identity_print(source),
                        error,
                    )
                    self._protocol.append(
                        handbook.error_fetching_target_instance(plan.kind, error, source)
                    )
                await self._lease.renew()
                continue

            if not self._pending:
                return
            self.state = DriverState.FLUSHING
            try:
                await self._lease.acquire().commit()
            except SQLAlchemyError as exc:
                error = classify_persistence_error(exc)
                self.state = DriverState.RECOVERING
                if error.transient and attempt < self._flush_retries:
                    attempt += 1
                    LOGGER.warning(
                        "Transient error while writing %s batch (attempt %s of %s): %s",
                        plan.kind.value,
                        attempt,
                        self._flush_retries,
                        error,
                    )
                    await self._lease.renew()
                    continue
                stats.failed += len(self._pending)
                await self._recover(plan, batch_size, error)
                return
            self._commit_succeeded(plan, mapper, stats)
            return

    async def _stage(
        self,
        plan: EntityKindPlan,
        mapper: EntityMapperBase[Any, Any],
        source: Any,
        first: bool,
    ) -> bool:
        """Map one source record and buffer the result; False if mapping failed.

        A record staged again after a session was given up only records its
        mapping in the protocol when the mapping now fails.
        """
        session = self._lease.acquire()
        target = await self._lookup(session, plan, source)
        if first:
            self._protocol.fetched_target(plan.kind, target)

        self.state = DriverState.MAPPING
        staged = set(session.new)
        result = mapper.map(source, target)
        if first or not result.success:
            self._protocol.mapped_target(plan.kind, result)
        if not result.success:
            LOGGER.warning(
                "Failed to map %s %s: %s",
                plan.kind.value,
                handbook.identity_print(source),
                result.failure.message,
            )
            self._protocol.append(result.failure)
            # Drop partial changes the mapper made to the loaded record,
            # including related records it cascaded into the session.
            for orphan in set(session.new) - staged:
                session.expunge(orphan)
            if target is not None and target in session:
                session.expunge(target)
            return False

        self.state = DriverState.BUFFERING
        if result.is_new_instance:
            session.add(result.item)
        self._pending.append(
            PendingRecord(
                source=source,
                source_id=mapper.source_id(source),
                target=result.item,
                is_new_instance=result.is_new_instance,
                bindings=result.bindings,
            )
        )
        return True

    def _commit_succeeded(
        self, plan: EntityKindPlan, mapper: EntityMapperBase[Any, Any], stats: DriverStats
    ) -> None:
        pending, self._pending = self._pending, []
        for record in pending:
            target_id = getattr(record.target, mapper.target_id_attr)
            self._key_context.set_mapping(plan.kind, record.source_id, target_id)
            for binding in record.bindings:
                self._apply_binding(binding, record.target)
            self._protocol.success(
                plan.kind, record.source, record.target, record.is_new_instance
            )
            log_entity_set_action(LOGGER, record.is_new_instance, plan.kind, record.target)
            if record.is_new_instance:
                stats.inserted += 1
            else:
                stats.updated += 1

    def _apply_binding(self, binding: KeyBinding, owner: Any) -> None:
        target_id = binding.target_id()
        if binding.source_id is None or target_id is None:
            return
        try:
            self._key_context.set_mapping(binding.kind, binding.source_id, target_id)
        except KeyMappingConflictError as exc:
            LOGGER.warning("Conflicting key translation for %s: %s", binding.kind.value, exc)
            self._protocol.append(handbook.key_mapping_conflict(binding.kind, exc, owner))

    async def _recover(
        self, plan: EntityKindPlan, batch_size: int, error: PersistenceError
    ) -> None:
        pending, self._pending = self._pending, []
        inserts = [r.target for r in pending if r.is_new_instance]
        updates = [r.target for r in pending if not r.is_new_instance]

        # Identity prints are taken before the rollback expires the records.
        if isinstance(error, DuplicateKeyConflict) and batch_size == 1 and len(pending) == 1:
            record = pending[0]
            references = [
                handbook.db_constraint_broken(plan.kind, error, record.source).with_message(
                    f"Failed to migrate {plan.kind.value}, target database constraint broken."
                )
            ]
            log_entity_set_error(LOGGER, error, record.is_new_instance, plan.kind, record.target)
        else:
            references = []
            if inserts:
                references.append(
                    handbook.error_creating_target_instance(plan.kind, error)
                    .needs_manual_action()
                    .with_identity_prints(inserts)
                )
            if updates:
                references.append(
                    handbook.error_updating_target_instance(plan.kind, error)
                    .needs_manual_action()
                    .with_identity_prints(updates)
                )
            log_entities_set_error(LOGGER, error, True, plan.kind, inserts)
            log_entities_set_error(LOGGER, error, False, plan.kind, updates)

        await self._lease.renew()
        for reference in references:
            self._protocol.append(reference)
