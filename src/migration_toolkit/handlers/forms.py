"""Form classes, forms and the coupled data collected by them."""

from __future__ import annotations

import logging
from typing import Callable, FrozenSet, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from .. import handbook
from .. import source_models as src
from .. import target_models as tgt
from ..bulk_copy import BulkCopyRequest
from ..class_schema import ClassSchemaError, auto_increment_columns
from ..driver import EntityKindPlan
from ..errors import DuplicateKeyConflict, PersistenceError, PreconditionUnmet
from ..key_mapping import EntityKind
from ..logging_utils import log_entity_set_action, log_entity_set_error
from .base import MigrationContext

LOGGER = logging.getLogger("migration_toolkit.handlers.forms")


def _exclude(columns: FrozenSet[str]) -> Callable[[str], bool]:
    return lambda name: name not in columns


def _form_prerequisite(context: MigrationContext) -> Callable[[src.CmsForm], Optional[str]]:
    sites = context.key_context.require_explicit_mapping(EntityKind.SITE)

    def check(source: src.CmsForm) -> Optional[str]:
        if source.form_site_id not in sites:
            return f"site {source.form_site_id} is not migrated"
        if context.key_context.translate(EntityKind.CLASS, source.form_class_id) is None:
            return f"class {source.form_class_id} is not migrated"
        return None

    return check


def form_plan(context: MigrationContext) -> EntityKindPlan:
    return EntityKindPlan(
        kind=EntityKind.FORM,
        source_model=src.CmsForm,
        target_model=tgt.CmsForm,
        business_key=("form_guid", "form_guid"),
        batch_size=1,
        prerequisite=_form_prerequisite(context),
    )


async def _migrate_class(context: MigrationContext, source: src.CmsClass) -> bool:
    protocol = context.protocol
    kind = EntityKind.CLASS

    attempt = 0
    while True:
        try:
            existing = await context.class_facade.get_by_key(source.class_guid)
            break
        except PersistenceError as exc:
            if exc.transient and attempt < context.config.flush_retries:
                attempt += 1
                LOGGER.warning(
                    "Transient error while looking up class %s (attempt %s of %s): %s",
                    source.class_name,
                    attempt,
                    context.config.flush_retries,
                    exc,
                )
                continue
            LOGGER.error("Failed to look up target class %s: %s", source.class_name, exc)
            protocol.append(handbook.error_fetching_target_instance(kind, exc, source))
            return False
    protocol.fetched_target(kind, existing)

    result = context.mappers[kind].map(source, existing)
    protocol.mapped_target(kind, result)
    if not result.success:
        LOGGER.warning(
            "Failed to map class %s: %s", source.class_name, result.failure.message
        )
        protocol.append(result.failure)
        return False

    try:
        outcome = await context.class_facade.save(result.item)
    except ClassSchemaError as exc:
        protocol.append(handbook.invalid_source_data(kind, source, str(exc)))
        LOGGER.error("Cannot create table of class %s: %s", source.class_name, exc)
        return False
    except PersistenceError as exc:
        if isinstance(exc, DuplicateKeyConflict):
            reference = handbook.db_constraint_broken(kind, exc, source).with_message(
                "Failed to migrate class, target database constraint broken."
            )
        elif result.is_new_instance:
            reference = handbook.error_creating_target_instance(
                kind, exc
            ).needs_manual_action().with_identity_print(source)
        else:
            reference = handbook.error_updating_target_instance(
                kind, exc
            ).needs_manual_action().with_identity_print(source)
        protocol.append(reference)
        log_entity_set_error(LOGGER, exc, result.is_new_instance, kind, source)
        return False

    if outcome.table_created:
        LOGGER.info(
            "Created coupled data table %s for class %s",
            result.item.class_table_name,
            source.class_name,
        )
    context.key_context.set_mapping(kind, source.class_id, outcome.class_id)
    protocol.success(kind, source, result.item, result.is_new_instance)
    log_entity_set_action(LOGGER, result.is_new_instance, kind, result.item)
    return True


async def _require_empty_target(context: MigrationContext, table_name: str) -> None:
    if not await context.bulk_copy.table_is_empty(table_name):
        raise PreconditionUnmet(f"Data exists in target coupled data table '{table_name}'")


async def copy_coupled_data(context: MigrationContext, source: src.CmsClass) -> int:
    """Copy the rows of the class's coupled data table; the target table must be empty."""
    table_name = source.class_table_name
    if not table_name:
        return 0
    protocol = context.protocol

    try:
        skip_columns = auto_increment_columns(source.class_xml_schema)
    except ClassSchemaError as exc:
        protocol.append(handbook.invalid_source_data(EntityKind.CLASS, source, str(exc)))
        return 0

    try:
        await _require_empty_target(context, table_name)
        request = BulkCopyRequest.same_table(
            table_name,
            column_include=_exclude(skip_columns),
            batch_size=context.config.bulk_copy_batch_size,
        )
        LOGGER.debug("Bulk data copy request: %s", request)
        return await context.bulk_copy.copy_rows(request)
    except PreconditionUnmet as exc:
        LOGGER.warning("%s, skipping form data migration", exc)
        protocol.append(
            handbook.data_must_not_exist_in_target_table(table_name, EntityKind.CLASS)
        )
        return 0
    except SQLAlchemyError as exc:
        LOGGER.error("Bulk copy of %s failed: %s", table_name, exc)
        protocol.append(handbook.bulk_copy_failed(table_name, exc, EntityKind.CLASS))
        return 0


async def migrate_forms(context: MigrationContext) -> None:
    sites = context.key_context.require_explicit_mapping(EntityKind.SITE)
    migrated: List[src.CmsClass] = []

    async for source in context.reader.iter_rows(
        src.CmsClass,
        options=(selectinload(src.CmsClass.forms),),
        where=(src.CmsClass.class_is_form.is_(True),),
    ):
        if context.cancelled:
            LOGGER.warning("Forms migration cancelled")
            return
        context.protocol.fetched_source(EntityKind.CLASS, source)

        if not any(form.form_site_id in sites for form in source.forms):
            LOGGER.warning(
                "Skipping form class %s: none of its forms belongs to a migrated site",
                source.class_name,
            )
            context.protocol.append(
                handbook.prerequisite_unmet(
                    EntityKind.CLASS, source, "no form of the class is on a migrated site"
                )
            )
            continue

        if await _migrate_class(context, source):
            migrated.append(source)

    if context.cancelled:
        return
    stats = await context.driver.migrate(form_plan(context), context.mappers[EntityKind.FORM])
    context.stats.append(stats)

    for source in migrated:
        if context.cancelled:
            LOGGER.warning("Coupled data copy cancelled")
            return
        await copy_coupled_data(context, source)
