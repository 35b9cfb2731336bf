"""Resources, settings categories and settings keys."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from sqlalchemy.orm import selectinload

from .. import source_models as src
from .. import target_models as tgt
from ..driver import EntityKindPlan
from ..key_mapping import EntityKind
from .base import MigrationContext

LOGGER = logging.getLogger("migration_toolkit.handlers.settings")


def _global_key_prerequisite(source: src.CmsSettingsKey) -> Optional[str]:
    # Target keys have no site column, a site key would clash with the global one.
    if source.site_id is not None:
        return f"settings key of site {source.site_id} is not migrated, only global keys are"
    return None


def settings_plans() -> Tuple[EntityKindPlan, ...]:
    return (
        EntityKindPlan(
            kind=EntityKind.RESOURCE,
            source_model=src.CmsResource,
            target_model=tgt.CmsResource,
            business_key=("resource_guid", "resource_guid"),
        ),
        EntityKindPlan(
            kind=EntityKind.SETTINGS_CATEGORY,
            source_model=src.CmsSettingsCategory,
            target_model=tgt.CmsSettingsCategory,
            business_key=("category_name", "category_name"),
            # children look up the ids of their parents written just before
            batch_size=1,
            source_options=(
                selectinload(src.CmsSettingsCategory.category_parent),
                selectinload(src.CmsSettingsCategory.category_resource),
            ),
            target_options=(
                selectinload(tgt.CmsSettingsCategory.category_parent),
                selectinload(tgt.CmsSettingsCategory.category_resource),
            ),
        ),
        EntityKindPlan(
            kind=EntityKind.SETTINGS_KEY,
            source_model=src.CmsSettingsKey,
            target_model=tgt.CmsSettingsKey,
            business_key=("key_guid", "key_guid"),
            prerequisite=_global_key_prerequisite,
        ),
    )


async def migrate_settings(context: MigrationContext) -> None:
    for plan in settings_plans():
        if context.cancelled:
            LOGGER.warning("Settings migration cancelled before %s", plan.kind.value)
            return
        stats = await context.driver.migrate(plan, context.mappers[plan.kind])
        context.stats.append(stats)
