"""Mapping helpers for settings categories and settings keys."""

from __future__ import annotations

from typing import Optional

from .. import source_models as src
from .. import target_models as tgt
from ..key_mapping import EntityKind, KeyTranslationContext
from .base import EntityMapperBase, MappingHelper, Reconciliation
from .common import loaded_related, require, trim
from .resources import ResourceMapper


class SettingsCategoryMapper(
    EntityMapperBase[src.CmsSettingsCategory, tgt.CmsSettingsCategory]
):
    kind = EntityKind.SETTINGS_CATEGORY
    source_id_attr = "category_id"
    target_id_attr = "category_id"

    def __init__(
        self, key_context: KeyTranslationContext, resource_mapper: ResourceMapper
    ) -> None:
        super().__init__(key_context)
        self._resource_mapper = resource_mapper

    def create_new_instance(
        self, source: src.CmsSettingsCategory, helper: MappingHelper
    ) -> Optional[tgt.CmsSettingsCategory]:
        return tgt.CmsSettingsCategory()

    def map_internal(
        self,
        source: src.CmsSettingsCategory,
        target: tgt.CmsSettingsCategory,
        new_instance: bool,
        helper: MappingHelper,
    ) -> tgt.CmsSettingsCategory:
        # Categories carry no GUID; the code name is the business key and,
        # once in the target, the category belongs to whoever edits it there.
        if new_instance:
            target.category_name = require(source, "category_name")
            target.category_display_name = trim(source.category_display_name, 200)
            target.category_order = source.category_order
            target.category_id_path = source.category_id_path
            target.category_level = source.category_level
            target.category_child_count = source.category_child_count
            target.category_icon_path = source.category_icon_path
            target.category_is_group = source.category_is_group
            target.category_is_custom = bool(source.category_is_custom)

        self._map_resource(source, target, helper)
        self._map_parent(source, target, helper)
        return target

    def _map_resource(
        self,
        source: src.CmsSettingsCategory,
        target: tgt.CmsSettingsCategory,
        helper: MappingHelper,
    ) -> None:
        decision = helper.reconcile(
            source,
            "category_resource",
            "category_resource_id",
            target,
            "category_resource_id",
            EntityKind.RESOURCE,
        )
        if decision is Reconciliation.ALREADY_PRESENT:
            self.logger.debug(
                "Skipping category resource %s, already present in target instance",
                target.category_resource_id,
            )
            helper.bind(
                EntityKind.RESOURCE,
                source.category_resource_id,
                target.category_resource_id,
            )
        elif decision is Reconciliation.MIGRATE:
            resource = helper.map_related(
                self._resource_mapper,
                source.category_resource,
                loaded_related(target, "category_resource"),
            )
            if resource is not None:
                target.category_resource = resource
        elif not helper.translate_into(
            target,
            "category_resource_id",
            EntityKind.RESOURCE,
            source.category_resource_id,
        ):
            self.logger.debug(
                "Resource %s of category %s is not migrated, reference left as is",
                source.category_resource_id,
                source.category_name,
            )

    def _map_parent(
        self,
        source: src.CmsSettingsCategory,
        target: tgt.CmsSettingsCategory,
        helper: MappingHelper,
    ) -> None:
        decision = helper.reconcile(
            source,
            "category_parent",
            "category_parent_id",
            target,
            "category_parent_id",
            EntityKind.SETTINGS_CATEGORY,
        )
        if decision is Reconciliation.ALREADY_PRESENT:
            helper.bind(
                EntityKind.SETTINGS_CATEGORY,
                source.category_parent_id,
                target.category_parent_id,
            )
        elif decision is Reconciliation.MIGRATE:
            parent = helper.map_related(
                self,
                source.category_parent,
                loaded_related(target, "category_parent"),
            )
            if parent is not None:
                target.category_parent = parent
        elif not helper.translate_into(
            target,
            "category_parent_id",
            EntityKind.SETTINGS_CATEGORY,
            source.category_parent_id,
        ):
            self.logger.debug(
                "Parent %s of category %s is not migrated, reference left as is",
                source.category_parent_id,
                source.category_name,
            )


class SettingsKeyMapper(EntityMapperBase[src.CmsSettingsKey, tgt.CmsSettingsKey]):
    kind = EntityKind.SETTINGS_KEY
    source_id_attr = "key_id"
    target_id_attr = "key_id"

    def create_new_instance(
        self, source: src.CmsSettingsKey, helper: MappingHelper
    ) -> Optional[tgt.CmsSettingsKey]:
        # The value of an existing key may have been changed in the target,
        # so it is only taken over when the key is created.
        return tgt.CmsSettingsKey(
            key_guid=require(source, "key_guid"), key_value=source.key_value
        )

    def map_internal(
        self,
        source: src.CmsSettingsKey,
        target: tgt.CmsSettingsKey,
        new_instance: bool,
        helper: MappingHelper,
    ) -> tgt.CmsSettingsKey:
        target.key_name = require(source, "key_name")
        target.key_display_name = trim(source.key_display_name, 200)
        target.key_description = source.key_description
        target.key_type = require(source, "key_type")
        target.key_last_modified = source.key_last_modified
        target.key_order = source.key_order
        target.key_validation = trim(source.key_validation, 255)
        target.key_is_custom = source.key_is_custom
        target.key_is_hidden = source.key_is_hidden
        target.key_explanation_text = source.key_explanation_text
        helper.translate_into(
            target,
            "key_category_id",
            EntityKind.SETTINGS_CATEGORY,
            source.key_category_id,
        )
        return target
