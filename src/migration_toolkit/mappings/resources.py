"""Mapping of module resources."""

from __future__ import annotations

from typing import Optional

from .. import source_models as src
from .. import target_models as tgt
from ..key_mapping import EntityKind
from .base import EntityMapperBase, MappingHelper
from .common import require, trim


class ResourceMapper(EntityMapperBase[src.CmsResource, tgt.CmsResource]):
    kind = EntityKind.RESOURCE
    source_id_attr = "resource_id"
    target_id_attr = "resource_id"

    def create_new_instance(
        self, source: src.CmsResource, helper: MappingHelper
    ) -> Optional[tgt.CmsResource]:
        return tgt.CmsResource(resource_guid=require(source, "resource_guid"))

    def map_internal(
        self,
        source: src.CmsResource,
        target: tgt.CmsResource,
        new_instance: bool,
        helper: MappingHelper,
    ) -> tgt.CmsResource:
        target.resource_name = require(source, "resource_name")
        target.resource_display_name = trim(source.resource_display_name, 200)
        target.resource_description = source.resource_description
        target.resource_is_in_development = source.resource_is_in_development
        target.resource_last_modified = source.resource_last_modified
        return target
