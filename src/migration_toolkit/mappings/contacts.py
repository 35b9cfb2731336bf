"""Mapping of online-marketing contacts."""

from __future__ import annotations

from typing import Optional

from .. import source_models as src
from .. import target_models as tgt
from ..key_mapping import EntityKind
from .base import EntityMapperBase, MappingHelper
from .common import require, trim


class ContactMapper(EntityMapperBase[src.OmContact, tgt.OmContact]):
    kind = EntityKind.CONTACT
    source_id_attr = "contact_id"
    target_id_attr = "contact_id"

    def create_new_instance(
        self, source: src.OmContact, helper: MappingHelper
    ) -> Optional[tgt.OmContact]:
        return tgt.OmContact(
            contact_guid=require(source, "contact_guid"),
            contact_created=source.contact_created,
        )

    def map_internal(
        self,
        source: src.OmContact,
        target: tgt.OmContact,
        new_instance: bool,
        helper: MappingHelper,
    ) -> tgt.OmContact:
        target.contact_first_name = trim(source.contact_first_name, 100)
        target.contact_last_name = trim(source.contact_last_name, 100)
        target.contact_email = trim(source.contact_email, 254)
        target.contact_last_modified = source.contact_last_modified
        return target
