"""Registry of the entity mappers, keyed by entity kind."""

from __future__ import annotations

from typing import Any, Dict

from ..key_mapping import EntityKind, KeyTranslationContext
from .base import EntityMapperBase
from .contacts import ContactMapper
from .data_protection import (ConsentAgreementMapper, ConsentArchiveMapper,
                              ConsentMapper)
from .forms import ClassMapper, FormMapper
from .resources import ResourceMapper
from .settings import SettingsCategoryMapper, SettingsKeyMapper

MapperRegistry = Dict[EntityKind, EntityMapperBase[Any, Any]]


def build_mappers(key_context: KeyTranslationContext) -> MapperRegistry:
    resource_mapper = ResourceMapper(key_context)
    mappers: MapperRegistry = {
        EntityKind.RESOURCE: resource_mapper,
        EntityKind.SETTINGS_CATEGORY: SettingsCategoryMapper(key_context, resource_mapper),
        EntityKind.SETTINGS_KEY: SettingsKeyMapper(key_context),
        EntityKind.CONTACT: ContactMapper(key_context),
        EntityKind.CONSENT: ConsentMapper(key_context),
        EntityKind.CONSENT_ARCHIVE: ConsentArchiveMapper(key_context),
        EntityKind.CONSENT_AGREEMENT: ConsentAgreementMapper(key_context),
        EntityKind.CLASS: ClassMapper(key_context),
        EntityKind.FORM: FormMapper(key_context),
    }
    return mappers
