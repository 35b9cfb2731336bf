"""Entity mappers: one module per area of the source schema."""

from . import (base, common, contacts, data_protection, forms, registry,
               resources, settings)
from .base import (EntityMapperBase, KeyBinding, MapperResult, MappingHelper,
                   Reconciliation)
from .registry import build_mappers

__all__ = [
    "EntityMapperBase",
    "KeyBinding",
    "MapperResult",
    "MappingHelper",
    "Reconciliation",
    "base",
    "build_mappers",
    "common",
    "contacts",
    "data_protection",
    "forms",
    "registry",
    "resources",
    "settings",
]
