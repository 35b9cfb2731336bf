"""Relational record migration between a source and a target CMS schema."""

from .key_mapping import EntityKind, KeyTranslationContext
from .protocol import MigrationProtocol

__all__ = ["EntityKind", "KeyTranslationContext", "MigrationProtocol"]
