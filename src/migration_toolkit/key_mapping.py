"""Run-scoped translation of source primary keys to target primary keys."""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from .errors import KeyMappingConflictError

LOGGER = logging.getLogger("migration_toolkit.key_mapping")


class EntityKind(str, Enum):
    SITE = "site"
    RESOURCE = "resource"
    SETTINGS_CATEGORY = "settings_category"
    SETTINGS_KEY = "settings_key"
    CONTACT = "contact"
    CONSENT = "consent"
    CONSENT_ARCHIVE = "consent_archive"
    CONSENT_AGREEMENT = "consent_agreement"
    CLASS = "class"
    FORM = "form"


class KeyTranslationContext:
    """Maps ``(kind, source id)`` to the id the target store assigned.

    One instance lives for exactly one run. Lookups of ids that were not
    migrated (yet) return ``None``; callers decide whether that means
    "leave the reference empty" or "fail the record".
    """

    def __init__(self, explicit: Optional[Mapping[str, Mapping[int, int]]] = None) -> None:
        self._lock = threading.RLock()
        self._mappings: Dict[Tuple[EntityKind, int], int] = {}
        self._explicit: Dict[EntityKind, Dict[int, int]] = {}
        for kind_name, pairs in (explicit or {}).items():
            self.seed(EntityKind(kind_name), pairs)

    def seed(self, kind: EntityKind, pairs: Mapping[int, int]) -> None:
        """Register configured overrides; they count as explicit mappings."""
        with self._lock:
            bucket = self._explicit.setdefault(kind, {})
            for source_id, target_id in pairs.items():
                self.set_mapping(kind, source_id, target_id)
                bucket[source_id] = target_id

    def set_mapping(self, kind: EntityKind, source_id: int, target_id: int) -> None:
        key = (kind, source_id)
        with self._lock:
            existing = self._mappings.get(key)
            if existing is None:
                self._mappings[key] = target_id
                LOGGER.debug("%s %s -> %s", kind.value, source_id, target_id)
                return
            if existing != target_id:
                raise KeyMappingConflictError(
                    f"{kind.value} {source_id} is already mapped to {existing}, "
                    f"refusing to remap it to {target_id}"
                )

    def translate(self, kind: EntityKind, source_id: int) -> Optional[int]:
        with self._lock:
            return self._mappings.get((kind, source_id))

    def translate_allow_null(
        self, kind: EntityKind, source_id: Optional[int]
    ) -> Optional[int]:
        if source_id is None:
            return None
        return self.translate(kind, source_id)

    def require_explicit_mapping(self, kind: EntityKind) -> Dict[int, int]:
        """Return the configured overrides for ``kind`` (e.g. the in-scope sites)."""
        with self._lock:
            return dict(self._explicit.get(kind, {}))

    def items(self, kind: EntityKind) -> List[Tuple[int, int]]:
        with self._lock:
            return sorted(
                (source_id, target_id)
                for (entry_kind, source_id), target_id in self._mappings.items()
                if entry_kind is kind
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._mappings)
