"""Append-only audit trail of a migration run."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .handbook import HandbookCode, HandbookReference, identity_print
from .key_mapping import EntityKind

FAILED_CODES = frozenset(
    {
        HandbookCode.DB_CONSTRAINT_BROKEN,
        HandbookCode.ERROR_CREATING_TARGET_INSTANCE,
        HandbookCode.ERROR_UPDATING_TARGET_INSTANCE,
        HandbookCode.ERROR_FETCHING_TARGET_INSTANCE,
    }
)


class EventType(str, Enum):
    FETCHED_SOURCE = "fetched_source"
    FETCHED_TARGET = "fetched_target"
    MAPPED_TARGET = "mapped_target"
    SUCCESS = "success"
    APPEND = "append"


@dataclass(frozen=True)
class ProtocolEvent:
    type: EventType
    kind: Optional[EntityKind]
    timestamp: datetime
    subject: Optional[str] = None
    success: Optional[bool] = None
    is_new_instance: Optional[bool] = None
    reference: Optional[HandbookReference] = None


@dataclass
class KindSummary:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "inserted": self.inserted,
            "updated": self.updated,
            "skipped": self.skipped,
            "failed": self.failed,
        }


@dataclass
class ProtocolSummary:
    kinds: Dict[EntityKind, KindSummary] = field(default_factory=dict)
    references: List[HandbookReference] = field(default_factory=list)

    def for_kind(self, kind: EntityKind) -> KindSummary:
        return self.kinds.setdefault(kind, KindSummary())

    @property
    def has_failures(self) -> bool:
        return any(s.failed for s in self.kinds.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kinds": {kind.value: s.to_dict() for kind, s in self.kinds.items()},
            "references": [reference.to_dict() for reference in self.references],
        }


class MigrationProtocol:
    """Observational log of everything the engine did.

    Recording never influences control flow. Appends and reads may happen
    from several tasks; readers always work on a snapshot.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: List[ProtocolEvent] = []

    def _record(self, event_type: EventType, kind: Optional[EntityKind], **values: Any) -> None:
        event = ProtocolEvent(
            type=event_type, kind=kind, timestamp=datetime.now(timezone.utc), **values
        )
        with self._lock:
            self._events.append(event)

    def fetched_source(self, kind: EntityKind, source: Any) -> None:
        self._record(EventType.FETCHED_SOURCE, kind, subject=identity_print(source))

    def fetched_target(self, kind: EntityKind, target: Any) -> None:
        subject = identity_print(target) if target is not None else None
        self._record(EventType.FETCHED_TARGET, kind, subject=subject)

    def mapped_target(self, kind: EntityKind, result: Any) -> None:
        subject = identity_print(result.item) if result.success else None
        self._record(
            EventType.MAPPED_TARGET,
            kind,
            subject=subject,
            success=result.success,
            is_new_instance=result.is_new_instance if result.success else None,
            reference=result.failure,
        )

    def success(self, kind: EntityKind, source: Any, target: Any, is_new_instance: bool) -> None:
        self._record(
            EventType.SUCCESS,
            kind,
            subject=identity_print(target),
            success=True,
            is_new_instance=is_new_instance,
        )

    def append(self, reference: HandbookReference) -> None:
        self._record(EventType.APPEND, reference.kind, reference=reference)

    def events(self) -> List[ProtocolEvent]:
        with self._lock:
            return list(self._events)

    def references(self) -> List[HandbookReference]:
        return [
            e.reference
            for e in self.events()
            if e.type is EventType.APPEND and e.reference is not None
        ]

    def summary(self) -> ProtocolSummary:
        summary = ProtocolSummary()
        for event in self.events():
            if event.type is EventType.SUCCESS and event.kind is not None:
                counts = summary.for_kind(event.kind)
                if event.is_new_instance:
                    counts.inserted += 1
                else:
                    counts.updated += 1
            elif event.type is EventType.MAPPED_TARGET and event.kind is not None:
                if not event.success:
                    summary.for_kind(event.kind).failed += 1
            elif event.type is EventType.APPEND and event.reference is not None:
                reference = event.reference
                summary.references.append(reference)
                if reference.kind is None:
                    continue
                if reference.code is HandbookCode.SOURCE_PREREQUISITE_UNMET:
                    summary.for_kind(reference.kind).skipped += 1
                elif reference.code in FAILED_CODES:
                    summary.for_kind(reference.kind).failed += max(1, len(reference.subjects))
        return summary

    def to_dict(self) -> Dict[str, Any]:
        return self.summary().to_dict()
