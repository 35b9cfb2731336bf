"""Entity mapper contract: build or update one target record from one source record."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, List, Optional, Tuple, TypeVar

from .. import handbook
from ..errors import MappingFailure
from ..handbook import HandbookReference
from ..key_mapping import EntityKind, KeyTranslationContext
from .common import loaded_related

S = TypeVar("S")
T = TypeVar("T")


@dataclass(frozen=True)
class KeyBinding:
    """A key translation the driver records once the owning record is persisted.

    ``target`` is either the target id itself or, when ``id_attr`` is set, a
    target object whose id is only assigned by the store during the flush.
    """

    kind: EntityKind
    source_id: int
    target: Any
    id_attr: Optional[str] = None

    def target_id(self) -> Optional[int]:
        if self.id_attr is None:
            return self.target
        return getattr(self.target, self.id_attr, None)


@dataclass(frozen=True)
class MapperResult(Generic[T]):
    success: bool
    item: Optional[T] = None
    is_new_instance: bool = False
    failure: Optional[HandbookReference] = None
    bindings: Tuple[KeyBinding, ...] = ()

    def __post_init__(self) -> None:
        if self.success and (self.item is None or self.failure is not None):
            raise ValueError("successful mapper result must carry an item and no failure")
        if not self.success and (self.failure is None or self.item is not None):
            raise ValueError("failed mapper result must carry a failure and no item")

    @classmethod
    def ok(
        cls, item: T, is_new_instance: bool, bindings: Tuple[KeyBinding, ...] = ()
    ) -> "MapperResult[T]":
        return cls(True, item=item, is_new_instance=is_new_instance, bindings=bindings)

    @classmethod
    def failed(cls, failure: HandbookReference) -> "MapperResult[T]":
        return cls(False, failure=failure)


class Reconciliation(str, Enum):
    """How a foreign-key branch of a mapping is reconciled.

    MIGRATE: the related source object is loaded; map it together with the owner.
    ALREADY_PRESENT: both sides already reference a counterpart; keep the target's.
    UNRESOLVED: only the raw source id is known; resolve it by key translation.
    """

    MIGRATE = "migrate"
    ALREADY_PRESENT = "already_present"
    UNRESOLVED = "unresolved"


def reconcile(
    source: Any,
    relation: str,
    source_fk: str,
    target: Any,
    target_fk: str,
    key_context: KeyTranslationContext,
    kind: EntityKind,
) -> Reconciliation:
    if loaded_related(source, relation) is None:
        return Reconciliation.UNRESOLVED
    if (
        loaded_related(target, relation) is not None
        and getattr(source, source_fk, None) is not None
        and getattr(target, target_fk, None) is not None
    ):
        return Reconciliation.ALREADY_PRESENT
    # A counterpart migrated earlier in this run is linked by id, not created again.
    if key_context.translate_allow_null(kind, getattr(source, source_fk, None)) is not None:
        return Reconciliation.UNRESOLVED
    return Reconciliation.MIGRATE


class MappingHelper:
    """Per-call collector of failures and key bindings, plus key translation."""

    def __init__(self, key_context: KeyTranslationContext) -> None:
        self._key_context = key_context
        self.failures: List[HandbookReference] = []
        self.bindings: List[KeyBinding] = []

    def add_failure(self, reference: HandbookReference) -> None:
        self.failures.append(reference)

    def bind(
        self, kind: EntityKind, source_id: int, target: Any, id_attr: Optional[str] = None
    ) -> None:
        self.bindings.append(KeyBinding(kind, source_id, target, id_attr))

    def translate_into(
        self, target: Any, attr: str, kind: EntityKind, source_id: Optional[int]
    ) -> bool:
        """Assign the translated id of an optional reference to ``target.attr``.

        A missing source id clears the reference. An id that cannot be
        resolved leaves the target untouched and returns False.
        """
        if source_id is None:
            setattr(target, attr, None)
            return True
        target_id = self._key_context.translate(kind, source_id)
        if target_id is None:
            return False
        setattr(target, attr, target_id)
        return True

    def reconcile(
        self,
        source: Any,
        relation: str,
        source_fk: str,
        target: Any,
        target_fk: str,
        kind: EntityKind,
    ) -> Reconciliation:
        return reconcile(
            source, relation, source_fk, target, target_fk, self._key_context, kind
        )

    def translate_required(
        self,
        owner_kind: EntityKind,
        source: Any,
        field_name: str,
        kind: EntityKind,
        source_id: Optional[int],
    ) -> Optional[int]:
        target_id = self._key_context.translate_allow_null(kind, source_id)
        if target_id is None:
            self.add_failure(
                handbook.missing_required_reference(
                    owner_kind, source, field_name, kind, source_id
                )
            )
        return target_id

    def map_related(
        self, mapper: "EntityMapperBase[Any, Any]", source: Any, target: Any
    ) -> Any:
        """Map a loaded related object; on success its key pair is bound as well."""
        result = mapper.map(source, target)
        if not result.success:
            self.add_failure(result.failure)
            return None
        self.bindings.extend(result.bindings)
        self.bind(
            mapper.kind, mapper.source_id(source), result.item, mapper.target_id_attr
        )
        return result.item


class EntityMapperBase(ABC, Generic[S, T]):
    """Base class of all entity mappers.

    Mappers are pure with respect to storage: they never add objects to a
    session and never write key translations. Both happen in the driver,
    after the record has been persisted.
    """

    kind: EntityKind
    source_id_attr: str
    target_id_attr: str

    def __init__(self, key_context: KeyTranslationContext) -> None:
        self.key_context = key_context
        self.logger = logging.getLogger(f"migration_toolkit.mappings.{self.kind.value}")

    def source_id(self, source: S) -> int:
        return getattr(source, self.source_id_attr)

    def map(self, source: S, target: Optional[T]) -> MapperResult[T]:
        helper = MappingHelper(self.key_context)
        new_instance = target is None
        try:
            if new_instance:
                target = self.create_new_instance(source, helper)
                if target is None:
                    if not helper.failures:
                        helper.add_failure(
                            handbook.cannot_construct(
                                self.kind, source, "no target instance was created"
                            )
                        )
                    return MapperResult.failed(self._aggregate(source, helper.failures))
            mapped = self.map_internal(source, target, new_instance, helper)
        except MappingFailure as exc:
            helper.add_failure(handbook.cannot_construct(self.kind, source, str(exc)))
            return MapperResult.failed(self._aggregate(source, helper.failures))

        if helper.failures:
            return MapperResult.failed(self._aggregate(source, helper.failures))
        return MapperResult.ok(mapped, new_instance, tuple(helper.bindings))

    def _aggregate(
        self, source: S, failures: List[HandbookReference]
    ) -> HandbookReference:
        if len(failures) == 1 and failures[0].kind is self.kind:
            return failures[0]
        return handbook.failed_to_map_related(self.kind, source, failures)

    @abstractmethod
    def create_new_instance(self, source: S, helper: MappingHelper) -> Optional[T]:
        """Create an empty target shell and populate its set-once fields."""

    @abstractmethod
    def map_internal(
        self, source: S, target: T, new_instance: bool, helper: MappingHelper
    ) -> T:
        """Merge source values onto ``target``."""
