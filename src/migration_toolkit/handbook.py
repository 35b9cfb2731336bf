"""Structured diagnostics attached to failed or degraded migration outcomes.

A :class:`HandbookReference` is data, never an exception: mappers return
them inside failed results, the driver appends them to the protocol, and
the end-of-run report lists them as the operator's remediation handbook.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from .key_mapping import EntityKind


class Severity(str, Enum):
    INFO_ONLY = "info_only"
    NEEDS_MANUAL_ACTION = "needs_manual_action"


class HandbookCode(str, Enum):
    CANNOT_CONSTRUCT_TARGET = "cannot_construct_target"
    MISSING_REQUIRED_REFERENCE = "missing_required_reference"
    FAILED_TO_MAP_RELATED = "failed_to_map_related"
    INVALID_SOURCE_DATA = "invalid_source_data"
    DB_CONSTRAINT_BROKEN = "db_constraint_broken"
    ERROR_CREATING_TARGET_INSTANCE = "error_creating_target_instance"
    ERROR_UPDATING_TARGET_INSTANCE = "error_updating_target_instance"
    ERROR_FETCHING_TARGET_INSTANCE = "error_fetching_target_instance"
    SOURCE_PREREQUISITE_UNMET = "source_prerequisite_unmet"
    DATA_MUST_NOT_EXIST_IN_TARGET_TABLE = "data_must_not_exist_in_target_table"
    BULK_COPY_FAILED = "bulk_copy_failed"
    KEY_MAPPING_CONFLICT = "key_mapping_conflict"


def identity_print(item: Any) -> str:
    """Short human readable identification of a source or target record."""
    printer = getattr(item, "identity_print", None)
    if callable(printer):
        return printer()
    return repr(item)


@dataclass(frozen=True)
class HandbookReference:
    code: HandbookCode
    message: str
    severity: Severity = Severity.INFO_ONLY
    kind: Optional[EntityKind] = None
    subjects: Tuple[str, ...] = ()
    causes: Tuple["HandbookReference", ...] = ()
    details: Optional[str] = None

    def with_message(self, message: str) -> "HandbookReference":
        return replace(self, message=message)

    def needs_manual_action(self) -> "HandbookReference":
        return replace(self, severity=Severity.NEEDS_MANUAL_ACTION)

    def with_identity_print(self, item: Any) -> "HandbookReference":
        return replace(self, subjects=self.subjects + (identity_print(item),))

    def with_identity_prints(self, items: Iterable[Any]) -> "HandbookReference":
        return replace(
            self, subjects=self.subjects + tuple(identity_print(i) for i in items)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "severity": self.severity.value,
            "kind": self.kind.value if self.kind else None,
            "subjects": list(self.subjects),
            "causes": [cause.to_dict() for cause in self.causes],
            "details": self.details,
        }


def cannot_construct(kind: EntityKind, source: Any, reason: str) -> HandbookReference:
    return HandbookReference(
        code=HandbookCode.CANNOT_CONSTRUCT_TARGET,
        message=f"Cannot construct target {kind.value}: {reason}",
        kind=kind,
        subjects=(identity_print(source),),
    )


def missing_required_reference(
    kind: EntityKind,
    source: Any,
    field_name: str,
    referenced_kind: EntityKind,
    referenced_id: Optional[int],
) -> HandbookReference:
    return HandbookReference(
        code=HandbookCode.MISSING_REQUIRED_REFERENCE,
        message=(
            f"Required reference '{field_name}' to {referenced_kind.value} "
            f"{referenced_id} is not migrated"
        ),
        severity=Severity.NEEDS_MANUAL_ACTION,
        kind=kind,
        subjects=(identity_print(source),),
    )


def failed_to_map_related(
    kind: EntityKind, source: Any, causes: Iterable[HandbookReference]
) -> HandbookReference:
    causes = tuple(causes)
    severity = (
        Severity.NEEDS_MANUAL_ACTION
        if any(c.severity is Severity.NEEDS_MANUAL_ACTION for c in causes)
        else Severity.INFO_ONLY
    )
    return HandbookReference(
        code=HandbookCode.FAILED_TO_MAP_RELATED,
        message=f"Failed to map {kind.value}",
        severity=severity,
        kind=kind,
        subjects=(identity_print(source),),
        causes=causes,
    )


def invalid_source_data(kind: EntityKind, source: Any, reason: str) -> HandbookReference:
    return HandbookReference(
        code=HandbookCode.INVALID_SOURCE_DATA,
        message=reason,
        severity=Severity.NEEDS_MANUAL_ACTION,
        kind=kind,
        subjects=(identity_print(source),),
    )


def db_constraint_broken(kind: EntityKind, exc: BaseException, source: Any) -> HandbookReference:
    return HandbookReference(
        code=HandbookCode.DB_CONSTRAINT_BROKEN,
        message=f"Target database constraint broken while saving {kind.value}",
        severity=Severity.NEEDS_MANUAL_ACTION,
        kind=kind,
        subjects=(identity_print(source),),
        details=str(exc),
    )


def error_creating_target_instance(kind: EntityKind, exc: BaseException) -> HandbookReference:
    return HandbookReference(
        code=HandbookCode.ERROR_CREATING_TARGET_INSTANCE,
        message=f"Error while creating target {kind.value}",
        kind=kind,
        details=str(exc),
    )


def error_updating_target_instance(kind: EntityKind, exc: BaseException) -> HandbookReference:
    return HandbookReference(
        code=HandbookCode.ERROR_UPDATING_TARGET_INSTANCE,
        message=f"Error while updating target {kind.value}",
        kind=kind,
        details=str(exc),
    )


def error_fetching_target_instance(
    kind: EntityKind, exc: BaseException, source: Any
) -> HandbookReference:
    return HandbookReference(
        code=HandbookCode.ERROR_FETCHING_TARGET_INSTANCE,
        message=f"Error while looking up the target {kind.value}, record was not migrated",
        severity=Severity.NEEDS_MANUAL_ACTION,
        kind=kind,
        subjects=(identity_print(source),),
        details=str(exc),
    )


def prerequisite_unmet(kind: EntityKind, source: Any, reason: str) -> HandbookReference:
    return HandbookReference(
        code=HandbookCode.SOURCE_PREREQUISITE_UNMET,
        message=f"Skipped {kind.value}: {reason}",
        kind=kind,
        subjects=(identity_print(source),),
    )


def data_must_not_exist_in_target_table(
    table_name: str, kind: Optional[EntityKind] = None
) -> HandbookReference:
    return HandbookReference(
        code=HandbookCode.DATA_MUST_NOT_EXIST_IN_TARGET_TABLE,
        message=(
            f"Data exists in target coupled data table '{table_name}', "
            "coupled data was not copied"
        ),
        severity=Severity.NEEDS_MANUAL_ACTION,
        kind=kind,
        subjects=(table_name,),
    )


def bulk_copy_failed(
    table_name: str, exc: BaseException, kind: Optional[EntityKind] = None
) -> HandbookReference:
    return HandbookReference(
        code=HandbookCode.BULK_COPY_FAILED,
        message=f"Bulk copy of coupled data table '{table_name}' failed",
        severity=Severity.NEEDS_MANUAL_ACTION,
        kind=kind,
        subjects=(table_name,),
        details=str(exc),
    )


def key_mapping_conflict(kind: EntityKind, exc: BaseException, item: Any) -> HandbookReference:
    return HandbookReference(
        code=HandbookCode.KEY_MAPPING_CONFLICT,
        message=f"Related {kind.value} is linked to a different target record than before",
        severity=Severity.NEEDS_MANUAL_ACTION,
        kind=kind,
        subjects=(identity_print(item),),
        details=str(exc),
    )
