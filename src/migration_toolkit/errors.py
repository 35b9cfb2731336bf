"""Error taxonomy shared by the migration engine."""

from __future__ import annotations

from typing import Optional

from psycopg import errors as pg_errors
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

UNIQUE_VIOLATION_SQLSTATE = "23505"
_DUPLICATE_KEY_MARKERS = (
    "unique constraint failed",
    "duplicate key value violates unique constraint",
    "cannot insert duplicate key row",
    "violation of unique key constraint",
)


class MigrationError(Exception):
    """Base exception for migration toolkit errors."""


class ConfigurationError(MigrationError):
    """Raised when the run configuration is unusable."""


class KeyMappingConflictError(MigrationError):
    """Raised when a key translation would be overwritten with a different id."""


class MappingFailure(MigrationError):
    """Source data cannot be transformed into a target record."""


class PreconditionUnmet(MigrationError):
    """A prerequisite for migrating a record or a table is not satisfied."""


class PersistenceError(MigrationError):
    """Writing to the target store failed."""

    def __init__(self, message: str, transient: bool = False) -> None:
        super().__init__(message)
        self.transient = transient


class DuplicateKeyConflict(PersistenceError):
    """A uniqueness constraint in the target store was violated."""


def _sqlstate(exc: DBAPIError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_duplicate_key(exc: BaseException) -> bool:
    if not isinstance(exc, IntegrityError):
        return False
    if isinstance(exc.orig, pg_errors.UniqueViolation):
        return True
    if _sqlstate(exc) == UNIQUE_VIOLATION_SQLSTATE:
        return True
    message = str(exc.orig).lower()
    return any(marker in message for marker in _DUPLICATE_KEY_MARKERS)


def classify_persistence_error(exc: BaseException) -> PersistenceError:
    """Translate a driver/ORM exception into the toolkit's persistence taxonomy."""
    if isinstance(exc, PersistenceError):
        return exc
    if is_duplicate_key(exc):
        return DuplicateKeyConflict(str(exc))
    if isinstance(exc, OperationalError):
        return PersistenceError(str(exc), transient=True)
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return PersistenceError(str(exc), transient=True)
    return PersistenceError(str(exc))
