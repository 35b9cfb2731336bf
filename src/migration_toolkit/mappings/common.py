"""Shared utilities for mapping source records onto target records."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable

from ..errors import MappingFailure


def loaded_related(obj: Any, name: str) -> Any:
    """Return ``obj.name`` only when it is already loaded; never triggers a lazy load."""
    if obj is None:
        return None
    try:
        state = sa_inspect(obj)
    except NoInspectionAvailable:
        return getattr(obj, name, None)
    if name in state.unloaded:
        return None
    return getattr(obj, name)


def require(source: Any, attr: str) -> Any:
    value = getattr(source, attr, None)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MappingFailure(f"required field '{attr}' is missing")
    return value


def trim(value: Optional[str], length: int) -> Optional[str]:
    if value is None:
        return None
    return value if len(value) <= length else value[:length]
