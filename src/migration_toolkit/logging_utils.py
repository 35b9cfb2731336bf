"""Logging setup helpers using Rich."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from rich.console import Console
from rich.logging import RichHandler

from .handbook import identity_print
from .key_mapping import EntityKind


def setup_logging(level: str = "INFO", console: Optional[Console] = None) -> None:
    """Configure logging to use Rich's console rendering."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        rich_tracebacks=False,
        show_level=True,
        show_time=True,
        show_path=False,
        markup=False,
    )
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


def log_entity_set_action(
    logger: logging.Logger, new_instance: bool, kind: EntityKind, item: Any
) -> None:
    logger.info(
        "%s %s: %s",
        "Inserted" if new_instance else "Updated",
        kind.value,
        identity_print(item),
    )


def log_entity_set_error(
    logger: logging.Logger,
    exc: BaseException,
    new_instance: bool,
    kind: EntityKind,
    item: Any,
) -> None:
    logger.error(
        "Failed to %s %s %s: %s",
        "insert" if new_instance else "update",
        kind.value,
        identity_print(item),
        exc,
    )


def log_entities_set_error(
    logger: logging.Logger,
    exc: BaseException,
    new_instance: bool,
    kind: EntityKind,
    items: Iterable[Any],
) -> None:
    items = list(items)
    if not items:
        return
    logger.error(
        "Failed to %s %s %s records (%s): %s",
        "insert" if new_instance else "update",
        len(items),
        kind.value,
        ", ".join(identity_print(item) for item in items),
        exc,
    )
