"""Migration commands, one per area of the source system."""

from __future__ import annotations

from typing import Tuple

from ..models import DEFAULT_COMMANDS
from .base import CommandHandler, CommandRegistry, MigrationContext
from .data_protection import migrate_data_protection
from .forms import migrate_forms
from .settings import migrate_settings

# Commands run in this order regardless of how they were requested.
COMMAND_ORDER: Tuple[str, ...] = DEFAULT_COMMANDS

COMMAND_HANDLERS: CommandRegistry = {
    "settings": migrate_settings,
    "data_protection": migrate_data_protection,
    "forms": migrate_forms,
}


def ordered_commands(requested: Tuple[str, ...]) -> Tuple[str, ...]:
    return tuple(name for name in COMMAND_ORDER if name in requested)


__all__ = [
    "COMMAND_HANDLERS",
    "COMMAND_ORDER",
    "CommandHandler",
    "CommandRegistry",
    "MigrationContext",
    "ordered_commands",
]
