"""Shared state handed to every migration command."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from ..bulk_copy import BulkDataCopyService
from ..class_facade import ClassFacade
from ..driver import BatchMigrationDriver, DriverStats
from ..key_mapping import KeyTranslationContext
from ..mappings.registry import MapperRegistry
from ..models import MigrationConfig
from ..protocol import MigrationProtocol
from ..source_reader import SourceReader


@dataclass
class MigrationContext:
    config: MigrationConfig
    key_context: KeyTranslationContext
    protocol: MigrationProtocol
    reader: SourceReader
    driver: BatchMigrationDriver
    mappers: MapperRegistry
    class_facade: ClassFacade
    bulk_copy: BulkDataCopyService
    cancel_event: Optional[asyncio.Event] = None
    stats: List[DriverStats] = field(default_factory=list)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


CommandHandler = Callable[[MigrationContext], Awaitable[None]]
CommandRegistry = Dict[str, CommandHandler]
