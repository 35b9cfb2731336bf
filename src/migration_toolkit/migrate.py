from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console

from .bulk_copy import BulkDataCopyService
from .class_facade import ClassFacade, TargetClassFacade
from .db_connector import DatabaseConnector
from .driver import BatchMigrationDriver
from .handlers import COMMAND_HANDLERS, MigrationContext, ordered_commands
from .key_mapping import KeyTranslationContext
from .mappings import build_mappers
from .models import MigrationConfig
from .protocol import MigrationProtocol, ProtocolSummary
from .report import write_report
from .source_reader import SourceReader
from .target_models import TargetBase

LOGGER = logging.getLogger("migration_toolkit")


async def run_commands(context: MigrationContext, console: Console) -> None:
    with console.status("Starting migration...") as status:
        for name in ordered_commands(context.config.commands):
            if context.cancelled:
                LOGGER.warning("Migration cancelled, remaining commands are not run")
                break
            status.update(f"Running {name} migration...")
            LOGGER.info("Running %s migration", name)
            await COMMAND_HANDLERS[name](context)


async def run_migration(
    config: MigrationConfig,
    console: Optional[Console] = None,
    cancel_event: Optional[asyncio.Event] = None,
    class_facade: Optional[ClassFacade] = None,
) -> ProtocolSummary:
    active_console = console or Console()
    started_at = datetime.now(timezone.utc)

    source = DatabaseConnector(config.source, "source database")
    target = DatabaseConnector(config.target, "target database")
    try:
        source_engine = await source.open()
        target_engine = await target.open()
        if config.target.apply_schema:
            LOGGER.info("Applying target schema as requested by configuration")
            await target.ensure_schema(TargetBase.metadata)

        key_context = KeyTranslationContext(config.explicit_mappings)
        protocol = MigrationProtocol()
        reader = SourceReader(source.session_factory, config.source_page_size)
        context = MigrationContext(
            config=config,
            key_context=key_context,
            protocol=protocol,
            reader=reader,
            driver=BatchMigrationDriver(
                reader,
                target.session_factory,
                key_context,
                protocol,
                batch_size=config.batch_size,
                flush_retries=config.flush_retries,
                cancel_event=cancel_event,
            ),
            mappers=build_mappers(key_context),
            class_facade=class_facade
            or TargetClassFacade(target_engine, target.session_factory),
            bulk_copy=BulkDataCopyService(source_engine, target_engine),
            cancel_event=cancel_event,
        )

        await run_commands(context, active_console)
        write_report(
            protocol, started_at, active_console, config.report_dir, key_context
        )
        summary = protocol.summary()
    finally:
        await source.dispose()
        await target.dispose()

    LOGGER.info(
        "Migration finished: %s key translations, %s handbook references",
        len(key_context),
        len(summary.references),
    )
    return summary
