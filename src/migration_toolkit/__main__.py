from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys

from rich.console import Console

from .config import load_config
from .errors import ConfigurationError, KeyMappingConflictError
from .logging_utils import setup_logging
from .migrate import run_migration
from .models import MigrationConfig
from .protocol import ProtocolSummary

console = Console()
LOGGER = logging.getLogger("migration_toolkit")


async def _run(config: MigrationConfig) -> ProtocolSummary:
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, cancel_event.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; Ctrl+C then aborts immediately.
            LOGGER.debug("Cannot install handler for %s", signum)
    return await run_migration(config, console=console, cancel_event=cancel_event)


def main() -> None:
    setup_logging(os.getenv("LOG_LEVEL", "INFO"), console=console)

    try:
        config = load_config()
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    try:
        summary = asyncio.run(_run(config))
    except KeyMappingConflictError as exc:
        LOGGER.exception("Inconsistent key translation")
        print(f"Migration aborted: {exc}", file=sys.stderr)
        sys.exit(3)
    except Exception as exc:  # pragma: no cover - guard for CLI usage
        LOGGER.exception("Migration failed")
        print(f"Migration failed: {exc}", file=sys.stderr)
        sys.exit(3)

    if summary.has_failures:
        LOGGER.warning("Migration finished with failures, see the report for details")


if __name__ == "__main__":
    main()
