"""End-of-run report: console tables and a JSON file."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console
from rich.table import Table

from .handbook import Severity
from .key_mapping import EntityKind, KeyTranslationContext
from .protocol import MigrationProtocol, ProtocolSummary

LOGGER = logging.getLogger("migration_toolkit.report")


def render_summary(console: Console, summary: ProtocolSummary) -> None:
    kinds = Table(title="Migrated records", show_header=True)
    kinds.add_column("Entity kind", style="cyan")
    kinds.add_column("Inserted", justify="right", style="green")
    kinds.add_column("Updated", justify="right")
    kinds.add_column("Skipped", justify="right", style="yellow")
    kinds.add_column("Failed", justify="right", style="red")
    for kind, counts in summary.kinds.items():
        kinds.add_row(
            kind.value,
            f"{counts.inserted:,}",
            f"{counts.updated:,}",
            f"{counts.skipped:,}",
            f"{counts.failed:,}",
        )
    console.print()
    console.print(kinds)

    manual = [r for r in summary.references if r.severity is Severity.NEEDS_MANUAL_ACTION]
    if not manual:
        return
    handbook = Table(title="Needs manual action", show_header=True)
    handbook.add_column("Code", style="magenta")
    handbook.add_column("Kind", style="cyan")
    handbook.add_column("Message")
    handbook.add_column("Subjects")
    for reference in manual:
        handbook.add_row(
            reference.code.value,
            reference.kind.value if reference.kind else "",
            reference.message,
            "\n".join(reference.subjects),
        )
    console.print()
    console.print(handbook)


def build_report(
    protocol: MigrationProtocol,
    started_at: datetime,
    key_context: Optional[KeyTranslationContext] = None,
) -> Dict[str, Any]:
    report = protocol.to_dict()
    report["started_at"] = started_at.isoformat()
    report["finished_at"] = datetime.now(timezone.utc).isoformat()
    if key_context is not None:
        # translated ids per kind, explicit overrides included
        report["key_translations"] = {
            kind.value: len(key_context.items(kind)) for kind in EntityKind
        }
    return report


def save_report(report: Dict[str, Any], report_dir: Path) -> Path:
    report_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    path = report_dir / f"migration_report_{stamp}.json"
    with path.open("w", encoding="utf-8") as f:
        json.dump(report, f, indent=2, default=str)
    LOGGER.info("Migration report written to %s", path)
    return path


def write_report(
    protocol: MigrationProtocol,
    started_at: datetime,
    console: Optional[Console] = None,
    report_dir: Optional[Path] = None,
    key_context: Optional[KeyTranslationContext] = None,
) -> Optional[Path]:
    if console is not None:
        render_summary(console, protocol.summary())
    if report_dir is None:
        return None
    return save_report(build_report(protocol, started_at, key_context), report_dir)
