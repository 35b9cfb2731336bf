from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple

DEFAULT_BATCH_SIZE = 1000
MIN_BATCH_SIZE = 5
DEFAULT_BULK_COPY_BATCH_SIZE = 20000
DEFAULT_FLUSH_RETRIES = 2
DEFAULT_SOURCE_PAGE_SIZE = 500
DEFAULT_DB_CONNECT_TIMEOUT = 60.0
DEFAULT_REPORT_DIR = "migration_reports"
DEFAULT_COMMANDS: Tuple[str, ...] = ("settings", "data_protection", "forms")


def effective_batch_size(requested: Optional[int]) -> int:
    """Apply the default and the lower bound to a requested batch size."""
    return max(requested or DEFAULT_BATCH_SIZE, MIN_BATCH_SIZE)


@dataclass(frozen=True)
class DatabaseConfig:
    url: str
    connect_timeout: float = DEFAULT_DB_CONNECT_TIMEOUT
    apply_schema: bool = False


@dataclass(frozen=True)
class MigrationConfig:
    source: DatabaseConfig
    target: DatabaseConfig
    batch_size: int = DEFAULT_BATCH_SIZE
    bulk_copy_batch_size: int = DEFAULT_BULK_COPY_BATCH_SIZE
    flush_retries: int = DEFAULT_FLUSH_RETRIES
    source_page_size: int = DEFAULT_SOURCE_PAGE_SIZE
    # entity kind value -> {source id -> target id}
    explicit_mappings: Dict[str, Dict[int, int]] = field(default_factory=dict)
    commands: Tuple[str, ...] = DEFAULT_COMMANDS
    report_dir: Optional[Path] = None
