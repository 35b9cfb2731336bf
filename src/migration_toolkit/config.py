"""Configuration loading for the migration toolkit."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional, Tuple

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .errors import ConfigurationError
from .key_mapping import EntityKind
from .models import (DEFAULT_BULK_COPY_BATCH_SIZE, DEFAULT_COMMANDS,
                     DEFAULT_DB_CONNECT_TIMEOUT, DEFAULT_FLUSH_RETRIES,
                     DEFAULT_REPORT_DIR, DEFAULT_SOURCE_PAGE_SIZE,
                     DatabaseConfig, MigrationConfig, effective_batch_size)

TRUTHY = {"1", "true", "yes", "on"}


def _int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in TRUTHY


class ExplicitMappingsFile(BaseModel):
    """Explicit id remapping overrides, keyed by entity kind."""

    mappings: Dict[str, Dict[int, int]] = {}

    model_config = ConfigDict(extra="forbid")

    @field_validator("mappings")
    @classmethod
    def _known_kinds(cls, value: Dict[str, Dict[int, int]]) -> Dict[str, Dict[int, int]]:
        known = {kind.value for kind in EntityKind}
        unknown = sorted(set(value) - known)
        if unknown:
            raise ValueError(f"unknown entity kinds: {', '.join(unknown)}")
        return value


def load_explicit_mappings(path: Path) -> Dict[str, Dict[int, int]]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}
    except OSError as exc:
        raise ConfigurationError(f"Cannot read explicit mappings file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(f"Explicit mappings file {path} must contain a mapping")
    try:
        return ExplicitMappingsFile.model_validate({"mappings": raw}).mappings
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid explicit mappings in {path}: {exc}") from exc


def _database_url(prefix: str) -> str:
    url = os.getenv(f"{prefix}_DATABASE_URL")
    if url:
        return url
    # Compose from the individual <PREFIX>_POSTGRES_* variables when no full URL is given.
    db = os.getenv(f"{prefix}_POSTGRES_DB")
    user = os.getenv(f"{prefix}_POSTGRES_USER")
    password = os.getenv(f"{prefix}_POSTGRES_PASSWORD")
    if not (db and user and password):
        raise ConfigurationError(
            f"{prefix}_DATABASE_URL or {prefix}_POSTGRES_USER, {prefix}_POSTGRES_PASSWORD "
            f"and {prefix}_POSTGRES_DB environment variables are required"
        )
    host = os.getenv(f"{prefix}_POSTGRES_HOST", "localhost")
    port = os.getenv(f"{prefix}_POSTGRES_PORT", "5432")
    return f"postgresql+psycopg://{user}:{password}@{host}:{port}/{db}"


def _commands(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return DEFAULT_COMMANDS
    requested = tuple(part.strip() for part in value.split(",") if part.strip())
    unknown = [name for name in requested if name not in DEFAULT_COMMANDS]
    if unknown:
        raise ConfigurationError(f"Unknown migration commands: {', '.join(unknown)}")
    return requested


def load_config() -> MigrationConfig:
    """Load migration configuration from environment variables (and a .env file)."""
    load_dotenv()

    connect_timeout = _float(
        os.getenv("DATABASE_CONNECT_TIMEOUT"), DEFAULT_DB_CONNECT_TIMEOUT
    )
    source = DatabaseConfig(url=_database_url("SOURCE"), connect_timeout=connect_timeout)
    target = DatabaseConfig(
        url=_database_url("TARGET"),
        connect_timeout=connect_timeout,
        apply_schema=_flag(os.getenv("DATABASE_APPLY_SCHEMA")),
    )

    mappings_file = os.getenv("EXPLICIT_MAPPINGS_FILE")
    explicit = load_explicit_mappings(Path(mappings_file)) if mappings_file else {}

    report_dir = os.getenv("REPORT_DIR", DEFAULT_REPORT_DIR)

    return MigrationConfig(
        source=source,
        target=target,
        batch_size=effective_batch_size(_int(os.getenv("MIGRATION_BATCH_SIZE"), 0)),
        bulk_copy_batch_size=max(
            1, _int(os.getenv("BULK_COPY_BATCH_SIZE"), DEFAULT_BULK_COPY_BATCH_SIZE)
        ),
        flush_retries=max(0, _int(os.getenv("FLUSH_RETRIES"), DEFAULT_FLUSH_RETRIES)),
        source_page_size=max(
            1, _int(os.getenv("SOURCE_PAGE_SIZE"), DEFAULT_SOURCE_PAGE_SIZE)
        ),
        explicit_mappings=explicit,
        commands=_commands(os.getenv("MIGRATION_COMMANDS")),
        report_dir=Path(report_dir) if report_dir else None,
    )
