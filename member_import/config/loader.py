from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DEFAULT_COLUMNS,
    DEFAULT_SKIP_FIELDS,
    ColumnMapping,
    DatabaseConfig,
    ImportConfig,
    TableConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config (default config/import.yml)
- Validate against the bundled JSON schema (config_schema.json)
- Apply defaults (batch_size=50, timezone=UTC, legacy column layout)
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "build_config",
]

DEFAULT_CONFIG_PATH = Path("config/import.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

REQUIRED_FIELDS = ("email", "full_name")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing/invalid, or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def build_config(data: dict[str, Any]) -> ImportConfig:
    """Build ImportConfig from already-validated data."""
    columns = tuple(data.get("columns") or DEFAULT_COLUMNS)
    missing = [f for f in REQUIRED_FIELDS if f not in columns]
    if missing:
        raise ConfigError(f"columns must include {missing}")
    skip_fields = frozenset(data["skip_fields"]) if "skip_fields" in data else DEFAULT_SKIP_FIELDS
    # 必須列をスキップ対象にはできない
    clash = skip_fields.intersection(REQUIRED_FIELDS)
    if clash:
        raise ConfigError(f"skip_fields cannot contain {sorted(clash)}")

    tables_raw = data.get("tables") or {}
    db_raw = data.get("database") or {}
    return ImportConfig(
        source_file=data["source_file"],
        sheet=data.get("sheet"),
        batch_size=data.get("batch_size", 50),
        timezone=data.get("timezone", "UTC"),
        mapping=ColumnMapping(columns=columns, skip_fields=skip_fields),
        tables=TableConfig(**tables_raw),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
    )


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")

    _validate_config_schema(data)
    return build_config(data)
