from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from erp_import.models.config_models import DEFAULT_TABLES, DatabaseConfig, ImportConfig
from erp_import.models.schema_models import Destination

"""Config loader.

Responsibilities:
- Load YAML config (default config/import.yml)
- Validate it against the JSON schema shipped next to this module
- Apply defaults for every missing key
"""

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "ConfigError",
    "default_config",
    "load_config",
]

DEFAULT_CONFIG_PATH = Path("config/import.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: schema file missing or unreadable, or data violates it
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


def default_config() -> ImportConfig:
    return ImportConfig()


def load_config(path: Path) -> ImportConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping, got {type(data).__name__}")

    _validate_config_schema(data)

    defaults = default_config()
    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    tables = dict(DEFAULT_TABLES)
    for key, table in (data.get("tables") or {}).items():
        tables[Destination(key)] = table

    return ImportConfig(
        batch_size=data.get("batch_size", defaults.batch_size),
        existence_chunk_size=data.get("existence_chunk_size", defaults.existence_chunk_size),
        min_mapping_score=float(data.get("min_mapping_score", defaults.min_mapping_score)),
        low_confidence_threshold=float(
            data.get("low_confidence_threshold", defaults.low_confidence_threshold)
        ),
        preview_rows=data.get("preview_rows", defaults.preview_rows),
        error_list_limit=data.get("error_list_limit", defaults.error_list_limit),
        flag_in_file_duplicates=data.get("flag_in_file_duplicates", defaults.flag_in_file_duplicates),
        merge_existing_records=data.get("merge_existing_records", defaults.merge_existing_records),
        retry_failed_batch_rows=data.get("retry_failed_batch_rows", defaults.retry_failed_batch_rows),
        tables=tables,
        logs_directory=data.get("logs_directory", defaults.logs_directory),
        database=db,
    )
