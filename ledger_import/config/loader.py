from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.field_registry import RegistryError
from ..models.import_context import ImportContext
from .contexts import context_from_dict
from .locales import Locale, get_locale

"""Configuration loader.

Responsibilities:
- Load YAML (default ``config/import.yml``)
- Validate against the bundled JSON schema (``import_schema.json``)
- Apply defaults (locale=es, search_depth=10, mapping store path)
- Build the ImportContexts declared under ``contexts``
"""

__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "AppConfig",
    "DEFAULT_CONFIG_PATH",
    "DEFAULT_MAPPING_STORE",
    "load_config",
    "load_config_or_default",
]

SCHEMA_PATH = Path(__file__).with_name("import_schema.json")
DEFAULT_CONFIG_PATH = Path("config/import.yml")
DEFAULT_MAPPING_STORE = ".ledger_import/mappings.json"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class DatabaseConfig:
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class AppConfig:
    locale_code: str = "es"
    search_depth: int = 10
    default_year: int | None = None
    mapping_store: str = DEFAULT_MAPPING_STORE
    table_prefix: str = ""
    keep_na_strings: list[str] | None = None
    contexts: dict[str, ImportContext] = field(default_factory=dict)  # config 定義分のみ (built-in は resolve_context で補完)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)

    @property
    def locale(self) -> Locale:
        return get_locale(self.locale_code)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: schema file missing/invalid or the data violates it
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"config validation failed at {location}: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    try:
        contexts = {name: context_from_dict(name, spec) for name, spec in (data.get("contexts") or {}).items()}
    except RegistryError as e:
        raise ConfigError(f"invalid context: {e}") from e

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return AppConfig(
        locale_code=data.get("locale", "es"),
        search_depth=data.get("search_depth", 10),
        default_year=data.get("default_year"),
        mapping_store=data.get("mapping_store", DEFAULT_MAPPING_STORE),
        table_prefix=data.get("table_prefix", ""),
        keep_na_strings=data.get("keep_na_strings"),
        contexts=contexts,
        database=db,
    )


def load_config_or_default(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    """Like load_config, but a missing file yields the defaults."""
    if not Path(path).exists():
        return AppConfig()
    return load_config(path)
