# src/columncrypt/core/tables.py
"""Table encryption configuration: which tables and columns to encrypt.

Stored as a JSON object keyed by table name:

    {
      "users": {"tableName": "users", "primaryKey": "user_id", "columnsToEncrypt": ["email", "phone"]}
    }

The file is read at startup and again before every run, so tables can be
added or changed without restarting a long-lived scheduler process. When
the file does not exist a two-table example is written in its place.
"""

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from columncrypt.contracts.errors import ConfigError
from columncrypt.core.config import format_validation_error
from columncrypt.core.fileio import atomic_write_text
from columncrypt.core.logging import get_logger

logger = get_logger(__name__)


class TableEncryptionConfig(BaseModel):
    """One table's encryption settings. Read-only during a run.

    The primary key column must be of a totally ordered type: batches are
    fetched in ascending key order and the last key of each batch becomes
    the resume point.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    table_name: str = Field(alias="tableName", min_length=1)
    primary_key: str = Field(alias="primaryKey", min_length=1)
    columns_to_encrypt: tuple[str, ...] = Field(alias="columnsToEncrypt", min_length=1)

    @field_validator("columns_to_encrypt")
    @classmethod
    def validate_columns(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Columns are an ordered set: non-empty names, no duplicates."""
        if any(not column for column in v):
            raise ValueError("column names must be non-empty")
        duplicates = sorted({column for column in v if v.count(column) > 1})
        if duplicates:
            raise ValueError(f"duplicate columns: {duplicates}")
        return v

    @model_validator(mode="after")
    def validate_primary_key_not_encrypted(self) -> "TableEncryptionConfig":
        """The cursor column cannot be rewritten mid-scan."""
        if self.primary_key in self.columns_to_encrypt:
            raise ValueError(f"primary key '{self.primary_key}' cannot be an encrypted column")
        return self

    def to_json_dict(self) -> dict[str, object]:
        return {
            "tableName": self.table_name,
            "primaryKey": self.primary_key,
            "columnsToEncrypt": list(self.columns_to_encrypt),
        }


def default_table_configs() -> dict[str, TableEncryptionConfig]:
    """Example configuration written when no table config file exists."""
    return {
        "users": TableEncryptionConfig(
            table_name="users",
            primary_key="user_id",
            columns_to_encrypt=("email", "phone", "ssn"),
        ),
        "orders": TableEncryptionConfig(
            table_name="orders",
            primary_key="order_id",
            columns_to_encrypt=("credit_card",),
        ),
    }


def parse_table_configs(data: object, *, source: str = "<table config>") -> dict[str, TableEncryptionConfig]:
    """Validate a decoded table-config document.

    Raises:
        ConfigError: If the document is not a mapping of valid table entries,
            or an entry's tableName disagrees with its key
    """
    if not isinstance(data, dict):
        raise ConfigError(f"{source}: expected a JSON object keyed by table name, got {type(data).__name__}")

    configs: dict[str, TableEncryptionConfig] = {}
    for key, entry in data.items():
        try:
            config = TableEncryptionConfig.model_validate(entry)
        except ValidationError as e:
            raise ConfigError(f"{source}: invalid entry '{key}': {format_validation_error(e)}") from e
        if config.table_name != key:
            raise ConfigError(f"{source}: entry '{key}' declares tableName '{config.table_name}'")
        configs[key] = config
    return configs


class TableConfigStore:
    """Loads and saves the table encryption config file."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, TableEncryptionConfig]:
        """Read the config file, synthesizing and saving defaults if it is missing.

        Raises:
            ConfigError: If the file is unreadable, not JSON, or fails validation
        """
        if not self._path.exists():
            logger.warning("Table config file not found, writing default example", path=str(self._path))
            configs = default_table_configs()
            self.save(configs)
            return configs

        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigError(f"Cannot read table config {self._path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigError(f"Table config {self._path} is not valid JSON: {e}") from e

        configs = parse_table_configs(data, source=str(self._path))
        logger.info("Table config loaded", path=str(self._path), tables=len(configs))
        return configs

    def save(self, configs: dict[str, TableEncryptionConfig]) -> None:
        """Write configs atomically.

        Raises:
            ConfigError: If the file cannot be written
        """
        document = {name: config.to_json_dict() for name, config in configs.items()}
        try:
            atomic_write_text(self._path, json.dumps(document, indent=2) + "\n")
        except OSError as e:
            raise ConfigError(f"Cannot write table config {self._path}: {e}") from e
        logger.info("Table config saved", path=str(self._path), tables=len(configs))
