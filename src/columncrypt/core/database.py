# src/columncrypt/core/database.py
"""Row store: the database holding the tables being encrypted.

Uses SQLAlchemy Core with lightweight table()/column() constructs, so no
schema reflection is needed and only the configured columns are touched.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any

from sqlalchemy import ColumnClause, TableClause, bindparam, column, create_engine, table, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from columncrypt.contracts import ChangeSet, RowChange, StoreError
from columncrypt.core.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy import Select

    from columncrypt.core.tables import TableEncryptionConfig

logger = get_logger(__name__)

# Bind parameter names must not collide with column names in UPDATE ... SET
_PK_PARAM = "_pk"


def table_clause(config: TableEncryptionConfig) -> TableClause:
    """Minimal table construct covering the primary key and target columns."""
    return table(config.table_name, column(config.primary_key), *(column(c) for c in config.columns_to_encrypt))


def primary_key_column(config: TableEncryptionConfig) -> ColumnClause[Any]:
    return table_clause(config).c[config.primary_key]


class RowStore:
    """Reads row ranges from and writes encrypted values back to the database."""

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, url: str, *, echo: bool = False) -> RowStore:
        """Create a store with its own engine.

        Raises:
            StoreError: If the URL is invalid or the driver is unavailable
        """
        try:
            engine = create_engine(url, echo=echo)
        except (SQLAlchemyError, ImportError, ValueError) as e:
            raise StoreError(f"Cannot create database engine: {e}") from e
        return cls(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def fetch_rows(self, statement: Select[Any], *, table_name: str | None = None) -> list[dict[str, Any]]:
        """Execute a range read and return rows as plain dicts.

        Raises:
            StoreError: On any database error
        """
        try:
            with self._engine.connect() as conn:
                return [dict(row) for row in conn.execute(statement).mappings()]
        except SQLAlchemyError as e:
            raise StoreError(f"Fetch failed: {e}", table_name=table_name) from e

    def apply_changes(self, config: TableEncryptionConfig, changes: ChangeSet) -> int:
        """Write staged values back by primary key in one transaction.

        Rows are grouped by which columns changed so every row only assigns
        its own changed columns; each group is one executemany UPDATE.

        Returns:
            Number of rows the database reported as updated

        Raises:
            StoreError: On any database error (the transaction is rolled back)
        """
        if changes.is_empty:
            return 0

        groups: dict[tuple[str, ...], list[RowChange]] = defaultdict(list)
        for change in changes:
            groups[change.columns].append(change)

        target = table_clause(config)
        pk = target.c[config.primary_key]
        updated = 0
        try:
            # begin() commits on clean exit, rolls back on exception
            with self._engine.begin() as conn:
                for columns, group in groups.items():
                    params = {f"_v{i}": col for i, col in enumerate(columns)}
                    statement = (
                        update(target)
                        .where(pk == bindparam(_PK_PARAM))
                        .values({target.c[col]: bindparam(name) for name, col in params.items()})
                    )
                    rows = [
                        {_PK_PARAM: change.primary_key_value, **{name: change.values[col] for name, col in params.items()}}
                        for change in group
                    ]
                    result = conn.execute(statement, rows)
                    updated += max(result.rowcount, 0)
        except SQLAlchemyError as e:
            raise StoreError(f"Batch update failed: {e}", table_name=config.table_name) from e

        if updated != len(changes):
            logger.warning(
                "Update row count mismatch",
                table=config.table_name,
                expected=len(changes),
                updated=updated,
            )
        return updated

    def dispose(self) -> None:
        self._engine.dispose()
