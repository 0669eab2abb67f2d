# src/columncrypt/engine/fetcher.py
"""Batch cursor fetcher: keyset pagination over a table's primary key.

Each fetch is an independent range query starting strictly after the
checkpoint, so no server-side cursor is held between batches and a crash
between two fetches loses nothing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from columncrypt.contracts import Batch, Checkpoint, CheckpointKind
from columncrypt.core.database import RowStore, table_clause

if TYPE_CHECKING:
    from sqlalchemy import Select

    from columncrypt.core.tables import TableEncryptionConfig


def build_batch_query(config: TableEncryptionConfig, checkpoint: Checkpoint, limit: int) -> Select[Any]:
    """Range query for the next batch after checkpoint.

    Selects the primary key and every target column:
        ABSENT       -> no filter (start of table)
        NULL_MARKER  -> pk IS NOT NULL
        KEY(v)       -> pk > v
    always ordered by pk ascending and limited to ``limit`` rows.
    """
    target = table_clause(config)
    pk = target.c[config.primary_key]
    statement = select(pk, *(target.c[c] for c in config.columns_to_encrypt)).select_from(target)

    if checkpoint.kind == CheckpointKind.KEY:
        statement = statement.where(pk > checkpoint.value)
    elif checkpoint.kind == CheckpointKind.NULL_MARKER:
        statement = statement.where(pk.is_not(None))

    return statement.order_by(pk.asc()).limit(limit)


class BatchFetcher:
    """Reads the next bounded batch of rows for a table. Holds no cursor state."""

    def __init__(self, row_store: RowStore, batch_size: int) -> None:
        if batch_size <= 0:
            raise ValueError(f"batch_size must be > 0, got {batch_size}")
        self._row_store = row_store
        self._batch_size = batch_size

    @property
    def batch_size(self) -> int:
        return self._batch_size

    def fetch(self, config: TableEncryptionConfig, checkpoint: Checkpoint) -> Batch:
        """Fetch up to batch_size rows strictly after checkpoint.

        Returns:
            Batch in ascending key order; empty when the table is exhausted

        Raises:
            StoreError: On database error
        """
        statement = build_batch_query(config, checkpoint, self._batch_size)
        rows = self._row_store.fetch_rows(statement, table_name=config.table_name)
        return Batch(primary_key=config.primary_key, rows=tuple(rows))
