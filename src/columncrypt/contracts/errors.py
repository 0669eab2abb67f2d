"""Error taxonomy for column encryption runs.

Every error raised on purpose by columncrypt derives from ColumnCryptError.
Table-scoped errors carry the table name so the driver can report them
without string parsing.

Propagation policy:
- ConfigError: fatal to startup, never retried
- CryptoError: fatal for the single operation; inside a run it aborts the table
- StoreError: aborts the current table, last checkpoint stays intact
- CheckpointPersistError: retried per policy, then aborts the table
- CheckpointSerializationError, CheckpointCorruptionError: abort the table without retry
"""


class ColumnCryptError(Exception):
    """Base class for all columncrypt errors."""


class ConfigError(ColumnCryptError):
    """Raised when settings or table configuration are missing or malformed."""


class CryptoError(ColumnCryptError):
    """Raised on cipher initialization failure or malformed ciphertext."""


class TableScopedError(ColumnCryptError):
    """Error that belongs to a single table's encryption pass.

    Attributes:
        table_name: Table being processed when the error occurred (None if unknown)
    """

    def __init__(self, message: str, *, table_name: str | None = None) -> None:
        self.table_name = table_name
        super().__init__(message)


class StoreError(TableScopedError):
    """Raised when reading from or writing to the row store fails."""


class CheckpointPersistError(TableScopedError):
    """Raised when checkpoint state cannot be durably written.

    The in-memory checkpoint map is never ahead of the durable file when
    this is raised: the mutation that failed to persist is discarded.
    """


class CheckpointCorruptionError(CheckpointPersistError):
    """Raised when the persisted checkpoint file cannot be decoded."""


class CheckpointSerializationError(CheckpointPersistError):
    """Raised when a checkpoint value has no on-disk encoding.

    Deterministic: the same key fails the same way on every attempt, so it
    is never retried.
    """
