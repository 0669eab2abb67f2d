"""Shared contracts for columncrypt.

Leaf module: nothing here imports from core/ or engine/.
"""

from columncrypt.contracts.checkpoint import Checkpoint
from columncrypt.contracts.data import Batch, ChangeSet, Row, RowChange
from columncrypt.contracts.enums import CheckpointKind, ScanState, TableStatus
from columncrypt.contracts.errors import (
    CheckpointCorruptionError,
    CheckpointPersistError,
    CheckpointSerializationError,
    ColumnCryptError,
    ConfigError,
    CryptoError,
    StoreError,
    TableScopedError,
)
from columncrypt.contracts.results import RunResult, TableResult

__all__ = [
    "Batch",
    "ChangeSet",
    "Checkpoint",
    "CheckpointCorruptionError",
    "CheckpointKind",
    "CheckpointPersistError",
    "CheckpointSerializationError",
    "ColumnCryptError",
    "ConfigError",
    "CryptoError",
    "Row",
    "RowChange",
    "RunResult",
    "ScanState",
    "StoreError",
    "TableResult",
    "TableScopedError",
    "TableStatus",
]
