"""Checkpoint subsystem for crash recovery.

Provides:
- CheckpointStore: durable table -> resume-position map with atomic writes
- checkpoints_dumps/checkpoints_loads: type-preserving JSON for primary key values
"""

from columncrypt.core.checkpoint.serialization import checkpoints_dumps, checkpoints_loads
from columncrypt.core.checkpoint.store import CheckpointStore

__all__ = [
    "CheckpointStore",
    "checkpoints_dumps",
    "checkpoints_loads",
]
