"""CheckpointStore: durable table -> resume-position map."""

from __future__ import annotations

import threading
from collections.abc import Callable
from pathlib import Path

from columncrypt.contracts import Checkpoint, CheckpointPersistError, CheckpointSerializationError
from columncrypt.core.checkpoint.serialization import checkpoints_dumps, checkpoints_loads
from columncrypt.core.fileio import atomic_write_text
from columncrypt.core.logging import get_logger

logger = get_logger(__name__)


class CheckpointStore:
    """Durable mapping from table name to the last processed primary key.

    An entry exists for a table iff that table has a partially completed
    pass pending. Every mutation:
    1. takes the store-wide lock
    2. applies the change to a COPY of the map
    3. writes the full copy to a temp file and renames it over the durable file
    4. swaps the copy in only after the write succeeded

    So a failed write leaves both the file and the in-memory map at the
    last durable state, and a crash mid-write never corrupts the file.

    One lock covers the whole map rather than one per table: writes happen
    once per batch, and a single lock keeps two writers from persisting
    interleaved snapshots.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the store. Call load_all() before use.

        Args:
            path: Location of the JSON checkpoint file
        """
        self._path = path
        self._lock = threading.Lock()
        self._checkpoints: dict[str, Checkpoint] = {}

    @property
    def path(self) -> Path:
        return self._path

    def load_all(self) -> None:
        """Load persisted checkpoints, bootstrapping an empty file on first run.

        Raises:
            CheckpointCorruptionError: If the file exists but cannot be decoded
            CheckpointPersistError: If the file cannot be read or bootstrapped
        """
        with self._lock:
            if not self._path.exists():
                logger.warning("Checkpoint file not found, creating empty store", path=str(self._path))
                self._write({})
                self._checkpoints = {}
                return

            try:
                text = self._path.read_text(encoding="utf-8")
            except OSError as e:
                raise CheckpointPersistError(f"Cannot read checkpoint file {self._path}: {e}") from e

            loaded = checkpoints_loads(text)
            if not text.strip():
                # Bootstrap interrupted before the first write completed
                self._write(loaded)
            self._checkpoints = loaded
            logger.info("Checkpoints loaded", path=str(self._path), pending=len(loaded))

    def persist_all(self) -> None:
        """Write the full current map to disk.

        Raises:
            CheckpointPersistError: If the write fails
        """
        with self._lock:
            self._write(self._checkpoints)

    def get(self, table_name: str) -> Checkpoint:
        """Current resume position for a table; absent if none is pending."""
        with self._lock:
            return self._checkpoints.get(table_name, Checkpoint.absent())

    def set(self, table_name: str, checkpoint: Checkpoint) -> None:
        """Durably record a table's resume position before returning.

        Setting an absent checkpoint removes the entry.

        Raises:
            CheckpointPersistError: If the write fails (the map is unchanged)
        """

        def mutate(checkpoints: dict[str, Checkpoint]) -> None:
            if checkpoint.is_absent:
                checkpoints.pop(table_name, None)
            else:
                checkpoints[table_name] = checkpoint

        self._mutate(table_name, mutate)
        logger.debug("Checkpoint saved", table=table_name, checkpoint=checkpoint.describe())

    def clear(self, table_name: str) -> None:
        """Durably remove a table's entry (the table's pass is complete).

        Raises:
            CheckpointPersistError: If the write fails (the entry is kept)
        """
        self._mutate(table_name, lambda checkpoints: checkpoints.pop(table_name, None))
        logger.debug("Checkpoint cleared", table=table_name)

    def snapshot(self) -> dict[str, Checkpoint]:
        """Copy of all pending checkpoints."""
        with self._lock:
            return dict(self._checkpoints)

    def _mutate(self, table_name: str, mutate: Callable[[dict[str, Checkpoint]], object]) -> None:
        with self._lock:
            updated = dict(self._checkpoints)
            mutate(updated)
            try:
                self._write(updated)
            except CheckpointPersistError as e:
                e.table_name = table_name
                raise
            self._checkpoints = updated

    def _write(self, checkpoints: dict[str, Checkpoint]) -> None:
        """Serialize and atomically replace the checkpoint file. Caller holds the lock."""
        try:
            text = checkpoints_dumps(checkpoints)
        except (TypeError, ValueError) as e:
            raise CheckpointSerializationError(f"Cannot serialize checkpoints: {e}") from e
        try:
            atomic_write_text(self._path, text)
        except OSError as e:
            raise CheckpointPersistError(f"Cannot write checkpoint file {self._path}: {e}") from e
