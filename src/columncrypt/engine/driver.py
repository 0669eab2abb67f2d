# src/columncrypt/engine/driver.py
"""PipelineDriver: runs the encryption pass over every configured table.

Per table the driver loops fetch -> encrypt -> update -> checkpoint until
the table is exhausted:

    SCANNING ---(empty batch / nothing eligible)---> DONE (checkpoint cleared)
       |  ^
       v  |
    PERSISTING (update rows, then durably advance the checkpoint)

    any error -> FAILED (table aborted, last durable checkpoint kept)

The checkpoint is only advanced after the row update committed, so a crash
at any point either repeats a batch (its values are then recognised as
ciphertext, skipped, and the cursor moves past them) or resumes right after
it. One table failing never stops the others.
"""

from __future__ import annotations

import threading
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from columncrypt.contracts import (
    Checkpoint,
    CheckpointCorruptionError,
    CheckpointPersistError,
    CheckpointSerializationError,
    ConfigError,
    RunResult,
    ScanState,
    StoreError,
    TableResult,
    TableStatus,
)
from columncrypt.core.checkpoint import CheckpointStore
from columncrypt.core.cipher import Cipher
from columncrypt.core.database import RowStore
from columncrypt.core.logging import get_logger, run_context, table_context
from columncrypt.core.tables import TableConfigStore, TableEncryptionConfig
from columncrypt.engine.encryptor import BatchEncryptor
from columncrypt.engine.fetcher import BatchFetcher
from columncrypt.engine.retry import MaxRetriesExceeded, RetryConfig, RetryManager

if TYPE_CHECKING:
    from columncrypt.core.config import ColumnCryptSettings

logger = get_logger(__name__)


def _is_retryable_persist_error(error: BaseException) -> bool:
    # Decode and encode failures are deterministic, retrying the write cannot fix them
    return isinstance(error, CheckpointPersistError) and not isinstance(
        error, CheckpointCorruptionError | CheckpointSerializationError
    )


def _ensure_advanced(table_name: str, previous: Checkpoint, following: Checkpoint) -> None:
    """Reject a cursor that did not move strictly forward.

    Raises:
        StoreError: If following is not strictly after previous
    """
    if previous.is_absent:
        return
    if previous.is_null_marker:
        if following.is_key:
            return
    elif following.is_key:
        try:
            if following.value > previous.value:
                return
        except TypeError as e:
            raise StoreError(
                f"Primary key {following.describe()} is not comparable with checkpoint {previous.describe()}",
                table_name=table_name,
            ) from e
    raise StoreError(
        f"Cursor did not advance: {previous.describe()} -> {following.describe()}"
        " (primary key order in the database disagrees with the checkpoint)",
        table_name=table_name,
    )


class PipelineDriver:
    """Runs scheduled encryption passes over the configured tables.

    Example:
        driver = build_pipeline(load_settings(Path("settings.yaml")))
        result = driver.run_once()
        driver.close()
    """

    def __init__(
        self,
        *,
        table_configs: dict[str, TableEncryptionConfig],
        fetcher: BatchFetcher,
        encryptor: BatchEncryptor,
        row_store: RowStore,
        checkpoint_store: CheckpointStore,
        retry_manager: RetryManager | None = None,
        table_store: TableConfigStore | None = None,
        cipher: Cipher | None = None,
    ) -> None:
        """Initialize the driver.

        Args:
            table_configs: Tables to process, in processing order
            fetcher: Batch fetcher bound to the row store
            encryptor: Batch encryptor
            row_store: Database the updates are written to
            checkpoint_store: Loaded checkpoint store
            retry_manager: Retry policy for checkpoint writes (default: no retry)
            table_store: If given, table configs are reloaded from it before each run
            cipher: Cipher backing the encrypt()/decrypt() helpers
        """
        self._table_configs = dict(table_configs)
        self._fetcher = fetcher
        self._encryptor = encryptor
        self._row_store = row_store
        self._checkpoint_store = checkpoint_store
        self._retry_manager = retry_manager or RetryManager(RetryConfig.no_retry())
        self._table_store = table_store
        self._cipher = cipher
        self._run_lock = threading.Lock()

    @property
    def table_configs(self) -> dict[str, TableEncryptionConfig]:
        return dict(self._table_configs)

    @property
    def checkpoint_store(self) -> CheckpointStore:
        return self._checkpoint_store

    def encrypt(self, value: str) -> str:
        """Encrypt one value with the pipeline's key."""
        return self._require_cipher().encrypt(value)

    def decrypt(self, value: str) -> str:
        """Decrypt one value with the pipeline's key.

        Raises:
            CryptoError: If value is not ciphertext under this key
        """
        return self._require_cipher().decrypt(value)

    def _require_cipher(self) -> Cipher:
        if self._cipher is None:
            raise RuntimeError("PipelineDriver was created without a cipher")
        return self._cipher

    def run_once(self) -> RunResult:
        """Run one full pass over all configured tables.

        Never raises: table failures are recorded in the returned result.
        If another run is still in progress on this driver the call returns
        immediately with skipped=True.
        """
        run = RunResult(run_id=uuid.uuid4().hex, started_at=datetime.now(UTC))

        if not self._run_lock.acquire(blocking=False):
            logger.warning("Encryption run already in progress, skipping", run_id=run.run_id)
            run.skipped = True
            run.finished_at = datetime.now(UTC)
            return run

        try:
            with run_context(run.run_id):
                self._reload_table_configs()
                logger.info("Encryption run started", tables=len(self._table_configs))
                for config in list(self._table_configs.values()):
                    run.tables.append(self.process_table(config))
                logger.info(
                    "Encryption run finished",
                    tables_completed=run.tables_completed,
                    tables_aborted=run.tables_aborted,
                    rows_updated=sum(t.rows_updated for t in run.tables),
                )
        except Exception as e:
            # process_table isolates table errors; this is a last-resort guard
            logger.error("Encryption run failed", run_id=run.run_id, error=str(e), exc_info=True)
            run.error = str(e)
        finally:
            run.finished_at = datetime.now(UTC)
            self._run_lock.release()

        return run

    def _reload_table_configs(self) -> None:
        """Pick up table config edits; keep the previous configs if the file is broken."""
        if self._table_store is None:
            return
        try:
            self._table_configs = self._table_store.load()
        except ConfigError as e:
            logger.error(
                "Table config reload failed, keeping previous configuration",
                path=str(self._table_store.path),
                error=str(e),
            )

    def process_table(self, config: TableEncryptionConfig) -> TableResult:
        """Encrypt one table from its checkpoint to the end.

        Never raises: any failure aborts this table only and is reported in
        the result. The durable checkpoint is left at the last batch whose
        update committed.
        """
        with table_context(config.table_name):
            return self._scan_table(config)

    def _scan_table(self, config: TableEncryptionConfig) -> TableResult:
        table = config.table_name
        result = TableResult(table_name=table, status=TableStatus.ABORTED)
        state = ScanState.SCANNING

        try:
            checkpoint = self._checkpoint_store.get(table)
            result.checkpoint = checkpoint
            logger.info("Table scan started", checkpoint=checkpoint.describe())

            while state == ScanState.SCANNING:
                batch = self._fetcher.fetch(config, checkpoint)
                if batch.is_empty:
                    state = ScanState.DONE
                    break

                result.rows_scanned += len(batch)
                changes = self._encryptor.apply(config, batch)
                if changes.ends_scan:
                    logger.info("Batch produced no changes, ending scan", batch_rows=len(batch))
                    state = ScanState.DONE
                    break

                # Checked before the update so a stuck cursor never rewrites rows
                following = Checkpoint.after_row_key(batch.last_key)
                _ensure_advanced(table, checkpoint, following)

                state = ScanState.PERSISTING
                if changes.is_empty:
                    logger.debug(
                        "Batch already encrypted, advancing",
                        batch_rows=len(batch),
                        already_encrypted=changes.already_encrypted,
                    )
                else:
                    result.rows_updated += self._row_store.apply_changes(config, changes)
                    result.values_encrypted += changes.values_changed

                self._persist_checkpoint(table, following)
                checkpoint = following
                result.checkpoint = checkpoint
                result.batches += 1
                logger.debug(
                    "Batch committed",
                    batch_rows=len(batch),
                    rows_changed=len(changes),
                    checkpoint=checkpoint.describe(),
                )
                state = ScanState.SCANNING

            self._persist_checkpoint(table, Checkpoint.absent())
            result.checkpoint = Checkpoint.absent()
            result.status = TableStatus.COMPLETED

        except Exception as e:
            failed_in = state
            state = ScanState.FAILED
            result.status = TableStatus.ABORTED
            result.error = str(e)
            logger.error(
                "Table encryption aborted",
                state=failed_in.value,
                checkpoint=result.checkpoint.describe(),
                error=str(e),
                exc_info=True,
            )
            return result

        logger.info(
            "Table scan completed",
            status=result.status.value,
            rows_scanned=result.rows_scanned,
            rows_updated=result.rows_updated,
            batches=result.batches,
        )
        return result

    def _persist_checkpoint(self, table_name: str, checkpoint: Checkpoint) -> None:
        """Durably set (or clear, for absent) a checkpoint under the retry policy.

        Raises:
            CheckpointPersistError: If every attempt failed
        """

        def _on_retry(attempt: int, error: BaseException) -> None:
            logger.warning(
                "Checkpoint write failed, retrying",
                attempt=attempt,
                error=str(error),
            )

        try:
            self._retry_manager.execute_with_retry(
                operation=lambda: self._checkpoint_store.set(table_name, checkpoint),
                is_retryable=_is_retryable_persist_error,
                on_retry=_on_retry,
            )
        except MaxRetriesExceeded as e:
            raise CheckpointPersistError(
                f"Checkpoint write failed after {e.attempts} attempts: {e.last_error}",
                table_name=table_name,
            ) from e

    def close(self) -> None:
        """Release database connections."""
        self._row_store.dispose()


def build_pipeline(settings: ColumnCryptSettings) -> PipelineDriver:
    """Wire a PipelineDriver from settings.

    Loads (or synthesizes) the table configs and loads (or bootstraps) the
    checkpoint file.

    Raises:
        ConfigError: If the table config is invalid
        CheckpointPersistError: If the checkpoint file cannot be read or created
        StoreError: If the database engine cannot be created
    """
    table_store = TableConfigStore(settings.tables.path)
    table_configs = table_store.load()

    cipher = Cipher.from_settings(settings.encryption)

    checkpoint_store = CheckpointStore(settings.checkpoint.path)
    checkpoint_store.load_all()

    row_store = RowStore.from_url(settings.database.url, echo=settings.database.echo)

    pending = checkpoint_store.snapshot()
    if pending:
        logger.info(
            "Resuming unfinished tables",
            tables={name: cp.describe() for name, cp in pending.items()},
        )
    orphaned = sorted(set(pending) - set(table_configs))
    if orphaned:
        logger.warning("Checkpoints exist for tables no longer configured", tables=orphaned)

    return PipelineDriver(
        table_configs=table_configs,
        fetcher=BatchFetcher(row_store, settings.batch_size),
        encryptor=BatchEncryptor(cipher),
        row_store=row_store,
        checkpoint_store=checkpoint_store,
        retry_manager=RetryManager(RetryConfig.from_settings(settings.checkpoint.persist_retry)),
        table_store=table_store,
        cipher=cipher,
    )
