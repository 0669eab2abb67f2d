"""Result types reported by the pipeline driver."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from columncrypt.contracts.checkpoint import Checkpoint
from columncrypt.contracts.enums import TableStatus


@dataclass
class TableResult:
    """Outcome of one table's encryption pass within a run."""

    table_name: str
    status: TableStatus
    rows_scanned: int = 0
    rows_updated: int = 0
    values_encrypted: int = 0
    batches: int = 0
    checkpoint: Checkpoint = field(default_factory=Checkpoint.absent)
    error: str | None = None

    @property
    def completed(self) -> bool:
        return self.status == TableStatus.COMPLETED


@dataclass
class RunResult:
    """Outcome of one full pass over all configured tables.

    skipped is True when the run was refused because another run was
    already in progress; tables is empty in that case.
    """

    run_id: str
    started_at: datetime
    finished_at: datetime | None = None
    tables: list[TableResult] = field(default_factory=list)
    skipped: bool = False
    error: str | None = None

    @property
    def tables_completed(self) -> int:
        return sum(1 for t in self.tables if t.status == TableStatus.COMPLETED)

    @property
    def tables_aborted(self) -> int:
        return sum(1 for t in self.tables if t.status == TableStatus.ABORTED)

    @property
    def succeeded(self) -> bool:
        return not self.skipped and self.error is None and self.tables_aborted == 0
