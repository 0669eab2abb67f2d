"""Status codes and state names used across subsystem boundaries."""

from enum import StrEnum


class CheckpointKind(StrEnum):
    """Which variant a Checkpoint holds.

    Values:
        ABSENT: No pending pass for the table (never started or completed)
        NULL_MARKER: Last processed row had a NULL primary key
        KEY: Concrete primary key value, exclusive lower bound for the next fetch
    """

    ABSENT = "absent"
    NULL_MARKER = "null_marker"
    KEY = "key"


class ScanState(StrEnum):
    """Per-table state of the pipeline driver.

    SCANNING is the initial state. DONE and FAILED are terminal.
    """

    SCANNING = "scanning"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


class TableStatus(StrEnum):
    """Final outcome of one table within a run.

    Reported in TableResult.status and in the run summary log.
    """

    COMPLETED = "completed"
    ABORTED = "aborted"
