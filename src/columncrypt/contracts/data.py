"""Row, batch and change-set contracts passed between pipeline stages."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

Row = Mapping[str, Any]
"""One record: column name -> value. Always includes the primary key column."""


@dataclass(frozen=True, slots=True)
class Batch:
    """Ordered slice of a table's rows, ascending by primary key.

    An empty batch signals that the table is exhausted.
    """

    primary_key: str
    rows: tuple[Row, ...] = ()

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self) -> Iterator[Row]:
        return iter(self.rows)

    @property
    def is_empty(self) -> bool:
        return not self.rows

    @property
    def last_key(self) -> Any:
        """Primary key of the last row (may be None for NULL keys).

        Raises:
            ValueError: If the batch is empty
        """
        if not self.rows:
            raise ValueError("Empty batch has no last key")
        return self.rows[-1][self.primary_key]


@dataclass(frozen=True, slots=True)
class RowChange:
    """New column values staged for one row, addressed by primary key."""

    primary_key_value: Any
    values: Mapping[str, str]

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self.values)


@dataclass(frozen=True, slots=True)
class ChangeSet:
    """Rows of a batch that need a persisted update after encryption.

    already_encrypted counts values skipped because they were ciphertext
    already. A batch of nothing but ciphertext was written by an earlier pass
    whose checkpoint never became durable; rows after it may still be
    plaintext, so it does not end the scan.
    """

    changes: tuple[RowChange, ...] = field(default_factory=tuple)
    already_encrypted: int = 0

    def __len__(self) -> int:
        return len(self.changes)

    def __iter__(self) -> Iterator[RowChange]:
        return iter(self.changes)

    @property
    def is_empty(self) -> bool:
        return not self.changes

    @property
    def values_changed(self) -> int:
        """Total number of column values staged across all rows."""
        return sum(len(change.values) for change in self.changes)

    @property
    def ends_scan(self) -> bool:
        """True when nothing in the batch was eligible for encryption at all."""
        return not self.changes and not self.already_encrypted
