"""Checkpoint contract: where a table's encryption pass resumes.

A checkpoint is a tagged variant rather than a bare value so that the
"resume among non-NULL keys" state can never be confused with a real
primary key that happens to look like a sentinel.
"""

from dataclasses import dataclass
from typing import Any

from columncrypt.contracts.enums import CheckpointKind


@dataclass(frozen=True, slots=True)
class Checkpoint:
    """Resume position for one table.

    Use the factory classmethods instead of the constructor:
        Checkpoint.absent()       - start of table / nothing pending
        Checkpoint.null_marker()  - resume among rows with non-NULL keys
        Checkpoint.at(42)         - resume strictly after key 42
    """

    kind: CheckpointKind
    value: Any = None

    def __post_init__(self) -> None:
        if self.kind == CheckpointKind.KEY and self.value is None:
            raise ValueError("KEY checkpoint requires a non-None value; use Checkpoint.null_marker()")
        if self.kind != CheckpointKind.KEY and self.value is not None:
            raise ValueError(f"{self.kind.value} checkpoint must not carry a value, got {self.value!r}")

    @classmethod
    def absent(cls) -> "Checkpoint":
        return cls(CheckpointKind.ABSENT)

    @classmethod
    def null_marker(cls) -> "Checkpoint":
        return cls(CheckpointKind.NULL_MARKER)

    @classmethod
    def at(cls, value: Any) -> "Checkpoint":
        return cls(CheckpointKind.KEY, value)

    @classmethod
    def after_row_key(cls, value: Any) -> "Checkpoint":
        """Checkpoint following a row whose primary key is ``value``.

        A NULL key maps to the null-marker.
        """
        if value is None:
            return cls.null_marker()
        return cls.at(value)

    @property
    def is_absent(self) -> bool:
        return self.kind == CheckpointKind.ABSENT

    @property
    def is_null_marker(self) -> bool:
        return self.kind == CheckpointKind.NULL_MARKER

    @property
    def is_key(self) -> bool:
        return self.kind == CheckpointKind.KEY

    def describe(self) -> str:
        """Short human-readable form for logs and CLI output."""
        if self.kind == CheckpointKind.KEY:
            return repr(self.value)
        return f"<{self.kind.value}>"
