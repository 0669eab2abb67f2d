"""Type-preserving JSON serialization for the checkpoint file.

The checkpoint file maps table name to the primary key value the next
fetch must start after. Primary keys are compared against the database on
resume, so the value must come back with its original Python type:
a datetime key that round-trips as a string would compare wrongly.

Plain JSON scalars (int, str, float, bool) are stored as-is. Other key
types are wrapped in collision-safe envelopes::

    {"__columncrypt_type__": "datetime", "__columncrypt_value__": "2024-01-01T00:00:00"}

The null-marker is the reserved envelope tag ``null_marker`` with a null
payload. Absent checkpoints are never written; a missing entry IS absent.

NaN/Infinity are rejected: they have no total order and cannot be a cursor.
"""

from __future__ import annotations

import json
import math
import uuid
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from columncrypt.contracts import Checkpoint, CheckpointCorruptionError, CheckpointKind

_ENVELOPE_TYPE_KEY = "__columncrypt_type__"
_ENVELOPE_VALUE_KEY = "__columncrypt_value__"

NULL_MARKER_TAG = "null_marker"


def encode_key(value: Any) -> Any:
    """Encode one primary key value as a JSON-compatible object.

    Raises:
        ValueError: If value is a non-finite float
        TypeError: If value has no checkpoint encoding
    """
    # bool before int: bool is an int subclass but must stay a bool
    if isinstance(value, bool | int | str):
        return value
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"Cannot checkpoint non-finite float key: {value}")
        return value
    # datetime before date: datetime is a date subclass
    if isinstance(value, datetime):
        return {_ENVELOPE_TYPE_KEY: "datetime", _ENVELOPE_VALUE_KEY: value.isoformat()}
    if isinstance(value, date):
        return {_ENVELOPE_TYPE_KEY: "date", _ENVELOPE_VALUE_KEY: value.isoformat()}
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Cannot checkpoint non-finite decimal key: {value}")
        return {_ENVELOPE_TYPE_KEY: "decimal", _ENVELOPE_VALUE_KEY: str(value)}
    if isinstance(value, uuid.UUID):
        return {_ENVELOPE_TYPE_KEY: "uuid", _ENVELOPE_VALUE_KEY: str(value)}
    raise TypeError(f"Primary key of type {type(value).__name__} cannot be checkpointed")


def encode_checkpoint(checkpoint: Checkpoint) -> Any:
    """Encode a non-absent checkpoint.

    Raises:
        ValueError: If checkpoint is absent (absent entries are not stored)
    """
    if checkpoint.kind == CheckpointKind.NULL_MARKER:
        return {_ENVELOPE_TYPE_KEY: NULL_MARKER_TAG, _ENVELOPE_VALUE_KEY: None}
    if checkpoint.kind == CheckpointKind.KEY:
        return encode_key(checkpoint.value)
    raise ValueError("Absent checkpoints are not persisted")


def decode_checkpoint(obj: Any) -> Checkpoint:
    """Decode one stored entry back into a Checkpoint.

    Raises:
        ValueError: If the entry is not a recognised scalar or envelope
    """
    if obj is None:
        raise ValueError("null is not a valid checkpoint entry")
    if isinstance(obj, bool | int | float | str):
        return Checkpoint.at(obj)
    if not isinstance(obj, dict):
        raise ValueError(f"Unexpected checkpoint entry of type {type(obj).__name__}")
    if set(obj) != {_ENVELOPE_TYPE_KEY, _ENVELOPE_VALUE_KEY}:
        raise ValueError(f"Unrecognised checkpoint envelope keys: {sorted(obj)}")

    tag = obj[_ENVELOPE_TYPE_KEY]
    payload = obj[_ENVELOPE_VALUE_KEY]

    if tag == NULL_MARKER_TAG:
        return Checkpoint.null_marker()
    if not isinstance(payload, str):
        raise ValueError(f"Envelope '{tag}' payload must be a string, got {type(payload).__name__}")
    if tag == "datetime":
        return Checkpoint.at(datetime.fromisoformat(payload))
    if tag == "date":
        return Checkpoint.at(date.fromisoformat(payload))
    if tag == "decimal":
        try:
            return Checkpoint.at(Decimal(payload))
        except InvalidOperation as e:
            raise ValueError(f"Invalid decimal payload: {payload!r}") from e
    if tag == "uuid":
        return Checkpoint.at(uuid.UUID(payload))
    raise ValueError(f"Unknown checkpoint envelope type: {tag!r}")


def checkpoints_dumps(checkpoints: Mapping[str, Checkpoint]) -> str:
    """Serialize the table -> checkpoint map, skipping absent entries.

    Output is sorted by table name so the file diffs cleanly.
    """
    encoded = {name: encode_checkpoint(cp) for name, cp in checkpoints.items() if not cp.is_absent}
    return json.dumps(encoded, allow_nan=False, indent=2, sort_keys=True)


def checkpoints_loads(text: str) -> dict[str, Checkpoint]:
    """Deserialize the checkpoint file contents.

    Empty or whitespace-only text decodes to an empty map; this is the
    state a crashed bootstrap can leave behind.

    Raises:
        CheckpointCorruptionError: If the text is not a JSON object of valid entries
    """
    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise CheckpointCorruptionError(f"Checkpoint file is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise CheckpointCorruptionError(f"Checkpoint file must hold a JSON object, got {type(data).__name__}")

    result: dict[str, Checkpoint] = {}
    for table_name, entry in data.items():
        try:
            result[table_name] = decode_checkpoint(entry)
        except ValueError as e:
            raise CheckpointCorruptionError(f"Invalid checkpoint for table '{table_name}': {e}", table_name=table_name) from e
    return result
