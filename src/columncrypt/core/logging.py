# src/columncrypt/core/logging.py
"""Structured logging for columncrypt.

Every event carries the run and table it belongs to: the driver opens
``run_context`` around a pass and ``table_context`` around each table, and
the fields are merged from contextvars so the checkpoint store and row
store do not have to thread them through. stdlib records (SQLAlchemy,
Dynaconf) go through the same processor chain via ProcessorFormatter.

Key material never reaches the output: fields named after the cipher's
secrets are masked before rendering.
"""

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

# SQLAlchemy logs every statement and pool checkout at DEBUG; use
# database.echo for SQL tracing instead.
_NOISY_LOGGERS: tuple[str, ...] = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.pool",
    "dynaconf",
)

_SECRET_FIELDS = frozenset({"key", "iv", "encryption_key", "plaintext"})
_REDACTED = "***"


def _redact_key_material(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Mask cipher secrets and plaintext values passed as event fields."""
    for name in _SECRET_FIELDS.intersection(event_dict):
        event_dict[name] = _REDACTED
    return event_dict


def _remove_internal_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Drop the _record/_from_structlog bookkeeping ProcessorFormatter adds."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
) -> None:
    """Configure structlog and stdlib logging for columncrypt.

    Args:
        json_output: If True, output JSON. If False, human-readable.
        level: Log level (DEBUG, INFO, WARNING, ERROR).
    """
    log_level = getattr(logging, level.upper())

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _redact_key_material,
    ]

    if json_output:
        final_processors: list[Any] = [
            _remove_internal_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        final_processors = [
            _remove_internal_fields,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=[*shared_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Caching off so tests can reconfigure logging
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        ProcessorFormatter(
            processors=final_processors,
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers = []
    root.addHandler(handler)
    root.setLevel(log_level)

    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


@contextmanager
def run_context(run_id: str) -> Iterator[None]:
    """Tag every event logged inside the block with run_id."""
    with structlog.contextvars.bound_contextvars(run_id=run_id):
        yield


@contextmanager
def table_context(table_name: str) -> Iterator[None]:
    """Tag every event logged inside the block with the table being encrypted."""
    with structlog.contextvars.bound_contextvars(table=table_name):
        yield


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a bound logger for a module.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound structlog logger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
