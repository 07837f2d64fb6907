"""
Structured JSON logging for the loader kernel.

Each record is written as one JSON object per line. Fields bound through
LogContext (correlation_id, batch_id and so on) are attached to every record
emitted while they are set, so a whole batch can be traced by its batch_id.
"""

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any, TextIO

__all__ = [
    "CONTEXT_FIELDS",
    "LOGGER_NAMESPACE",
    "LogContext",
    "StructuredFormatter",
    "configure_logging",
    "get_logger",
    "reset_logging",
]

LOGGER_NAMESPACE = "loader_kernel"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "entity_type",
    "operation",
    "batch_id",
    "trace_id",
)

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"loader_log_{name}", default=None) for name in CONTEXT_FIELDS
}


class LogContext:
    """Batch-scoped log fields, isolated per thread and per async task."""

    @staticmethod
    def set(**fields: str | None) -> None:
        """Set the given fields. A None value leaves that field as it is.

        Raises:
            TypeError: If a field is not one of CONTEXT_FIELDS.
        """
        for name, value in _checked(fields).items():
            if value is not None:
                _context_vars[name].set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        values = {name: var.get() for name, var in _context_vars.items()}
        return {name: value for name, value in values.items() if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[None]:
        """Set fields inside a with-block and put the previous values back on exit."""
        tokens = [
            (_context_vars[name], _context_vars[name].set(value))
            for name, value in _checked(fields).items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


def _checked(fields: dict[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(fields) - set(CONTEXT_FIELDS))
    if unknown:
        raise TypeError(f"Unknown log context field(s): {', '.join(unknown)}")
    return fields


# Attributes every LogRecord carries; anything else came in through extra=.
_RECORD_ATTRS: frozenset[str] = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}


def _to_json(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    # UUID, Decimal and anything else without a JSON form
    return str(value)


# Bound statement values (SQLAlchemy StatementError.params) can hold personal data.
_UNLOGGED_EXC_ATTRS = frozenset({"args", "code", "params", "orig"})


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    """
    Flatten an exception into exc_* keys, including its public attributes.

    For exceptions wrapping a driver error (``orig``) the message is the
    driver's, since the wrapper's text embeds the statement parameters.
    """
    cause = getattr(exc, "orig", None) or exc
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(cause),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if name.startswith("_") or name in _UNLOGGED_EXC_ATTRS:
            continue
        fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as a single JSON line.

    Key order: ts, level, logger, message, the LogContext fields, the
    caller's extras, then exc_* fields and traceback when exc_info is set.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        extras = {
            key: value
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and key not in payload
        }
        payload.update(extras)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_to_json)


def get_logger(name: str) -> logging.Logger:
    """Child logger of the loader_kernel namespace, e.g. ``get_logger("db.engine")``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_state_lock = threading.Lock()
_configured = False


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach one JSON handler to the loader_kernel logger.

    Only the first call has an effect; later calls are ignored until
    reset_logging(). Records do not propagate to the root logger, so host
    applications keep their own handlers untouched.

    Args:
        level: Threshold for the whole loader_kernel hierarchy.
        stream: Target of the default StreamHandler (stderr if omitted).
        handler: Use this handler instead of building a StreamHandler.
    """
    global _configured
    with _state_lock:
        if _configured:
            return
        _configured = True

        namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
        namespace_logger.setLevel(level)
        namespace_logger.propagate = False

        target = handler if handler is not None else logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())
        namespace_logger.addHandler(target)


def reset_logging() -> None:
    """Detach every handler and drop back to WARNING. Used by tests."""
    global _configured
    with _state_lock:
        _configured = False
        namespace_logger = logging.getLogger(LOGGER_NAMESPACE)
        for attached in list(namespace_logger.handlers):
            namespace_logger.removeHandler(attached)
        namespace_logger.setLevel(logging.WARNING)
