"""
Validation error codes and the transient-failure classifier.

Pure functions, ZERO I/O. The classifier is advisory metadata for callers
deciding whether to retry one record later; the engine itself never retries.
"""

from __future__ import annotations

from enum import Enum

from sqlalchemy.exc import DisconnectionError, OperationalError

from loader_kernel.exceptions import TransientLoadError


class ValidationErrorCode(str, Enum):
    """Machine-readable codes carried by field errors and record errors."""

    REQUIRED = "REQUIRED"
    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_VALUE = "INVALID_VALUE"
    DUPLICATE = "DUPLICATE"
    NOT_FOUND = "NOT_FOUND"
    CREATE_FAILED = "CREATE_FAILED"


_TRANSIENT_PHRASES: tuple[str, ...] = (
    "timeout",
    "timed out",
    "connection reset",
    "connection refused",
    "econnreset",
    "econnrefused",
    "etimedout",
    "temporarily unavailable",
    "service unavailable",
    "too many connections",
    "deadlock",
    "could not serialize",
)


def is_recoverable_error(error: BaseException | object) -> bool:
    """
    Return True when a hook failure looks transient.

    Typed signals win first: TransientLoadError, TimeoutError, ConnectionError
    and SQLAlchemy disconnects. Anything else is judged by its message.
    """
    if isinstance(error, (TransientLoadError, TimeoutError, ConnectionError, DisconnectionError)):
        return True
    if isinstance(error, OperationalError) and error.connection_invalidated:
        return True
    message = str(error).lower()
    return any(phrase in message for phrase in _TRANSIENT_PHRASES)
