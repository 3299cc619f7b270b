"""
Module: store_kernel.logging_config
Responsibility: Structured JSON logging for the store kernel.  One JSON
    object per line, carrying the operation context (correlation id,
    operator, client, transaction) alongside each event's own fields.
Architecture position: Kernel, no internal dependencies.  Every other layer
    obtains its logger through get_logger().

Conventions:
    - Messages are snake_case event names ("stock_deducted",
      "transaction_committed"); details go in ``extra``.
    - ``extra`` keys must not reuse LogRecord attribute names ("name",
      "msg", "args", ...); the logging module rejects them.
    - Decimal values are written as strings so amounts survive exactly.
    - Raw PINs are never logged.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "reset_logging",
]

import json
import logging
import sys
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

LOGGER_NAMESPACE = "store_kernel"

# Operation-scoped fields, in output order
CONTEXT_FIELDS = ("correlation_id", "actor_id", "client_id", "transaction_id")

_context_vars: dict[str, ContextVar] = {
    field: ContextVar(f"store_log_{field}", default=None) for field in CONTEXT_FIELDS
}


def _context_var(field: str) -> ContextVar:
    try:
        return _context_vars[field]
    except KeyError:
        raise TypeError(f"Unknown log context field: {field!r}") from None


class LogContext:
    """
    Operation-scoped log fields held in context variables.

    Each thread (and each asyncio task) sees its own values, so concurrent
    requests do not leak context into each other's log lines.
    """

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set context fields.  None values leave the field untouched."""
        for field, value in fields.items():
            if value is not None:
                _context_var(field).set(value)

    @classmethod
    def get_all(cls) -> dict[str, Any]:
        """Return the fields that currently have a value."""
        values = ((field, _context_vars[field].get()) for field in CONTEXT_FIELDS)
        return {field: value for field, value in values if value is not None}

    @classmethod
    def clear(cls) -> None:
        for var in _context_vars.values():
            var.set(None)

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """
        Set fields for the duration of a with-block, then restore them.

        None values are skipped, so ``bind(client_id=None)`` inside an outer
        binding keeps the outer client.
        """
        tokens = [
            (_context_var(field), _context_var(field).set(value))
            for field, value in fields.items()
            if value is not None
        ]
        try:
            yield cls
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# ---------------------------------------------------------------------------
# Formatter
# ---------------------------------------------------------------------------

# Attributes every LogRecord has; anything else on a record came from extra=
_RECORD_ATTRIBUTES = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    """Flatten an exception into exc_* fields, including kernel error data."""
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for attr, value in vars(exc).items():
        if not attr.startswith("_"):
            fields[f"exc_{attr}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """Render a LogRecord as one JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRIBUTES:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def get_logger(name: str) -> logging.Logger:
    """Logger for a kernel component, e.g. get_logger("services.inventory")."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_setup_lock = threading.Lock()
_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach the JSON handler to the store_kernel logger.

    Only the first call has an effect until reset_logging() is called, so
    the application and the test suite can both call it safely.

    Args:
        level: Level number or name ("DEBUG", "INFO", ...).
        stream: Stream for the default handler (stderr if omitted).
        handler: Handler to use instead of a StreamHandler.
    """
    global _handler
    with _setup_lock:
        if _handler is not None:
            return
        _handler = handler or logging.StreamHandler(stream or sys.stderr)
        _handler.setFormatter(StructuredFormatter())

        kernel_logger = logging.getLogger(LOGGER_NAMESPACE)
        kernel_logger.setLevel(level.upper() if isinstance(level, str) else level)
        kernel_logger.propagate = False
        kernel_logger.addHandler(_handler)


def reset_logging() -> None:
    """Detach all handlers and forget the configuration.  For tests."""
    global _handler
    with _setup_lock:
        _handler = None
        kernel_logger = logging.getLogger(LOGGER_NAMESPACE)
        kernel_logger.handlers.clear()
        kernel_logger.setLevel(logging.WARNING)
