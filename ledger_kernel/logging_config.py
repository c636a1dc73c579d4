"""
Module: ledger_kernel.logging_config
Responsibility: One-line JSON log records for every ledger component, with
    the acting user, snapshot revision and customer attached from context.
Architecture position: Kernel.  Imported by every layer; imports nothing
    from the project.

Invariants:
    - All project loggers live under the ``ledger_kernel`` namespace and
      never propagate to the root logger once configured.
    - Context fields are per thread / per task (ContextVar backed).
"""

__all__ = [
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
from enum import Enum
from typing import Any

ROOT_LOGGER = "ledger_kernel"

CONTEXT_FIELDS = ("correlation_id", "actor_id", "snapshot_revision", "customer_id")

_context: dict[str, ContextVar[str | None]] = {
    field: ContextVar(f"ledger_log_{field}", default=None) for field in CONTEXT_FIELDS
}


class LogContext:
    """Request-scoped fields merged into every record the formatter writes."""

    @staticmethod
    def set(**fields: str | None) -> None:
        """Overwrite the named fields; None leaves a field untouched."""
        for field, value in fields.items():
            if field not in _context:
                raise TypeError(f"unknown log context field: {field}")
            if value is not None:
                _context[field].set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        values = ((field, var.get()) for field, var in _context.items())
        return {field: value for field, value in values if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _context.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: str | None) -> Iterator[type["LogContext"]]:
        """Set fields for the ``with`` block only.

        Unknown names and None values are skipped so callers can pass
        optional ids straight through.
        """
        tokens = [
            (_context[field], _context[field].set(value))
            for field, value in fields.items()
            if value is not None and field in _context
        ]
        try:
            yield LogContext
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    # Decimal and anything else: its text form
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Render a record as a JSON object on one line.

    Key order: ts, level, logger, message, context fields, extras, then
    ``exc_*`` fields and the traceback when the record carries an exception.
    """

    def format(self, record: logging.LogRecord) -> str:
        out: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                out.setdefault(key, value)
        if record.exc_info and record.exc_info[1] is not None:
            out.update(self._describe(record.exc_info[1]))
            out["traceback"] = self.formatException(record.exc_info)
        return json.dumps(out, default=_jsonable)

    @staticmethod
    def _describe(exc: BaseException) -> dict[str, Any]:
        fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # LedgerKernelError subclasses keep their context as public attributes
        fields.update(
            (f"exc_{name}", value)
            for name, value in vars(exc).items()
            if not name.startswith("_") and name != "code"
        )
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger ``ledger_kernel.<name>``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


_setup_lock = threading.Lock()
_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach one JSON handler to the ``ledger_kernel`` logger.

    Later calls are no-ops until ``reset_logging()``.
    """
    global _handler
    with _setup_lock:
        if _handler is not None:
            return
        _handler = attached = handler or logging.StreamHandler(stream or sys.stderr)
    attached.setFormatter(StructuredFormatter())
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(level)
    root.propagate = False
    root.addHandler(attached)


def reset_logging() -> None:
    """Detach the handler and restore default propagation (tests only)."""
    global _handler
    with _setup_lock:
        _handler = None
    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
    root.propagate = True
