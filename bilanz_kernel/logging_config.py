"""
Structured JSON logging for bilanz.

Each record is written as one JSON object per line::

    {"ts": "...", "level": "INFO", "logger": "bilanz.reporting.service",
     "message": "balance_sheet_generated", "company_id": "...",
     "fiscal_year_id": "...", "fiscal_year": 2024, "stored": false}

Messages are snake_case event names; details travel in ``extra``.
Request-scoped identifiers are held in ``LogContext`` and merged into every
record emitted while they are bound.
"""

__all__ = [
    "CONTEXT_FIELDS",
    "StructuredFormatter",
    "LogContext",
    "get_logger",
    "configure_logging",
    "configured_handler",
    "reset_logging",
]

import json
import logging
import sys
import threading
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import Any, Iterator
from uuid import UUID

ROOT_LOGGER = "bilanz"

CONTEXT_FIELDS = ("correlation_id", "company_id", "fiscal_year_id", "actor_id")

_context_vars: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"bilanz_log_{name}", default=None) for name in CONTEXT_FIELDS
}


def _context_var(name: str) -> ContextVar[str | None]:
    try:
        return _context_vars[name]
    except KeyError:
        raise TypeError(f"Unknown log context field: {name}") from None


class LogContext:
    """
    Request-scoped log fields.

    Backed by ContextVars, so values are isolated per thread and per
    asyncio task.
    """

    @staticmethod
    def set(**fields: str | None) -> None:
        """Update the given fields.  ``None`` leaves a field unchanged."""
        for name, value in fields.items():
            if value is not None:
                _context_var(name).set(value)

    @staticmethod
    def get_all() -> dict[str, str]:
        """Fields currently set, in ``CONTEXT_FIELDS`` order."""
        values = ((name, var.get()) for name, var in _context_vars.items())
        return {name: value for name, value in values if value is not None}

    @staticmethod
    def clear() -> None:
        for var in _context_vars.values():
            var.set(None)

    @staticmethod
    @contextmanager
    def bind(**fields: Any) -> Iterator[None]:
        """
        Set fields for the duration of a block, restoring the previous
        values on exit.  Values are stored as strings, so UUIDs can be
        passed directly.
        """
        tokens = [
            (var, var.set(str(value)))
            for var, value in ((_context_var(n), v) for n, v in fields.items())
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)


# Attributes every LogRecord carries; anything else came in through ``extra``
_RECORD_ATTRIBUTES = frozenset(vars(logging.makeLogRecord({}))) | {
    "message",
    "asctime",
    "taskName",
}


def _json_default(value: Any) -> Any:
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Renders a record, its context and its ``extra`` payload as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRIBUTES and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record.exc_info))
        return json.dumps(payload, default=_json_default)

    def _exception_fields(self, exc_info) -> dict[str, Any]:
        exc = exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        # BilanzError subclasses keep their structured data as attributes
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger below the ``bilanz`` namespace, e.g. ``bilanz.reporting.service``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


_configure_lock = threading.Lock()
_handler: logging.Handler | None = None


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``bilanz`` logger.

    Only the first call has an effect until ``reset_logging()``.  The
    ``bilanz`` logger does not propagate, so handlers of the host
    application never see duplicate lines.
    """
    global _handler
    with _configure_lock:
        if _handler is not None:
            return

        if handler is None:
            handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(StructuredFormatter())

        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(level)
        root.propagate = False
        root.addHandler(handler)
        _handler = handler


def configured_handler() -> logging.Handler | None:
    """The handler attached by ``configure_logging``, if any."""
    return _handler


def reset_logging() -> None:
    """
    Detach the configured handler again.  Used by the test suite.

    Handlers added to the ``bilanz`` logger by anyone else stay in place.
    """
    global _handler
    with _configure_lock:
        root = logging.getLogger(ROOT_LOGGER)
        if _handler is not None:
            root.removeHandler(_handler)
            _handler = None
        root.setLevel(logging.WARNING)
