"""
Structured JSON logging for the expense kernel.

Every kernel logger lives under the ``expense_kernel`` namespace and writes
one JSON object per line.  Request-scoped identifiers (correlation, company,
claim, actor, workflow) are carried in a ``ContextVar`` and merged into each
record, so a decision logged deep inside the coordinator still names the
claim and approver it belongs to.

Kernel exceptions carry structured attributes (``claim_id``,
``expected_version`` ...).  When a record has ``exc_info`` those attributes
are copied into the payload with an ``exc_`` prefix.
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
from datetime import UTC, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, TextIO
from uuid import UUID

_LOGGER_PREFIX = "expense_kernel"

_CONTEXT_FIELDS = (
    "correlation_id",
    "company_id",
    "claim_id",
    "actor_id",
    "workflow_id",
)

_context: ContextVar[MappingProxyType] = ContextVar(
    "expense_log_context", default=MappingProxyType({})
)


class LogContext:
    """Request-scoped log fields, safe across threads and asyncio tasks."""

    @staticmethod
    def _check(fields: dict[str, Any]) -> None:
        unknown = set(fields) - set(_CONTEXT_FIELDS)
        if unknown:
            raise TypeError(f"unknown log context field(s): {sorted(unknown)}")

    @classmethod
    def set(cls, **fields: Any) -> None:
        """Set context fields.  ``None`` values leave the field untouched."""
        cls._check(fields)
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        _context.set(MappingProxyType(merged))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set(MappingProxyType({}))

    @classmethod
    @contextmanager
    def bind(cls, **fields: Any) -> Iterator[type["LogContext"]]:
        """Set fields for the duration of a ``with`` block, then restore."""
        cls._check(fields)
        merged = dict(_context.get())
        merged.update({k: str(v) for k, v in fields.items() if v is not None})
        token = _context.set(MappingProxyType(merged))
        try:
            yield cls
        finally:
            _context.reset(token)


_RESERVED_KEYS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _to_json(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset, tuple)):
        return [_to_json(v) for v in value]
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Render a record as one JSON line: envelope, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())
        payload.update(
            (key, value)
            for key, value in vars(record).items()
            if key not in _RESERVED_KEYS and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(self._exception_fields(record))
        return json.dumps(payload, default=_to_json)

    def _exception_fields(self, record: logging.LogRecord) -> dict[str, Any]:
        exc = record.exc_info[1]
        fields: dict[str, Any] = {
            "exc_type": type(exc).__name__,
            "exc_message": str(exc),
        }
        code = getattr(exc, "code", None)
        if code is not None:
            fields["exc_code"] = code
        for name, value in vars(exc).items():
            if not name.startswith("_") and name != "code":
                fields[f"exc_{name}"] = value
        fields["traceback"] = self.formatException(record.exc_info)
        return fields


def get_logger(name: str) -> logging.Logger:
    """Logger ``expense_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False
_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``expense_kernel`` logger.

    Only the first call has an effect until ``reset_logging()``.  ``level``
    accepts a number or a level name such as ``"DEBUG"`` so configuration
    files can pass their value straight through.
    """
    global _configured
    with _lock:
        if _configured:
            return
        _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.setLevel(level.upper() if isinstance(level, str) else level)
    kernel_logger.propagate = False
    kernel_logger.addHandler(handler)


def reset_logging() -> None:
    """Drop handlers and allow ``configure_logging`` to run again (tests)."""
    global _configured
    with _lock:
        _configured = False
    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.handlers.clear()
    kernel_logger.setLevel(logging.WARNING)
