"""
Structured JSON logging for docflow.

Every record is one JSON object per line:

    {"ts": ..., "level": ..., "logger": "docflow.services.workflow_engine",
     "message": "workflow_transition_applied", "document_id": "VI-1", ...}

Request-scoped fields (actor, document, correlation) live in ``LogContext``
and are merged into every record emitted while they are bound.  Fields
passed through ``extra=`` are merged after them.  Exceptions raised from
``docflow_kernel.exceptions`` contribute their ``code`` and public
attributes as ``exc_*`` keys.
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
from contextvars import ContextVar
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

LOGGER_NAMESPACE = "docflow"

CONTEXT_FIELDS: tuple[str, ...] = (
    "correlation_id",
    "actor_id",
    "document_type",
    "document_id",
    "trace_id",
)

_context: ContextVar[dict[str, str]] = ContextVar("docflow_log_context", default={})


class LogContext:
    """Request-scoped log fields, safe across threads and tasks.

    The whole context is a single immutable snapshot in a ContextVar, so a
    thread or task never sees another one's fields.  Unknown field names
    are ignored.
    """

    @staticmethod
    def _merged(fields: dict[str, str | None]) -> dict[str, str]:
        current = dict(_context.get())
        for name, value in fields.items():
            if name in CONTEXT_FIELDS and value is not None:
                current[name] = value
        return current

    @classmethod
    def set(cls, **fields: str | None) -> None:
        """Set the given fields; None values leave a field unchanged."""
        _context.set(cls._merged(fields))

    @classmethod
    def get_all(cls) -> dict[str, str]:
        return dict(_context.get())

    @classmethod
    def clear(cls) -> None:
        _context.set({})

    @classmethod
    def bind(cls, **fields: str | None) -> "_BoundContext":
        """Bind fields for the duration of a ``with`` block."""
        return _BoundContext(cls._merged(fields))


class _BoundContext:
    def __init__(self, snapshot: dict[str, str]):
        self._snapshot = snapshot
        self._token = None

    def __enter__(self) -> type[LogContext]:
        self._token = _context.set(self._snapshot)
        return LogContext

    def __exit__(self, *exc: Any) -> None:
        _context.reset(self._token)


# LogRecord attributes that are never copied into the payload.
_RESERVED = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _encode(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    return str(value)


def _exception_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {
        "exc_type": type(exc).__name__,
        "exc_message": str(exc),
    }
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if not name.startswith("_") and name not in ("args", "code"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON line per record: envelope, context, extras, exception."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(_context.get())
        payload.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RESERVED and key not in payload
        )
        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_exception_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=_encode)


def get_logger(name: str) -> logging.Logger:
    """Logger ``docflow.<name>``; configuration is inherited from ``docflow``."""
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


_configured = False
_configure_lock = threading.Lock()


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """Attach a JSON handler to the ``docflow`` logger.

    Only the first call has any effect; later calls (for example from
    ``init_engine_from_url`` after the application configured logging)
    are ignored.  The ``docflow`` tree does not propagate to the root
    logger once configured.
    """
    global _configured
    with _configure_lock:
        if _configured:
            return
        _configured = True

        target = handler or logging.StreamHandler(stream or sys.stderr)
        target.setFormatter(StructuredFormatter())

        namespace = logging.getLogger(LOGGER_NAMESPACE)
        namespace.setLevel(level)
        namespace.propagate = False
        namespace.addHandler(target)


def reset_logging() -> None:
    """Undo ``configure_logging``.  Tests only."""
    global _configured
    with _configure_lock:
        _configured = False
        namespace = logging.getLogger(LOGGER_NAMESPACE)
        namespace.handlers.clear()
        namespace.setLevel(logging.NOTSET)
        namespace.propagate = True
