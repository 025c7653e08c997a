"""
Structured JSON logging for the ledger.

Every service logs through ``get_logger(name)`` with event-style messages
(``journal_written``, ``period_closed``) and structured ``extra=`` fields.
``StructuredFormatter`` renders one JSON object per line; the ambient
scope of the current request (tenant, company, actor, journal, document,
correlation id) is stamped onto every record from ``LogContext``.
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
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping
from uuid import UUID

ROOT_LOGGER = "ledger_kernel"

CONTEXT_FIELDS = (
    "correlation_id",
    "tenant_id",
    "company_id",
    "actor_id",
    "journal_id",
    "document_id",
)

_EMPTY: Mapping[str, str] = MappingProxyType({})
_scope: ContextVar[Mapping[str, str]] = ContextVar("ledger_log_scope", default=_EMPTY)


class LogContext:
    """Request-scoped fields copied onto every record (thread and task local)."""

    @staticmethod
    def _merged(values: dict[str, Any]) -> Mapping[str, str]:
        unknown = set(values) - set(CONTEXT_FIELDS)
        if unknown:
            raise ValueError(f"Unknown log context fields: {sorted(unknown)}")
        merged = dict(_scope.get())
        merged.update({name: str(value) for name, value in values.items() if value is not None})
        return MappingProxyType(merged)

    @classmethod
    def set(cls, **values: Any) -> None:
        """Overlay the given fields; ``None`` leaves a field untouched."""
        _scope.set(cls._merged(values))

    @staticmethod
    def get_all() -> dict[str, str]:
        current = _scope.get()
        return {name: current[name] for name in CONTEXT_FIELDS if name in current}

    @staticmethod
    def clear() -> None:
        _scope.set(_EMPTY)

    @classmethod
    @contextmanager
    def bind(cls, **values: Any) -> Iterator[type["LogContext"]]:
        """Overlay fields for the duration of a ``with`` block."""
        token = _scope.set(cls._merged(values))
        try:
            yield cls
        finally:
            _scope.reset(token)


# Attributes every LogRecord carries; anything else arrived through ``extra=``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "taskName"}


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    # UUID, Decimal and enums render as their string form
    return str(value)


def _error_fields(exc: BaseException) -> dict[str, Any]:
    fields: dict[str, Any] = {"exc_type": type(exc).__name__, "exc_message": str(exc)}
    code = getattr(exc, "code", None)
    if code is not None:
        fields["exc_code"] = code
    for name, value in vars(exc).items():
        if name != "code" and not name.startswith("_"):
            fields[f"exc_{name}"] = value
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per record: envelope, log context, extras, error."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for name, value in vars(record).items():
            if name not in _RECORD_ATTRS:
                payload.setdefault(name, value)

        if record.exc_info and record.exc_info[1] is not None:
            payload.update(_error_fields(record.exc_info[1]))
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_jsonable)


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``ledger_kernel`` namespace, e.g. ``ledger_kernel.gl.service``."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def configure_logging(
    *,
    level: int = logging.INFO,
    stream: Any = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ledger logger hierarchy.

    Only the first call takes effect until ``reset_logging``; the hierarchy
    does not propagate to the root logger.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    if handler.formatter is None:
        handler.setFormatter(StructuredFormatter())
    root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False


def reset_logging() -> None:
    """Detach every handler so the next ``configure_logging`` applies (tests)."""
    root = logging.getLogger(ROOT_LOGGER)
    root.handlers.clear()
    root.setLevel(logging.WARNING)
