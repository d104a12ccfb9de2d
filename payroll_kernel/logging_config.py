"""
Structured JSON logging for the payroll kernel.

Every record under the ``payroll_kernel`` logger renders as one JSON line:
``ts``, ``level``, ``logger`` and ``message``, then the ids bound with
``LogContext.bind``, then any ``extra`` fields.  Kernel exceptions add
their ``code`` and structured attributes as ``exc_*`` keys.

Usage:
    logger = get_logger("services.bonus_ledger")
    with LogContext.bind(actor_id=actor_id, worker_id=worker_id):
        logger.info("bonus_added", extra={"amount": amount})
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
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any, TextIO

_LOGGER_PREFIX = "payroll_kernel"

_CONTEXT: dict[str, ContextVar[str | None]] = {
    name: ContextVar(f"payroll_log_{name}", default=None)
    for name in ("actor_id", "worker_id", "payment_id", "entry_id")
}


class LogContext:
    """Ids of the records the current operation touches."""

    @staticmethod
    @contextmanager
    def bind(**ids: Any) -> Iterator[None]:
        """
        Bind ids for the duration of a ``with`` block.

        None values are skipped, so an outer binding stays visible.  Previous
        values are restored on exit, including after an exception.

        Raises:
            TypeError: For a name other than actor_id, worker_id, payment_id
                or entry_id.
        """
        unknown = sorted(set(ids) - set(_CONTEXT))
        if unknown:
            raise TypeError(f"LogContext.bind() got unknown fields: {unknown}")
        tokens = [
            (_CONTEXT[name], _CONTEXT[name].set(str(value)))
            for name, value in ids.items()
            if value is not None
        ]
        try:
            yield
        finally:
            for var, token in reversed(tokens):
                var.reset(token)

    @staticmethod
    def get_all() -> dict[str, str]:
        bound = {}
        for name, var in _CONTEXT.items():
            value = var.get()
            if value is not None:
                bound[name] = value
        return bound

    @staticmethod
    def clear() -> None:
        for var in _CONTEXT.values():
            var.set(None)


# Attributes every LogRecord carries; anything else arrived through ``extra``
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "taskName"}


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    # Decimal, UUID and anything else unknown to json
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Render a record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **LogContext.get_all(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS:
                payload.setdefault(key, value)

        if record.exc_info and record.exc_info[1] is not None:
            exc = record.exc_info[1]
            payload["exc_type"] = type(exc).__name__
            payload["exc_message"] = str(exc)
            code = getattr(exc, "code", None)
            if code is not None:
                payload["exc_code"] = code
            for key, value in vars(exc).items():
                if not key.startswith("_"):
                    payload[f"exc_{key}"] = value
            payload["traceback"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=_json_default)


def get_logger(name: str) -> logging.Logger:
    """Return ``payroll_kernel.<name>``."""
    return logging.getLogger(f"{_LOGGER_PREFIX}.{name}")


_configured = False


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
    handler: logging.Handler | None = None,
) -> None:
    """
    Attach a JSON handler to the ``payroll_kernel`` logger.

    Only the first call has an effect until ``reset_logging`` runs.  Records
    do not propagate to the root logger.
    """
    global _configured
    if _configured:
        return
    _configured = True

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())

    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.setLevel(level)
    kernel_logger.propagate = False
    kernel_logger.addHandler(handler)


def reset_logging() -> None:
    """Detach handlers and restore propagation. Used by the test suite."""
    global _configured
    _configured = False
    kernel_logger = logging.getLogger(_LOGGER_PREFIX)
    kernel_logger.handlers.clear()
    kernel_logger.setLevel(logging.WARNING)
    kernel_logger.propagate = True
