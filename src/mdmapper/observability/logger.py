"""Structured JSON logging for the parser and the updater.

Records are single-line JSON objects.  Library code passes its fields via
``extra={"extra_fields": {...}}``; block-model values (ranges, block
types, content dataclasses) are written in their wire form rather than
as ``repr`` strings::

    {"ts": "2025-07-01T12:00:00.123456+00:00", "level": "DEBUG",
     "logger": "mdmapper.updater", "message": "incremental update",
     "changes": 1, "windows": [[3, 6]], "blocks": 42, "elapsed_ms": 0.41}

:func:`log_elapsed` wraps a parse or an update and emits one DEBUG record
with its duration.  Nothing is measured while DEBUG is off for the logger.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from contextlib import contextmanager
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator

from mdmapper.models import SourceRange


def _json_default(value: Any) -> Any:
    if isinstance(value, SourceRange):
        return [value.start, value.end]
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    return str(value)


class StructuredFormatter(logging.Formatter):
    """Format log records as single-line JSON objects.

    Guaranteed keys are ``ts``, ``level``, ``logger`` and ``message``.
    ``extra_fields`` are merged into the top-level object; exception and
    stack info are included when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "extra_fields", None) or {})
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)
        return json.dumps(entry, default=_json_default, ensure_ascii=False)


@contextmanager
def log_elapsed(log: logging.Logger, message: str, **fields: Any) -> Iterator[dict[str, Any]]:
    """Log *message* at DEBUG with the wall time of the ``with`` body.

    Yields the field dict so the body can add results before the record
    is written.  When the body raises, no record is written.

    Examples
    --------
    >>> log = get_logger("mdmapper.example")
    >>> with log_elapsed(log, "parsed markdown", chars=3) as fields:
    ...     fields["blocks"] = 1
    """
    if not log.isEnabledFor(logging.DEBUG):
        yield fields
        return
    t0 = time.monotonic()
    yield fields
    fields["elapsed_ms"] = round((time.monotonic() - t0) * 1000, 3)
    log.debug(message, extra={"extra_fields": fields})


_configured_loggers: set[str] = set()


def get_logger(
    name: str = "mdmapper",
    *,
    level: int | str = logging.WARNING,
    stream: Any | None = None,
) -> logging.Logger:
    """Get or create a structured JSON logger.

    The first call for a *name* attaches one stream handler and stops
    propagation; later calls return the same logger untouched.  The
    default level is ``WARNING`` so per-call DEBUG records stay quiet
    unless a host asks for them.
    """
    logger = logging.getLogger(name)
    if name in _configured_loggers:
        return logger

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logger.setLevel(level)
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StructuredFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    _configured_loggers.add(name)
    return logger
