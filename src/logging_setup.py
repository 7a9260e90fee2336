"""Logging for the resurfacing job.

Lines are written to stderr so stdout stays free for the run report. Fields
bound with ``log_context`` (the run's job tag and timestamp, then the user
being processed) ride on every line emitted inside the block. A ``report``
passed through ``extra`` is flattened into top-level keys.
"""

from __future__ import annotations

import json
import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Iterator, Mapping, TextIO

_JOB_FIELDS: ContextVar[Mapping[str, str]] = ContextVar(
    "resurfacing_job_fields", default=MappingProxyType({})
)


@contextmanager
def log_context(fields: Mapping[str, object]) -> Iterator[None]:
    """Add fields to every log line emitted inside the block; None is skipped."""
    merged = dict(_JOB_FIELDS.get())
    merged.update((str(key), str(value)) for key, value in fields.items() if value is not None)
    token = _JOB_FIELDS.set(MappingProxyType(merged))
    try:
        yield
    finally:
        _JOB_FIELDS.reset(token)


def current_log_fields() -> dict[str, str]:
    return dict(_JOB_FIELDS.get())


class JobFieldsFilter(logging.Filter):
    """Copy the bound job fields onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.job_fields = current_log_fields()
        return True


class JobLogFormatter(logging.Formatter):
    """Render records as JSON objects or as ``key=value`` suffixed lines."""

    def __init__(self, *, json_output: bool = True) -> None:
        super().__init__()
        self.json_output = json_output

    def format(self, record: logging.LogRecord) -> str:
        fields: dict[str, Any] = dict(getattr(record, "job_fields", {}))
        report = getattr(record, "report", None)
        if isinstance(report, Mapping):
            fields.update(report)

        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        if self.json_output:
            payload: dict[str, Any] = {
                "ts": timestamp,
                "level": record.levelname,
                "logger": record.name,
                "msg": record.getMessage(),
                **fields,
            }
            if record.exc_info:
                payload["exc"] = self.formatException(record.exc_info)
            return json.dumps(payload, default=str)

        line = f"{timestamp} {record.levelname} {record.name} {record.getMessage()}"
        if fields:
            line += " " + " ".join(f"{key}={fields[key]}" for key in sorted(fields))
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(
    *,
    level: str = "INFO",
    json_output: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Install a single handler on the root logger, replacing any others."""
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.addFilter(JobFieldsFilter())
    handler.setFormatter(JobLogFormatter(json_output=json_output))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
