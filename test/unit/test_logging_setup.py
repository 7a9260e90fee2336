"""Unit tests for resurfacing job logging."""

from __future__ import annotations

import io
import json
import logging

import pytest
from sqlalchemy.orm import sessionmaker

from helpers.resurfacing_seed import NOW, create_thought, create_user
from logging_setup import (
    JobFieldsFilter,
    JobLogFormatter,
    configure_logging,
    current_log_fields,
    log_context,
)
from resurfacing.job import ResurfacingJobRunner
from services.notifications import LogOnlyNotificationDispatcher


@pytest.fixture()
def log_stream():
    """Route root logging into a buffer and restore it afterwards."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    stream = io.StringIO()
    configure_logging(level="INFO", json_output=True, stream=stream)
    yield stream
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(message: str = "hello", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("resurfacing.job", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    JobFieldsFilter().filter(record)
    return record


def test_log_context_nests_and_restores() -> None:
    """Inner blocks add fields; leaving a block drops only its own fields."""
    assert current_log_fields() == {}

    with log_context({"job": "daily_resurfacing_job", "skip": None}):
        with log_context({"user_id": "u-1"}):
            assert current_log_fields() == {"job": "daily_resurfacing_job", "user_id": "u-1"}
        assert current_log_fields() == {"job": "daily_resurfacing_job"}

    assert current_log_fields() == {}


def test_json_lines_flatten_report() -> None:
    """A report extra becomes top-level keys next to the bound fields."""
    with log_context({"job": "daily_resurfacing_job"}):
        record = _record("Resurfacing job completed", report={"events_created": 2})

    payload = json.loads(JobLogFormatter(json_output=True).format(record))

    assert payload["msg"] == "Resurfacing job completed"
    assert payload["level"] == "INFO"
    assert payload["job"] == "daily_resurfacing_job"
    assert payload["events_created"] == 2


def test_plain_lines_append_sorted_fields() -> None:
    with log_context({"user_id": "u-1", "job": "daily"}):
        record = _record()

    line = JobLogFormatter(json_output=False).format(record)

    assert line.endswith("hello job=daily user_id=u-1")


def test_configure_logging_keeps_one_handler() -> None:
    """Repeated configuration replaces the handler and defaults to stderr."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    try:
        configure_logging(level="debug", json_output=False)
        configure_logging(level="warning")

        assert len(root.handlers) == 1
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, JobLogFormatter)
    finally:
        root.handlers[:] = handlers
        root.setLevel(level)


def test_job_lines_carry_run_and_user_fields(
    sqlite_session_factory: sessionmaker, log_stream: io.StringIO
) -> None:
    """Job logs are tagged with the run, per-user lines with the user."""
    user_id = create_user(sqlite_session_factory)
    create_thought(sqlite_session_factory, user_id)

    report = ResurfacingJobRunner(
        sqlite_session_factory,
        LogOnlyNotificationDispatcher(),
        now_provider=lambda: NOW,
    ).run()

    lines = [json.loads(line) for line in log_stream.getvalue().splitlines()]
    job_lines = [line for line in lines if line["logger"] == "resurfacing.job"]
    assert all(line["job"] == "daily_resurfacing_job" for line in job_lines)
    processed = [line for line in lines if line["msg"].startswith("Resurfacing user processed")]
    assert processed[0]["user_id"] == user_id
    assert processed[0]["run_at"] == NOW.isoformat()
    completed = [line for line in lines if line["msg"] == "Resurfacing job completed"]
    assert completed[0]["events_created"] == report.events_created == 1
    assert "user_id" not in completed[0]
