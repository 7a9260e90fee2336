"""Command-line entry point for the daily resurfacing job."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from config import settings
from logging_setup import configure_logging
from resurfacing.job import ResurfacingJobConfig, run_resurfacing_job
from services.database import (
    check_connection,
    create_session_factory,
    dispose_session_factory,
    run_migrations,
)
from services.notifications import build_notification_dispatcher

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Run the resurfacing job once and print its report as JSON on stdout.

    Logs go to stderr, so stdout carries only the report.
    """
    parser = argparse.ArgumentParser(description="Run the daily thought resurfacing job")
    parser.add_argument(
        "--migrate",
        action="store_true",
        help="Apply database migrations before running",
    )
    args = parser.parse_args(argv)

    configure_logging(level=settings.log_level, json_output=settings.log_json)

    if args.migrate:
        run_migrations(settings.database.url)

    session_factory = create_session_factory(settings.database.url)
    try:
        if not check_connection(session_factory):
            logger.error("Resurfacing job aborted: database unavailable")
            return 2
        report = run_resurfacing_job(
            session_factory,
            build_notification_dispatcher(settings.notifications),
            config=ResurfacingJobConfig.from_settings(settings.resurfacing),
        )
    finally:
        dispose_session_factory(session_factory)

    print(json.dumps(report.to_dict()))
    return 1 if report.failed_users else 0


if __name__ == "__main__":
    sys.exit(main())
