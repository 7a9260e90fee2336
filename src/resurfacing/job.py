"""Daily resurfacing job: rank, stamp and notify each user's top thoughts."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Callable, Sequence

from sqlalchemy import select

from config import ResurfacingConfig, settings
from logging_setup import log_context
from models import User
from resurfacing.candidates import ResurfacingCandidate, ResurfacingService, to_event_inputs
from resurfacing.events import EventRecorder
from resurfacing.scoring import is_within_recent_window
from services.database import (
    SessionFactory,
    create_session_factory,
    dispose_session_factory,
    transaction,
)
from services.notifications import NotificationDispatcher, build_notification_dispatcher
from time_utils import to_utc, utc_now

logger = logging.getLogger(__name__)

BODY_MAX_CHARS = 120
ELLIPSIS = "..."
FALLBACK_BODY = "Your top thoughts are ready to review."

_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class ResurfacingJobConfig:
    """Configuration for the resurfacing job."""

    candidate_limit: int = 3
    event_source: str = "daily_resurfacing_job"
    notification_title: str = "BrainDumb Resurfacing"
    body_max_chars: int = BODY_MAX_CHARS
    fallback_body: str = FALLBACK_BODY
    continue_on_user_failure: bool = True

    @classmethod
    def from_settings(cls, config: ResurfacingConfig | None = None) -> "ResurfacingJobConfig":
        """Build job configuration from application settings."""
        resolved = config or settings.resurfacing
        return cls(
            candidate_limit=resolved.candidate_limit,
            event_source=resolved.event_source,
            notification_title=resolved.notification_title,
            continue_on_user_failure=resolved.continue_on_user_failure,
        )


@dataclass(frozen=True)
class RunReport:
    """Aggregate outcome of one job execution."""

    total_users: int
    processed_users: int
    failed_users: int
    total_candidates: int
    events_created: int
    skipped_recently_resurfaced: int
    notifications_attempted: int
    notifications_delivered: int
    notifications_failed: int
    completed_at: datetime

    def to_dict(self) -> dict[str, object]:
        """Return a JSON-ready mapping of the report."""
        data = asdict(self)
        data["completed_at"] = self.completed_at.isoformat()
        return data


@dataclass
class _RunCounters:
    processed_users: int = 0
    failed_users: int = 0
    total_candidates: int = 0
    events_created: int = 0
    skipped_recently_resurfaced: int = 0
    notifications_attempted: int = 0
    notifications_delivered: int = 0
    notifications_failed: int = 0


@dataclass(frozen=True)
class _UserOutcome:
    candidates: list[ResurfacingCandidate]
    eligible: list[ResurfacingCandidate] = field(default_factory=list)
    events_created: int = 0


class ResurfacingJobRunner:
    """Run the resurfacing pass for every user, one user at a time."""

    def __init__(
        self,
        session_factory: SessionFactory,
        dispatcher: NotificationDispatcher,
        *,
        config: ResurfacingJobConfig | None = None,
        now_provider: Callable[[], datetime] | None = None,
        event_recorder: EventRecorder | None = None,
    ) -> None:
        """Initialize the job runner.

        Args:
            session_factory: Factory producing SQLAlchemy sessions.
            dispatcher: Push notification collaborator.
            config: Job configuration (defaults will be used if None).
            now_provider: Clock for the run (defaults to UTC now).
            event_recorder: Event persistence (defaults to a new recorder).
        """
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._config = config or ResurfacingJobConfig()
        self._now_provider = now_provider or utc_now
        self._event_recorder = event_recorder or EventRecorder()
        self._service = ResurfacingService(
            session_factory,
            now_provider=self._now_provider,
            event_recorder=self._event_recorder,
        )

    def run(self) -> RunReport:
        """Execute the job and return its report.

        A store failure for one user rolls back only that user's writes. It is
        logged and counted in ``failed_users`` and the run moves on, unless
        ``continue_on_user_failure`` is disabled, in which case it propagates.
        """
        now = to_utc(self._now_provider())
        user_ids = self._list_user_ids()
        counters = _RunCounters()

        with log_context({"job": self._config.event_source, "run_at": now.isoformat()}):
            logger.info("Resurfacing job started: users=%s", len(user_ids))
            for user_id in user_ids:
                with log_context({"user_id": user_id}):
                    self._run_user(user_id, now, counters)

            report = RunReport(
                total_users=len(user_ids),
                processed_users=counters.processed_users,
                failed_users=counters.failed_users,
                total_candidates=counters.total_candidates,
                events_created=counters.events_created,
                skipped_recently_resurfaced=counters.skipped_recently_resurfaced,
                notifications_attempted=counters.notifications_attempted,
                notifications_delivered=counters.notifications_delivered,
                notifications_failed=counters.notifications_failed,
                completed_at=now,
            )
            logger.info("Resurfacing job completed", extra={"report": report.to_dict()})
        return report

    def _run_user(self, user_id: str, now: datetime, counters: _RunCounters) -> None:
        try:
            outcome = self._process_user(user_id, now)
        except Exception:
            counters.failed_users += 1
            logger.exception("Resurfacing failed for user: user_id=%s", user_id)
            if not self._config.continue_on_user_failure:
                raise
            return

        counters.processed_users += 1
        counters.total_candidates += len(outcome.candidates)
        counters.events_created += outcome.events_created
        skipped = len(outcome.candidates) - len(outcome.eligible)
        counters.skipped_recently_resurfaced += skipped

        if outcome.eligible:
            self._notify(user_id, outcome.eligible, counters)

        logger.info(
            "Resurfacing user processed: candidates=%s created_events=%s skipped_recent=%s",
            len(outcome.candidates),
            outcome.events_created,
            skipped,
        )

    def _list_user_ids(self) -> list[str]:
        # TODO: page through users once a single pass no longer fits in memory.
        with transaction(self._session_factory) as session:
            return list(session.execute(select(User.id).order_by(User.id)).scalars())

    def _process_user(self, user_id: str, now: datetime) -> _UserOutcome:
        """Select, filter and stamp one user's candidates in one transaction."""
        with transaction(self._session_factory) as session:
            candidates = self._service.get_top_candidates_in_session(
                session,
                user_id,
                self._config.candidate_limit,
                now=now,
                emit_events=False,
            )
            eligible = [
                candidate
                for candidate in candidates
                if not is_within_recent_window(candidate.last_resurfaced_at, now)
            ]
            if not eligible:
                return _UserOutcome(candidates=candidates)

            created = self._event_recorder.record_many(
                session,
                to_event_inputs(eligible),
                source=self._config.event_source,
                now=now,
            )
        return _UserOutcome(candidates=candidates, eligible=eligible, events_created=created)

    def _notify(
        self,
        user_id: str,
        eligible: Sequence[ResurfacingCandidate],
        counters: _RunCounters,
    ) -> None:
        """Send the user's single notification; failures never abort the run."""
        body = build_resurfacing_body(
            [candidate.text for candidate in eligible],
            max_chars=self._config.body_max_chars,
            fallback=self._config.fallback_body,
        )
        try:
            summary = self._dispatcher.send_push_to_user(
                user_id,
                self._config.notification_title,
                body,
            )
        except Exception:
            logger.exception("Resurfacing push delivery failed: user_id=%s", user_id)
            return

        counters.notifications_attempted += summary.attempted
        counters.notifications_delivered += summary.delivered
        counters.notifications_failed += summary.failed
        if summary.failed > 0:
            logger.error(
                "Resurfacing push delivery had failures: user_id=%s failed=%s attempted=%s",
                user_id,
                summary.failed,
                summary.attempted,
            )


def build_resurfacing_body(
    candidate_texts: Sequence[str],
    *,
    max_chars: int = BODY_MAX_CHARS,
    fallback: str = FALLBACK_BODY,
) -> str:
    """Summarize eligible thoughts into one notification body."""
    if not candidate_texts:
        return fallback

    first = _WHITESPACE.sub(" ", candidate_texts[0].strip())
    if len(first) > max_chars:
        first = f"{first[: max_chars - len(ELLIPSIS)]}{ELLIPSIS}"

    if len(candidate_texts) == 1:
        return first
    return f"{first} (+{len(candidate_texts) - 1} more)"


def run_resurfacing_job(
    session_factory: SessionFactory | None = None,
    dispatcher: NotificationDispatcher | None = None,
    *,
    config: ResurfacingJobConfig | None = None,
    now_provider: Callable[[], datetime] | None = None,
) -> RunReport:
    """Run the resurfacing job once with configured collaborators."""
    owns_factory = session_factory is None
    resolved_factory = session_factory or create_session_factory()
    try:
        runner = ResurfacingJobRunner(
            resolved_factory,
            dispatcher or build_notification_dispatcher(),
            config=config or ResurfacingJobConfig.from_settings(),
            now_provider=now_provider,
        )
        return runner.run()
    finally:
        if owns_factory:
            dispose_session_factory(resolved_factory)
