"""Candidate selection for thought resurfacing."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Sequence
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy import exists, func, select
from sqlalchemy.orm import Session

from config import settings
from models import Reminder, Thought, ThoughtEvent
from resurfacing.errors import ItemNotFound, ValidationFailure
from resurfacing.events import RESURFACED_EVENT_TYPE, EventRecorder, ResurfacedEventInput
from resurfacing.scoring import ScoreResult, compute_resurfacing_score, is_within_recent_window
from resurfacing.signals import ResurfacingSignalStore
from services.database import SessionFactory, transaction
from time_utils import to_utc, utc_now

logger = logging.getLogger(__name__)

MIN_CANDIDATE_LIMIT = 1
MAX_CANDIDATE_LIMIT = 50
ELIGIBLE_STATUS = "CAPTURED"


class _TopCandidatesInput(BaseModel):
    user_id: UUID
    limit: int = Field(ge=MIN_CANDIDATE_LIMIT, le=MAX_CANDIDATE_LIMIT, strict=True)


class _EvaluateThoughtInput(BaseModel):
    thought_id: UUID


@dataclass(frozen=True)
class ResurfacingCandidate:
    """A scored thought, detached from the session that produced it."""

    thought_id: str
    user_id: str
    text: str
    created_at: datetime
    urgency_level: str
    status: str
    has_reminder: bool
    last_resurfaced_at: datetime | None
    score: float
    reason: str


@dataclass(frozen=True)
class EvaluatedSignal:
    """Result of evaluating a single thought."""

    thought_id: str
    score: float
    reason: str
    last_evaluated_at: datetime


class ResurfacingService:
    """Score, persist and rank a user's resurfacing candidates."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        now_provider: Callable[[], datetime] | None = None,
        signal_store: ResurfacingSignalStore | None = None,
        event_recorder: EventRecorder | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            session_factory: Factory producing SQLAlchemy sessions.
            now_provider: Clock used for scoring (defaults to UTC now).
            signal_store: Signal persistence (defaults to a new store).
            event_recorder: Event persistence (defaults to a new recorder).
        """
        self._session_factory = session_factory
        self._now_provider = now_provider or utc_now
        self._signal_store = signal_store or ResurfacingSignalStore()
        self._event_recorder = event_recorder or EventRecorder()

    def evaluate_thought(self, thought_id: str) -> EvaluatedSignal:
        """Score one thought of any status and refresh its signal."""
        payload = _validate(_EvaluateThoughtInput, thought_id=thought_id)
        now = to_utc(self._now_provider())

        with transaction(self._session_factory) as session:
            rows = _fetch_scoring_rows(session, Thought.id == str(payload.thought_id))
            if not rows:
                raise ItemNotFound(
                    f"Thought not found: {payload.thought_id}",
                    details={"thought_id": str(payload.thought_id)},
                )
            row = rows[0]
            score_result = _score_row(row, now)
            self._signal_store.upsert(session, row.id, score_result, now)

        return EvaluatedSignal(
            thought_id=row.id,
            score=score_result.score,
            reason=score_result.reason,
            last_evaluated_at=now,
        )

    def get_top_candidates(
        self,
        user_id: str,
        limit: int,
        *,
        emit_events: bool = True,
        event_source: str | None = None,
    ) -> list[ResurfacingCandidate]:
        """Return a user's top-ranked CAPTURED thoughts in their own transaction."""
        now = to_utc(self._now_provider())
        with transaction(self._session_factory) as session:
            return self.get_top_candidates_in_session(
                session,
                user_id,
                limit,
                now=now,
                emit_events=emit_events,
                event_source=event_source,
            )

    def get_top_candidates_in_session(
        self,
        session: Session,
        user_id: str,
        limit: int,
        *,
        now: datetime,
        emit_events: bool = True,
        event_source: str | None = None,
    ) -> list[ResurfacingCandidate]:
        """Rank a user's CAPTURED thoughts inside a caller-owned transaction.

        Every evaluated thought gets its signal refreshed, not only the ones
        that make the cut. Ties keep fetch order (oldest first, then id).
        When emit_events is set, winners outside the recent window are
        stamped with a RESURFACED event tagged with event_source.
        """
        payload = _validate(_TopCandidatesInput, user_id=user_id, limit=limit)
        source = event_source or settings.resurfacing.interactive_event_source
        timestamp = to_utc(now)

        rows = _fetch_scoring_rows(
            session,
            Thought.user_id == str(payload.user_id),
            Thought.status == ELIGIBLE_STATUS,
        )
        evaluated = [(row, _score_row(row, timestamp)) for row in rows]
        for row, score_result in evaluated:
            self._signal_store.upsert(session, row.id, score_result, timestamp)

        ranked = sorted(evaluated, key=lambda item: item[1].score, reverse=True)
        top = [_to_candidate(row, score_result) for row, score_result in ranked[: payload.limit]]

        if emit_events and top:
            fresh = [
                candidate
                for candidate in top
                if not is_within_recent_window(candidate.last_resurfaced_at, timestamp)
            ]
            created = self._event_recorder.record_many(
                session,
                to_event_inputs(fresh),
                source=source,
                now=timestamp,
            )
            logger.info(
                "Resurfacing events emitted: user_id=%s candidates=%s created=%s source=%s",
                payload.user_id,
                len(top),
                created,
                source,
            )

        logger.debug(
            "Resurfacing candidates ranked: user_id=%s evaluated=%s returned=%s",
            payload.user_id,
            len(evaluated),
            len(top),
        )
        return top


def to_event_inputs(candidates: Sequence[ResurfacingCandidate]) -> list[ResurfacedEventInput]:
    """Project candidates onto event payloads."""
    return [
        ResurfacedEventInput(
            thought_id=candidate.thought_id,
            score=candidate.score,
            reason=candidate.reason,
        )
        for candidate in candidates
    ]


def _validate(model: type[BaseModel], **values: Any) -> Any:
    """Validate inputs, converting pydantic errors to ValidationFailure."""
    try:
        return model(**values)
    except ValidationError as exc:
        raise ValidationFailure(
            f"Invalid resurfacing input: {exc.errors(include_url=False)}",
            details={"fields": sorted({str(err["loc"][0]) for err in exc.errors()})},
        ) from exc


def _fetch_scoring_rows(session: Session, *criteria: Any) -> list[Any]:
    """Read thoughts with reminder presence and latest resurfacing in one query."""
    last_resurfaced_at = (
        select(func.max(ThoughtEvent.created_at))
        .where(
            ThoughtEvent.thought_id == Thought.id,
            ThoughtEvent.event_type == RESURFACED_EVENT_TYPE,
        )
        .correlate(Thought)
        .scalar_subquery()
    )
    has_reminder = exists().where(Reminder.thought_id == Thought.id).correlate(Thought)
    statement = (
        select(
            Thought.id,
            Thought.user_id,
            Thought.original_text,
            Thought.cleaned_text,
            Thought.created_at,
            Thought.urgency_level,
            Thought.status,
            has_reminder.label("has_reminder"),
            last_resurfaced_at.label("last_resurfaced_at"),
        )
        .where(*criteria)
        .order_by(Thought.created_at.asc(), Thought.id.asc())
    )
    return list(session.execute(statement).all())


def _score_row(row: Any, now: datetime) -> ScoreResult:
    return compute_resurfacing_score(
        created_at=to_utc(row.created_at),
        urgency_level=row.urgency_level,
        has_reminder=bool(row.has_reminder),
        status=row.status,
        last_resurfaced_at=_optional_utc(row.last_resurfaced_at),
        now=now,
    )


def _to_candidate(row: Any, score_result: ScoreResult) -> ResurfacingCandidate:
    return ResurfacingCandidate(
        thought_id=row.id,
        user_id=row.user_id,
        text=row.cleaned_text or row.original_text,
        created_at=to_utc(row.created_at),
        urgency_level=row.urgency_level,
        status=row.status,
        has_reminder=bool(row.has_reminder),
        last_resurfaced_at=_optional_utc(row.last_resurfaced_at),
        score=score_result.score,
        reason=score_result.reason,
    )


def _optional_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return to_utc(value)
