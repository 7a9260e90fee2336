"""Recording of resurfaced events."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from sqlalchemy import insert
from sqlalchemy.orm import Session

from models import ThoughtEvent
from resurfacing.races import insert_with_row_fallback, race_guarded_savepoint
from time_utils import to_utc

logger = logging.getLogger(__name__)

RESURFACED_EVENT_TYPE = "RESURFACED"


@dataclass(frozen=True)
class ResurfacedEventInput:
    """Minimal payload needed to stamp a resurfaced event."""

    thought_id: str
    score: float
    reason: str


class EventRecorder:
    """Append resurfaced events, tolerating concurrently deleted thoughts."""

    def record_many(
        self,
        session: Session,
        candidates: Sequence[ResurfacedEventInput],
        *,
        source: str,
        now: datetime | None = None,
    ) -> int:
        """Record one RESURFACED event per candidate.

        The whole set is inserted in one statement first. If a candidate's
        thought was deleted in the meantime, the batch is abandoned and each
        candidate is inserted on its own, skipping only the missing ones.

        Returns:
            Count of events actually created.
        """
        created_at = to_utc(now) if now is not None else None

        def build_row(candidate: ResurfacedEventInput) -> dict[str, object]:
            row: dict[str, object] = {
                "thought_id": candidate.thought_id,
                "event_type": RESURFACED_EVENT_TYPE,
                "event_metadata": {
                    "score": candidate.score,
                    "reason": candidate.reason,
                    "source": source,
                },
            }
            if created_at is not None:
                row["created_at"] = created_at
            return row

        def insert_batch(batch: Sequence[ResurfacedEventInput]) -> None:
            with race_guarded_savepoint(session, context=f"event batch size={len(batch)}"):
                session.execute(insert(ThoughtEvent), [build_row(item) for item in batch])

        def insert_one(candidate: ResurfacedEventInput) -> None:
            with race_guarded_savepoint(
                session, context=f"event thought_id={candidate.thought_id}"
            ):
                session.execute(insert(ThoughtEvent), [build_row(candidate)])

        created = insert_with_row_fallback(
            candidates,
            insert_batch=insert_batch,
            insert_one=insert_one,
        )
        logger.debug(
            "Resurfaced events recorded: source=%s requested=%s created=%s",
            source,
            len(candidates),
            created,
        )
        return created
