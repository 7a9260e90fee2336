"""Persistence for per-thought resurfacing signals."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import ResurfacingSignal
from resurfacing.errors import ReferentialRace
from resurfacing.races import race_guarded_savepoint
from resurfacing.scoring import ScoreResult
from services.database import is_unique_violation
from time_utils import to_utc

logger = logging.getLogger(__name__)


class ResurfacingSignalStore:
    """Idempotent upsert of the latest score for a thought.

    At most one signal row exists per thought (unique on ``thought_id``).
    Writes are update-then-insert: a later evaluation overwrites an earlier
    one in place.
    """

    def upsert(
        self,
        session: Session,
        thought_id: str,
        score_result: ScoreResult,
        now: datetime,
    ) -> bool:
        """Write the signal for a thought.

        Returns:
            True if a signal row was written, False if the thought was deleted
            before the insert could land.
        """
        timestamp = to_utc(now)
        if self._update(session, thought_id, score_result, timestamp):
            return True

        try:
            with race_guarded_savepoint(session, context=f"signal thought_id={thought_id}"):
                session.add(
                    ResurfacingSignal(
                        thought_id=thought_id,
                        score=score_result.score,
                        reason=score_result.reason,
                        last_evaluated_at=timestamp,
                        created_at=timestamp,
                        updated_at=timestamp,
                    )
                )
                session.flush()
        except ReferentialRace:
            logger.debug("Signal skipped for deleted thought: thought_id=%s", thought_id)
            return False
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            # Another evaluator inserted first; overwrite with this evaluation.
            return self._update(session, thought_id, score_result, timestamp)
        return True

    def _update(
        self,
        session: Session,
        thought_id: str,
        score_result: ScoreResult,
        timestamp: datetime,
    ) -> bool:
        """Update the signal in place; return True if a row matched."""
        result = session.execute(
            update(ResurfacingSignal)
            .where(ResurfacingSignal.thought_id == thought_id)
            .values(
                score=score_result.score,
                reason=score_result.reason,
                last_evaluated_at=timestamp,
                updated_at=timestamp,
            )
        )
        return result.rowcount > 0
