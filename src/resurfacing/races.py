"""Helpers for writes that may race with concurrent thought deletion."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Callable, Iterator, Sequence, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from resurfacing.errors import ReferentialRace
from services.database import is_foreign_key_violation

logger = logging.getLogger(__name__)

RowT = TypeVar("RowT")


@contextmanager
def race_guarded_savepoint(session: Session, *, context: str) -> Iterator[None]:
    """Run a block in a SAVEPOINT, raising ReferentialRace on FK violations.

    The savepoint is rolled back on any error so the enclosing transaction
    stays usable. Errors other than a foreign-key violation propagate as-is.
    """
    try:
        with session.begin_nested():
            yield
    except IntegrityError as exc:
        if not is_foreign_key_violation(exc):
            raise
        raise ReferentialRace(
            f"Referenced thought no longer exists: {context}",
            details={"context": context},
        ) from exc


def insert_with_row_fallback(
    rows: Sequence[RowT],
    *,
    insert_batch: Callable[[Sequence[RowT]], None],
    insert_one: Callable[[RowT], None],
) -> int:
    """Insert rows as one batch, degrading to row-by-row on a ReferentialRace.

    Both callables must raise ReferentialRace for a referential-integrity
    violation and leave the caller's transaction usable. In the per-row pass a
    ReferentialRace skips only that row; any other error aborts the operation.

    Returns:
        Number of rows actually inserted.
    """
    if not rows:
        return 0
    try:
        insert_batch(rows)
        return len(rows)
    except ReferentialRace:
        logger.info(
            "Batch insert hit a concurrent delete; retrying row by row: rows=%s",
            len(rows),
        )

    inserted = 0
    for row in rows:
        try:
            insert_one(row)
        except ReferentialRace as exc:
            logger.info("Skipping row for deleted thought: %s", exc.details.get("context"))
            continue
        inserted += 1
    return inserted
