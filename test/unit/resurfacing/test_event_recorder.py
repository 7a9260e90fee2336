"""Unit tests for resurfaced event recording."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from helpers.resurfacing_seed import (
    NOW,
    create_thought,
    create_user,
    delete_thought,
    resurfaced_events,
)
from resurfacing.errors import ReferentialRace
from resurfacing.events import EventRecorder, ResurfacedEventInput
from resurfacing.races import insert_with_row_fallback
from services.database import transaction


def _inputs(*thought_ids: str) -> list[ResurfacedEventInput]:
    return [
        ResurfacedEventInput(thought_id=thought_id, score=42.0, reason="score=42")
        for thought_id in thought_ids
    ]


def test_batch_records_one_event_per_candidate(sqlite_session_factory: sessionmaker) -> None:
    """All candidates get an event tagged with the source."""
    user_id = create_user(sqlite_session_factory)
    first = create_thought(sqlite_session_factory, user_id)
    second = create_thought(sqlite_session_factory, user_id)

    with transaction(sqlite_session_factory) as session:
        created = EventRecorder().record_many(
            session, _inputs(first, second), source="daily_resurfacing_job", now=NOW
        )

    assert created == 2
    events = resurfaced_events(sqlite_session_factory)
    assert {event.thought_id for event in events} == {first, second}
    assert all(event.event_metadata["source"] == "daily_resurfacing_job" for event in events)
    assert all(event.event_metadata["score"] == 42.0 for event in events)
    assert all(event.created_at == NOW for event in events)


def test_deleted_thought_falls_back_to_per_row_inserts(
    sqlite_session_factory: sessionmaker,
) -> None:
    """A thought deleted after selection only loses its own event."""
    user_id = create_user(sqlite_session_factory)
    survivor_a = create_thought(sqlite_session_factory, user_id)
    doomed = create_thought(sqlite_session_factory, user_id)
    survivor_b = create_thought(sqlite_session_factory, user_id)
    candidates = _inputs(survivor_a, doomed, survivor_b)

    delete_thought(sqlite_session_factory, doomed)
    with transaction(sqlite_session_factory) as session:
        created = EventRecorder().record_many(session, candidates, source="job", now=NOW)

    assert created == 2
    events = resurfaced_events(sqlite_session_factory)
    assert sorted(event.thought_id for event in events) == sorted([survivor_a, survivor_b])


def test_empty_candidates_record_nothing(sqlite_session_factory: sessionmaker) -> None:
    """No candidates means no writes and a zero count."""
    with transaction(sqlite_session_factory) as session:
        assert EventRecorder().record_many(session, [], source="job", now=NOW) == 0


def test_row_fallback_aborts_on_other_errors() -> None:
    """Only referential races are skipped in the per-row pass."""
    inserted: list[str] = []

    def insert_batch(rows):
        raise ReferentialRace("batch raced")

    def insert_one(row):
        if row == "bad":
            raise RuntimeError("disk full")
        inserted.append(row)

    with pytest.raises(RuntimeError, match="disk full"):
        insert_with_row_fallback(
            ["ok", "bad", "never"],
            insert_batch=insert_batch,
            insert_one=insert_one,
        )
    assert inserted == ["ok"]


def test_batch_errors_other_than_races_propagate() -> None:
    """A non-race batch failure is not retried row by row."""
    attempted: list[str] = []

    def insert_batch(rows):
        raise IntegrityError("INSERT", {}, Exception("CHECK constraint failed"))

    with pytest.raises(IntegrityError):
        insert_with_row_fallback(
            ["a", "b"],
            insert_batch=insert_batch,
            insert_one=attempted.append,
        )
    assert attempted == []


def test_row_fallback_counts_only_inserted_rows() -> None:
    """Skipped rows are excluded from the created count."""

    def insert_batch(rows):
        raise ReferentialRace("batch raced")

    def insert_one(row):
        if row.startswith("gone"):
            raise ReferentialRace("row raced", details={"context": row})

    created = insert_with_row_fallback(
        ["a", "gone-1", "b", "gone-2"],
        insert_batch=insert_batch,
        insert_one=insert_one,
    )

    assert created == 2
