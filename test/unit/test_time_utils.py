"""Unit tests for UTC time helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from time_utils import days_between, to_utc, utc_now


def test_utc_now_is_aware() -> None:
    """utc_now returns an aware UTC datetime."""
    assert utc_now().tzinfo == timezone.utc


def test_to_utc_treats_naive_as_utc() -> None:
    """Naive datetimes keep their wall clock and gain UTC."""
    converted = to_utc(datetime(2025, 1, 15, 12, 0, 0))

    assert converted.tzinfo == timezone.utc
    assert converted.hour == 12


def test_to_utc_converts_aware_values() -> None:
    """Aware datetimes in other zones are converted to UTC."""
    eastern = timezone(timedelta(hours=-5))
    converted = to_utc(datetime(2025, 1, 15, 12, 0, 0, tzinfo=eastern))

    assert converted.tzinfo == timezone.utc
    assert converted.hour == 17


def test_days_between_is_fractional() -> None:
    """Day counts include partial days."""
    start = datetime(2025, 1, 1, tzinfo=timezone.utc)

    assert days_between(start, start + timedelta(hours=36)) == 1.5


def test_days_between_floors_future_start_at_zero() -> None:
    """A start after the end never yields negative days."""
    end = datetime(2025, 1, 1, tzinfo=timezone.utc)

    assert days_between(end + timedelta(days=2), end) == 0.0
