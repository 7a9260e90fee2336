"""Resurfacing score computation.

score = clamp(age + urgency + reminder + status + recent, 0, 100)

Each component comes from a fixed weight table. The reason string records
every component so a persisted signal can be audited without recomputing it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from types import MappingProxyType

from resurfacing.errors import ValidationFailure
from time_utils import days_between, to_utc

AGE_CAP_DAYS = 30
AGE_PER_DAY = 1.2
URGENCY_WEIGHTS = MappingProxyType({"LOW": 4, "MEDIUM": 10, "HIGH": 18})
STATUS_WEIGHTS = MappingProxyType(
    {"CAPTURED": 12, "PLANNED": 4, "COMPLETED": -30, "ARCHIVED": -45}
)
REMINDER_PRESENT_PENALTY = -6
RECENT_RESURFACED_WINDOW_DAYS = 3
RECENT_RESURFACED_PENALTY = -20
SCORE_MIN = 0
SCORE_MAX = 100

RECENT_RESURFACED_WINDOW = timedelta(days=RECENT_RESURFACED_WINDOW_DAYS)


@dataclass(frozen=True)
class ScoreComponents:
    """Per-component contributions to a resurfacing score."""

    age: float
    urgency: int
    reminder: int
    status: int
    recent_resurfaced: int


@dataclass(frozen=True)
class ScoreResult:
    """Bounded resurfacing score with its audit breakdown."""

    score: float
    reason: str
    components: ScoreComponents


def compute_resurfacing_score(
    *,
    created_at: datetime,
    urgency_level: str,
    has_reminder: bool,
    status: str,
    last_resurfaced_at: datetime | None,
    now: datetime,
) -> ScoreResult:
    """Score a thought for resurfacing. Pure: identical inputs, identical output."""
    if urgency_level not in URGENCY_WEIGHTS:
        raise ValidationFailure(f"Unknown urgency level: {urgency_level}")
    if status not in STATUS_WEIGHTS:
        raise ValidationFailure(f"Unknown thought status: {status}")

    age_days = days_between(created_at, now)
    age_component = min(age_days, AGE_CAP_DAYS) * AGE_PER_DAY
    urgency_component = URGENCY_WEIGHTS[urgency_level]
    reminder_component = REMINDER_PRESENT_PENALTY if has_reminder else 0
    status_component = STATUS_WEIGHTS[status]
    recent_component = (
        RECENT_RESURFACED_PENALTY if is_within_recent_window(last_resurfaced_at, now) else 0
    )

    total = (
        age_component
        + urgency_component
        + reminder_component
        + status_component
        + recent_component
    )
    score = _round2(max(SCORE_MIN, min(SCORE_MAX, total)))
    reason = (
        f"age={_format_fixed2(age_component)};"
        f"urgency={urgency_component};"
        f"reminder={reminder_component};"
        f"status={status_component};"
        f"recent={recent_component};"
        f"score={_format_number(score)}"
    )
    return ScoreResult(
        score=score,
        reason=reason,
        components=ScoreComponents(
            age=_round2(age_component),
            urgency=urgency_component,
            reminder=reminder_component,
            status=status_component,
            recent_resurfaced=recent_component,
        ),
    )


def is_within_recent_window(last_resurfaced_at: datetime | None, now: datetime) -> bool:
    """Return True when the last resurfacing falls inside the suppression window."""
    if last_resurfaced_at is None:
        return False
    return to_utc(now) - to_utc(last_resurfaced_at) <= RECENT_RESURFACED_WINDOW


def parse_reason(reason: str) -> dict[str, float]:
    """Parse a reason string back into its numeric components."""
    parsed: dict[str, float] = {}
    for part in reason.split(";"):
        key, separator, value = part.partition("=")
        if not separator:
            raise ValidationFailure(f"Malformed reason segment: {part!r}")
        parsed[key] = float(value)
    return parsed


def _round2(value: float) -> float:
    """Round half-up to two decimals from the exact binary value."""
    return float(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _format_fixed2(value: float) -> str:
    return str(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def _format_number(value: float) -> str:
    """Render a number without a trailing .0 for whole values."""
    if value == int(value):
        return str(int(value))
    return repr(value)
