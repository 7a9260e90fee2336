"""Data models for the resurfacing engine."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import declarative_base

# SQLAlchemy base
Base = declarative_base()

URGENCY_LEVELS = ("LOW", "MEDIUM", "HIGH")
THOUGHT_STATUSES = ("CAPTURED", "PLANNED", "COMPLETED", "ARCHIVED")
REMINDER_STATUSES = ("PENDING", "SENT", "CANCELED")
THOUGHT_EVENT_TYPES = ("CAPTURED", "RESURFACED", "STATUS_CHANGED")

UrgencyLevelEnum = Enum(*URGENCY_LEVELS, name="urgency_level", native_enum=False)
ThoughtStatusEnum = Enum(*THOUGHT_STATUSES, name="thought_status", native_enum=False)
ReminderStatusEnum = Enum(*REMINDER_STATUSES, name="reminder_status", native_enum=False)
ThoughtEventTypeEnum = Enum(*THOUGHT_EVENT_TYPES, name="thought_event_type", native_enum=False)


def _new_id() -> str:
    """Generate a string UUID primary key."""
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """Owner of captured thoughts."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String(320), nullable=False, unique=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class Thought(Base):
    """A captured unit of user input."""

    __tablename__ = "thoughts"
    __table_args__ = (Index("ix_thoughts_user_status", "user_id", "status"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    original_text = Column(Text, nullable=False)
    cleaned_text = Column(Text, nullable=True)
    urgency_level = Column(UrgencyLevelEnum, nullable=False, default="MEDIUM")
    status = Column(ThoughtStatusEnum, nullable=False, default="CAPTURED")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class Reminder(Base):
    """Scheduled reminder attached to a thought."""

    __tablename__ = "reminders"

    id = Column(String(36), primary_key=True, default=_new_id)
    thought_id = Column(
        String(36),
        ForeignKey("thoughts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    scheduled_for = Column(DateTime(timezone=True), nullable=False)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    status = Column(ReminderStatusEnum, nullable=False, default="PENDING")
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class ThoughtEvent(Base):
    """Append-only lifecycle event for a thought."""

    __tablename__ = "thought_events"
    __table_args__ = (
        Index("ix_thought_events_thought_type_created", "thought_id", "event_type", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    thought_id = Column(
        String(36),
        ForeignKey("thoughts.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type = Column(ThoughtEventTypeEnum, nullable=False)
    # "metadata" is reserved on declarative classes.
    event_metadata = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class ResurfacingSignal(Base):
    """Latest resurfacing score for a thought, overwritten on each evaluation."""

    __tablename__ = "resurfacing_signals"
    __table_args__ = (UniqueConstraint("thought_id", name="uq_resurfacing_signals_thought_id"),)

    id = Column(String(36), primary_key=True, default=_new_id)
    thought_id = Column(
        String(36),
        ForeignKey("thoughts.id", ondelete="CASCADE"),
        nullable=False,
    )
    score = Column(Float, nullable=False)
    reason = Column(Text, nullable=False)
    last_evaluated_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


def _ensure_aware_timestamp(value: datetime | None) -> datetime | None:
    """Normalize timestamps to UTC when timezone info is missing."""
    if value is None:
        return None
    if value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


@event.listens_for(Thought, "load")
def _normalize_thought_on_load(target: Thought, _context: object) -> None:
    """Ensure loaded thought timestamps retain timezone awareness."""
    target.created_at = _ensure_aware_timestamp(target.created_at)
    target.updated_at = _ensure_aware_timestamp(target.updated_at)


@event.listens_for(ThoughtEvent, "load")
def _normalize_thought_event_on_load(target: ThoughtEvent, _context: object) -> None:
    """Ensure loaded event timestamps retain timezone awareness."""
    target.created_at = _ensure_aware_timestamp(target.created_at)


@event.listens_for(ResurfacingSignal, "load")
def _normalize_signal_on_load(target: ResurfacingSignal, _context: object) -> None:
    """Ensure loaded signal timestamps retain timezone awareness."""
    target.last_evaluated_at = _ensure_aware_timestamp(target.last_evaluated_at)
