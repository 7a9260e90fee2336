"""Create users, thoughts, reminders, thought events and resurfacing signals.

Revision ID: 0001_initial
Revises:
Create Date: 2026-03-01 00:00:00.000000

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

_URGENCY = sa.Enum("LOW", "MEDIUM", "HIGH", name="urgency_level", native_enum=False)
_STATUS = sa.Enum(
    "CAPTURED", "PLANNED", "COMPLETED", "ARCHIVED", name="thought_status", native_enum=False
)
_REMINDER_STATUS = sa.Enum("PENDING", "SENT", "CANCELED", name="reminder_status", native_enum=False)
_EVENT_TYPE = sa.Enum(
    "CAPTURED", "RESURFACED", "STATUS_CHANGED", name="thought_event_type", native_enum=False
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_table(
        "thoughts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("original_text", sa.Text(), nullable=False),
        sa.Column("cleaned_text", sa.Text(), nullable=True),
        sa.Column("urgency_level", _URGENCY, nullable=False),
        sa.Column("status", _STATUS, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_thoughts_user_status", "thoughts", ["user_id", "status"], unique=False)
    op.create_table(
        "reminders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("thought_id", sa.String(length=36), nullable=False),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", _REMINDER_STATUS, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["thought_id"], ["thoughts.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_reminders_thought_id", "reminders", ["thought_id"], unique=False)
    op.create_table(
        "thought_events",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("thought_id", sa.String(length=36), nullable=False),
        sa.Column("event_type", _EVENT_TYPE, nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["thought_id"], ["thoughts.id"], ondelete="CASCADE"),
    )
    op.create_index(
        "ix_thought_events_thought_type_created",
        "thought_events",
        ["thought_id", "event_type", "created_at"],
        unique=False,
    )
    op.create_table(
        "resurfacing_signals",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("thought_id", sa.String(length=36), nullable=False),
        sa.Column("score", sa.Float(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("last_evaluated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["thought_id"], ["thoughts.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("thought_id", name="uq_resurfacing_signals_thought_id"),
    )


def downgrade() -> None:
    op.drop_table("resurfacing_signals")
    op.drop_index("ix_thought_events_thought_type_created", table_name="thought_events")
    op.drop_table("thought_events")
    op.drop_index("ix_reminders_thought_id", table_name="reminders")
    op.drop_table("reminders")
    op.drop_index("ix_thoughts_user_status", table_name="thoughts")
    op.drop_table("thoughts")
    op.drop_table("users")
