"""Initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "draw_sessions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("setup", "drawing", "completed", name="session_status"),
            nullable=False,
            server_default="setup",
        ),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column("organizer_telegram_id", sa.BigInteger(), nullable=True),
        sa.Column("admin_key", sa.String(), nullable=False),
        sa.Column("registration_closed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("drawn_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_draw_sessions_organizer_telegram_id", "draw_sessions", ["organizer_telegram_id"]
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("telegram_id", sa.BigInteger(), nullable=False),
        sa.Column("telegram_username", sa.String(), nullable=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("active_session_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["active_session_id"], ["draw_sessions.id"], ondelete="SET NULL"),
    )
    op.create_index("ix_users_telegram_id", "users", ["telegram_id"], unique=True)

    op.create_table(
        "participants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("telegram_id", sa.BigInteger(), nullable=True),
        sa.Column("has_drawn", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_excluded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("added_manually", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["draw_sessions.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("session_id", "name", name="uq_participants_session_name"),
    )
    op.create_index("ix_participants_session_id", "participants", ["session_id"])

    op.create_table(
        "restrictions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("giver_name", sa.String(), nullable=False),
        sa.Column("receiver_name", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["draw_sessions.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "session_id", "giver_name", "receiver_name", name="uq_restrictions_session_pair"
        ),
    )
    op.create_index("ix_restrictions_session_id", "restrictions", ["session_id"])

    op.create_table(
        "assignments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("giver_name", sa.String(), nullable=False),
        sa.Column("receiver_name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["session_id"], ["draw_sessions.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("session_id", "giver_name", name="uq_assignments_session_giver"),
    )
    op.create_index("ix_assignments_session_id", "assignments", ["session_id"])

    op.create_table(
        "admin_credentials",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_table("admin_credentials")
    op.drop_index("ix_assignments_session_id", table_name="assignments")
    op.drop_table("assignments")
    op.drop_index("ix_restrictions_session_id", table_name="restrictions")
    op.drop_table("restrictions")
    op.drop_index("ix_participants_session_id", table_name="participants")
    op.drop_table("participants")
    op.drop_index("ix_users_telegram_id", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_draw_sessions_organizer_telegram_id", table_name="draw_sessions")
    op.drop_table("draw_sessions")
    sa.Enum(name="session_status").drop(op.get_bind(), checkfirst=True)
