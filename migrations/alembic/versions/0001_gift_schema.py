"""Gift schema - users, counters, gifts

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the foundational MemoryHaze schema: user accounts with their
sequential public ids, the named counter table backing those ids, and gift
requests with their lifecycle and access columns.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # ==========================================================================
    # users table
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("public_id", sa.String(32), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("public_id", name="uq_users_public_id"),
        sa.CheckConstraint("public_id LIKE 'usr-%'", name="ck_users_public_id_format"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # ==========================================================================
    # counters table
    # ==========================================================================
    op.create_table(
        "counters",
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("seq", sa.Integer(), server_default="0", nullable=False),
        sa.PrimaryKeyConstraint("name"),
        sa.CheckConstraint("seq >= 0", name="ck_counters_seq_non_negative"),
    )

    # ==========================================================================
    # gifts table
    # ==========================================================================
    op.create_table(
        "gifts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        # Submission
        sa.Column("recipient_name", sa.Text(), nullable=False),
        sa.Column("occasion", sa.String(32), nullable=True),
        sa.Column("occasion_date", sa.Date(), nullable=True),
        sa.Column("scenarios", sa.JSON(), nullable=False),
        sa.Column("song_genre", sa.Text(), server_default="", nullable=False),
        sa.Column("photos", sa.JSON(), nullable=False),
        sa.Column("photo_public_ids", sa.JSON(), nullable=False),
        sa.Column("plan", sa.String(32), nullable=True),
        sa.Column("message", sa.Text(), server_default="", nullable=False),
        # Legacy / derived
        sa.Column("memory", sa.String(32), nullable=True),
        sa.Column("template_id", sa.String(32), nullable=True),
        # Completion
        sa.Column("audio", sa.Text(), nullable=True),
        sa.Column("audio_public_id", sa.Text(), nullable=True),
        sa.Column("lyrics", sa.Text(), server_default="", nullable=False),
        # Workflow
        sa.Column("status", sa.String(32), server_default="pending", nullable=False),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("access_enabled", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(
            "permanently_deleted", sa.Boolean(), server_default=sa.false(), nullable=False
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_gifts_user_id",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'verified', 'completed', 'rejected')",
            name="ck_gifts_status",
        ),
        sa.CheckConstraint(
            "occasion IS NULL OR occasion IN ('birthday', 'anniversary', 'valentines')",
            name="ck_gifts_occasion",
        ),
        sa.CheckConstraint(
            "memory IS NULL OR memory IN ('birthday', 'anniversary', 'valentines')",
            name="ck_gifts_memory",
        ),
        sa.CheckConstraint(
            "plan IS NULL OR plan IN ('momentum', 'everlasting')",
            name="ck_gifts_plan",
        ),
        sa.CheckConstraint(
            "template_id IS NULL OR template_id IN ('minimalist-love', 'grand-anniversary', "
            "'birthday-celebration', 'romantic-evening')",
            name="ck_gifts_template_id",
        ),
        # A tombstoned gift never has access
        sa.CheckConstraint(
            "NOT (permanently_deleted AND access_enabled)",
            name="ck_gifts_tombstone_no_access",
        ),
    )
    op.create_index("ix_gifts_user_id_created_at", "gifts", ["user_id", "created_at"])
    op.create_index("ix_gifts_status", "gifts", ["status"])


def downgrade() -> None:
    # Drop tables in reverse order (respecting foreign key dependencies)
    op.drop_index("ix_gifts_status", table_name="gifts")
    op.drop_index("ix_gifts_user_id_created_at", table_name="gifts")
    op.drop_table("gifts")
    op.drop_table("counters")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
