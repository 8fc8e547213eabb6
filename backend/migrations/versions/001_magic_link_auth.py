"""Create users, magic_tokens and migrated_records.

Revision ID: 001_magic_link_auth
Revises:
Create Date: 2026-10-18

- users: one row per verified email, created on first magic link consumption.
- magic_tokens: SHA-256 digests of emailed tokens, single-use.
- migrated_records: imported data waiting to be claimed by its owner.
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision: str = "001_magic_link_auth"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # pgcrypto provides gen_random_uuid() for UUID primary keys
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    # =========================================================================
    # users
    # =========================================================================
    op.create_table(
        "users",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("email", sa.String(254), unique=True, nullable=False),
        sa.Column("email_verified", sa.DateTime(timezone=True), nullable=True),
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
    )

    # =========================================================================
    # magic_tokens
    # =========================================================================
    op.create_table(
        "magic_tokens",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("token_digest", sa.String(64), unique=True, nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("request_ip", sa.String(64), nullable=True),
        sa.Column("request_user_agent", sa.String(512), nullable=True),
    )
    op.create_index("ix_magic_tokens_email", "magic_tokens", ["email"])
    # Purge job scans by expiry
    op.create_index("ix_magic_tokens_expires_at", "magic_tokens", ["expires_at"])

    # =========================================================================
    # migrated_records
    # =========================================================================
    op.create_table(
        "migrated_records",
        sa.Column(
            "id",
            UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column("owner_email", sa.String(254), nullable=False),
        sa.Column(
            "claimed",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column(
            "claimed_by_user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("source_system", sa.String(50), nullable=True),
        sa.Column("payload", JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint(
            "claimed = false OR claimed_by_user_id IS NOT NULL",
            name="ck_migrated_records_claimed_has_owner",
        ),
    )
    op.create_index(
        "ix_migrated_records_owner_email_lower",
        "migrated_records",
        [sa.text("lower(owner_email)")],
    )
    op.create_index(
        "ix_migrated_records_claimed_by_user_id",
        "migrated_records",
        ["claimed_by_user_id"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_migrated_records_claimed_by_user_id", table_name="migrated_records"
    )
    op.drop_index("ix_migrated_records_owner_email_lower", table_name="migrated_records")
    op.drop_table("migrated_records")

    op.drop_index("ix_magic_tokens_expires_at", table_name="magic_tokens")
    op.drop_index("ix_magic_tokens_email", table_name="magic_tokens")
    op.drop_table("magic_tokens")

    op.drop_table("users")
