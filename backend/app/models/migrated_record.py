"""Migrated record model - data imported before its owner had an account.

Rows are created by the import process and claimed, exactly once, when a
magic link for the owner's email is consumed. Claimed rows never change
owner again.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base

if TYPE_CHECKING:
    from app.models.user import User

_DEFAULT_UUID = text("gen_random_uuid()")


class MigratedRecord(Base):
    """Record imported from a prior system, awaiting its owner.

    Attributes:
        id: UUID primary key.
        owner_email: Email of the owner in the prior system. Matched
            case-insensitively.
        claimed: Whether an identity has claimed this record.
        claimed_by_user_id: Claiming identity. Non-null once claimed.
        claimed_at: When the claim happened.
        source_system: Name of the system the record was imported from.
        payload: Imported profile fields (name, phone, ...).
        created_at: Import timestamp.
    """

    __tablename__ = "migrated_records"
    __table_args__ = (
        CheckConstraint(
            "claimed = false OR claimed_by_user_id IS NOT NULL",
            name="ck_migrated_records_claimed_has_owner",
        ),
        Index(
            "ix_migrated_records_owner_email_lower",
            func.lower(text("owner_email")),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    owner_email: Mapped[str] = mapped_column(
        String(254),
        nullable=False,
    )
    claimed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("false"),
        default=False,
    )
    claimed_by_user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    claimed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    source_system: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )
    payload: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Relationships
    claimed_by: Mapped["User | None"] = relationship(
        "User",
        back_populates="claimed_records",
    )
