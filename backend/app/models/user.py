"""User model - the authenticated identity.

Users are created lazily, the first time a magic link for their email is
consumed. Nothing creates a user when a link is merely requested.
"""

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import String, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin

if TYPE_CHECKING:
    from app.models.migrated_record import MigratedRecord

_DEFAULT_UUID = text("gen_random_uuid()")


class User(Base, TimestampMixin):
    """User identity for authentication.

    Attributes:
        id: UUID primary key, stable for the lifetime of the account.
        email: Unique lowercase email address.
        email_verified: Timestamp when control of the inbox was proven.
        created_at: Account creation timestamp (from TimestampMixin).
        updated_at: Last modification timestamp (from TimestampMixin).
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(254),
        unique=True,
        nullable=False,
    )
    email_verified: Mapped[datetime | None] = mapped_column(
        nullable=True,
    )

    # Relationships
    claimed_records: Mapped[list["MigratedRecord"]] = relationship(
        "MigratedRecord",
        back_populates="claimed_by",
    )
