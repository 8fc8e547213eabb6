"""Magic token model - single-use sign-in tokens.

Stores only the SHA-256 digest of each emailed token. Rows are created by
the request endpoint, stamped exactly once (used_at) by the consume
endpoint, and never deleted inline; expiry is enforced by comparison.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import ColumnElement, DateTime, String, and_, func, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.ext.hybrid import hybrid_method
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base

_DEFAULT_UUID = text("gen_random_uuid()")


class TokenState(enum.StrEnum):
    """Lifecycle state of a stored token, derived from its timestamps."""

    ISSUED = "issued"
    USED = "used"
    EXPIRED = "expired"


class MagicToken(Base):
    """Issued magic link token.

    Attributes:
        id: UUID primary key.
        email: Recipient address, lowercase.
        token_digest: Hex SHA-256 digest of the raw token. Unique.
        expires_at: Token is invalid at and after this instant.
        created_at: Issuance timestamp.
        used_at: Consumption timestamp. NULL until consumed.
        request_ip: Requesting client address (abuse monitoring only).
        request_user_agent: Requesting user agent (abuse monitoring only).
    """

    __tablename__ = "magic_tokens"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        server_default=_DEFAULT_UUID,
    )
    email: Mapped[str] = mapped_column(
        String(254),
        nullable=False,
        index=True,
    )
    token_digest: Mapped[str] = mapped_column(
        String(64),
        unique=True,
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    used_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    request_ip: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
    )
    request_user_agent: Mapped[str | None] = mapped_column(
        String(512),
        nullable=True,
    )

    def state_at(self, now: datetime) -> TokenState:
        """Derive the token's lifecycle state at a point in time.

        A used token reports USED even after its expiry passes, so replays
        and expiries stay distinguishable in internal logs.
        """
        if self.used_at is not None:
            return TokenState.USED
        if self.expires_at <= now:
            return TokenState.EXPIRED
        return TokenState.ISSUED

    @hybrid_method
    def is_consumable(self, now: datetime) -> bool:
        """True if the token may transition ISSUED -> USED at ``now``."""
        return self.state_at(now) is TokenState.ISSUED

    @is_consumable.inplace.expression
    @classmethod
    def _is_consumable_expression(cls, now: datetime) -> ColumnElement[bool]:
        # SQL twin of state_at(now) is ISSUED; used in the atomic UPDATE
        return and_(cls.used_at.is_(None), cls.expires_at > now)
