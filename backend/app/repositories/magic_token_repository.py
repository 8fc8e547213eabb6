"""Repository for MagicToken operations.

Single-use magic link tokens keyed by the SHA-256 digest of the raw token.
consume_if_valid() is the only place a token changes state, and it does so
in one conditional UPDATE so concurrent consumers of the same digest are
serialized by the row lock.
"""

from datetime import datetime
from typing import Any, cast

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.magic_token import MagicToken

# Matches the column width; longer user agents are truncated, not rejected
_MAX_USER_AGENT_LENGTH = 512


class MagicTokenRepository:
    """Stateless repository for MagicToken table operations.

    All methods are static; there is no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def issue(
        db: AsyncSession,
        *,
        email: str,
        token_digest: str,
        expires_at: datetime,
        request_ip: str | None = None,
        request_user_agent: str | None = None,
    ) -> MagicToken:
        """Store a newly issued token.

        Always succeeds. A digest collision overwrites the existing row
        (last write wins), including created_at, so the row describes the
        latest issue only. The primary key is kept. With 256-bit tokens a
        collision is not expected to ever happen.

        Args:
            db: Async database session.
            email: Recipient address (lowercased before storage).
            token_digest: SHA-256 digest of the raw token.
            expires_at: Token expiry timestamp.
            request_ip: Client address, advisory only.
            request_user_agent: Client user agent, advisory only.

        Returns:
            The stored MagicToken.
        """
        values = {
            "email": email.lower(),
            "expires_at": expires_at,
            "used_at": None,
            "request_ip": request_ip,
            "request_user_agent": (
                request_user_agent[:_MAX_USER_AGENT_LENGTH]
                if request_user_agent
                else None
            ),
        }
        stmt = (
            insert(MagicToken)
            .values(token_digest=token_digest, **values)
            .on_conflict_do_update(
                index_elements=[MagicToken.token_digest],
                set_={**values, "created_at": func.now()},
            )
            .returning(MagicToken)
            .execution_options(populate_existing=True)
        )
        result = await db.scalars(stmt)
        return result.one()

    @staticmethod
    async def consume_if_valid(
        db: AsyncSession,
        *,
        token_digest: str,
        now: datetime,
    ) -> str | None:
        """Atomically mark a token used and return its email.

        The UPDATE only matches a row that is still consumable at ``now``
        (unused and unexpired). A concurrent caller holding the same digest
        blocks on the row lock and, once the first transaction commits,
        re-evaluates the predicate against used_at and matches nothing.

        Args:
            db: Async database session.
            token_digest: SHA-256 digest of the presented raw token.
            now: Consumption instant, also written to used_at.

        Returns:
            The token's email if this call consumed it, None if the token
            is unknown, already used, or expired.
        """
        stmt = (
            update(MagicToken)
            .where(
                MagicToken.token_digest == token_digest,
                MagicToken.is_consumable(now),
            )
            .values(used_at=now)
            .returning(MagicToken.email)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def get_by_digest(
        db: AsyncSession,
        token_digest: str,
    ) -> MagicToken | None:
        """Look up a token by digest.

        Args:
            db: Async database session.
            token_digest: SHA-256 digest of the raw token.

        Returns:
            MagicToken if found, None otherwise.
        """
        stmt = select(MagicToken).where(MagicToken.token_digest == token_digest)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_expired(db: AsyncSession, *, before: datetime) -> int:
        """Delete tokens that expired before a cutoff (periodic cleanup).

        Used tokens are removed too once they are past expiry; nothing
        reads them after that point.

        Args:
            db: Async database session.
            before: Tokens with expires_at earlier than this are deleted.

        Returns:
            Number of deleted rows.
        """
        result = cast(
            CursorResult[Any],
            await db.execute(
                delete(MagicToken).where(MagicToken.expires_at < before),
            ),
        )
        row_count: int = result.rowcount
        return row_count
