"""Repository for User operations.

Provides database access for the users table. Creation goes through
insert_if_absent() so two requests racing for the same new email can
never produce two identities.
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User


class UserRepository:
    """Stateless repository for User table operations.

    All methods are static; there is no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def get_by_id(db: AsyncSession, user_id: uuid.UUID) -> User | None:
        """Fetch a user by primary key.

        Args:
            db: Async database session.
            user_id: UUID primary key.

        Returns:
            User if found, None otherwise.
        """
        return await db.get(User, user_id)

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> User | None:
        """Fetch a user by email address (case-insensitive).

        Args:
            db: Async database session.
            email: Email address to look up.

        Returns:
            User if found, None otherwise.
        """
        stmt = select(User).where(User.email == email.lower())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def insert_if_absent(
        db: AsyncSession,
        *,
        email: str,
        email_verified: datetime | None = None,
    ) -> uuid.UUID | None:
        """Create a user unless one with this email already exists.

        Single INSERT ... ON CONFLICT (email) DO NOTHING. If another
        transaction is inserting the same email, PostgreSQL waits for it
        to finish and then either inserts or does nothing.

        Args:
            db: Async database session.
            email: User email address (lowercased before storage).
            email_verified: Timestamp when the email was verified.

        Returns:
            The new user's id, or None if the email was already taken.
        """
        stmt = (
            insert(User)
            .values(email=email.lower(), email_verified=email_verified)
            .on_conflict_do_nothing(index_elements=[User.email])
            .returning(User.id)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
