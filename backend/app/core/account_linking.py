"""Identity resolution for magic link sign-in.

Called only after a magic link has been consumed, which proves control of
the inbox. Creating identities here rather than when the link is requested
keeps the request endpoint free of side effects that could reveal which
emails already have accounts.

Rules:
1. If a user with this email exists → returning user
2. Otherwise → insert one, tolerating a concurrent insert of the same email
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class IdentityResolutionError(Exception):
    """Raised when no user row can be read back after insert-if-absent.

    Only reachable if the row that won the race was deleted before this
    transaction could see it.
    """


async def resolve_or_create_user(
    *,
    db: AsyncSession,
    email: str,
) -> tuple[User, bool]:
    """Find or create the user for a verified email.

    Args:
        db: Async database session.
        email: Email address proven by a consumed magic link.

    Returns:
        Tuple of (User, created) where created is True if a new user was made.

    Raises:
        IdentityResolutionError: If the user cannot be read back.
    """
    # Normalize email early for consistent matching
    email = email.strip().lower()

    # Check existing first (common path, avoids the insert round trip)
    existing_user = await UserRepository.get_by_email(db, email)
    if existing_user is not None:
        logger.info(
            "Returning magic link user",
            extra={"user_id": str(existing_user.id)},
        )
        return existing_user, False

    new_user_id = await UserRepository.insert_if_absent(
        db,
        email=email,
        email_verified=datetime.now(UTC),
    )

    # Either our insert or a concurrent one created the row
    user = await UserRepository.get_by_email(db, email)
    if user is None:
        msg = "User row missing after insert-if-absent"
        raise IdentityResolutionError(msg)

    created = new_user_id is not None
    if created:
        logger.info(
            "Created new user from magic link",
            extra={"user_id": str(user.id)},
        )
    else:
        logger.info(
            "Concurrent sign-in created user first",
            extra={"user_id": str(user.id)},
        )
    return user, created
