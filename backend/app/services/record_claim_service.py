"""Claiming of migrated records by a freshly authenticated identity.

Runs synchronously inside magic link consumption so the user lands on a
dashboard that already shows their imported data.
"""

import logging
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User
from app.repositories.migrated_record_repository import MigratedRecordRepository

logger = logging.getLogger(__name__)


async def claim_migrated_records(
    db: AsyncSession,
    *,
    user: User,
    email: str,
) -> int:
    """Attach every unclaimed migrated record for ``email`` to ``user``.

    Idempotent: a second call finds nothing left to claim and returns 0.
    The caller's transaction decides whether the claim is kept.

    Args:
        db: Async database session.
        user: Identity claiming the records.
        email: Verified email the records were imported under.

    Returns:
        Number of records claimed by this call.
    """
    claimed_ids = await MigratedRecordRepository.claim_unclaimed_for_email(
        db,
        email=email,
        user_id=user.id,
        claimed_at=datetime.now(UTC),
    )
    if claimed_ids:
        logger.info(
            "Claimed migrated records",
            extra={"user_id": str(user.id), "count": len(claimed_ids)},
        )
    return len(claimed_ids)
