"""Repository for MigratedRecord operations.

Records imported from the previous system are matched to identities by
email. claim_unclaimed_for_email() flips every matching row in a single
UPDATE, so a batch is claimed completely or not at all.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.migrated_record import MigratedRecord


class MigratedRecordRepository:
    """Stateless repository for MigratedRecord table operations.

    All methods are static; there is no instance state. Pass an AsyncSession
    for every call so the caller controls transaction boundaries.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        owner_email: str,
        source_system: str | None = None,
        payload: dict[str, Any] | None = None,
    ) -> MigratedRecord:
        """Store an imported record awaiting its owner.

        Args:
            db: Async database session.
            owner_email: Owner's email in the previous system.
            source_system: Name of the previous system.
            payload: Imported fields.

        Returns:
            Created MigratedRecord with database-generated fields populated.
        """
        record = MigratedRecord(
            owner_email=owner_email.strip(),
            source_system=source_system,
            payload=payload,
        )
        db.add(record)
        await db.flush()
        await db.refresh(record)
        return record

    @staticmethod
    async def claim_unclaimed_for_email(
        db: AsyncSession,
        *,
        email: str,
        user_id: uuid.UUID,
        claimed_at: datetime,
    ) -> list[uuid.UUID]:
        """Assign every unclaimed record for an email to a user.

        Rows already claimed are excluded by the WHERE clause, which makes
        the call idempotent and keeps claimed_by_user_id immutable. A
        concurrent claimer blocks on the row locks and then skips the rows
        this call flipped.

        Args:
            db: Async database session.
            email: Lowercase email to match against owner_email.
            user_id: Claiming identity.
            claimed_at: Claim timestamp.

        Returns:
            IDs of the records claimed by this call.
        """
        stmt = (
            update(MigratedRecord)
            .where(
                func.lower(MigratedRecord.owner_email) == email.lower(),
                MigratedRecord.claimed.is_(False),
            )
            .values(
                claimed=True,
                claimed_by_user_id=user_id,
                claimed_at=claimed_at,
            )
            .returning(MigratedRecord.id)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def count_claimed_by_user(db: AsyncSession, user_id: uuid.UUID) -> int:
        """Count records claimed by a user.

        Args:
            db: Async database session.
            user_id: Claiming identity.

        Returns:
            Number of claimed records.
        """
        stmt = (
            select(func.count())
            .select_from(MigratedRecord)
            .where(MigratedRecord.claimed_by_user_id == user_id)
        )
        result = await db.execute(stmt)
        return result.scalar_one()
