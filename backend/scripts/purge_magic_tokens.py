"""Delete magic link tokens that expired long enough ago.

Standalone script, meant to run from cron or a scheduled job. Tokens are
never deleted by the request or consume paths; expiry is enforced by
comparison, so this only keeps the table from growing without bound.

Usage:
    cd backend && python -m scripts.purge_magic_tokens
"""

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.magic_token_repository import MagicTokenRepository

logger = logging.getLogger(__name__)

# Expired rows are kept this long for abuse investigations
RETENTION = timedelta(days=1)


async def purge_expired_tokens(
    session: AsyncSession,
    *,
    now: datetime | None = None,
) -> int:
    """Delete tokens whose expiry is older than the retention window.

    Args:
        session: Active async database session. Caller commits.
        now: Reference instant. Defaults to the current time.

    Returns:
        Number of deleted tokens.
    """
    cutoff = (now or datetime.now(UTC)) - RETENTION
    deleted = await MagicTokenRepository.delete_expired(session, before=cutoff)
    logger.info("Purged %d magic tokens expired before %s", deleted, cutoff)
    return deleted


async def main() -> None:
    """CLI entry point: purge against the configured database."""
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from app.core.config import settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = create_async_engine(settings.database_url, echo=False)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with factory() as session:
        await purge_expired_tokens(session)
        await session.commit()

    await engine.dispose()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
