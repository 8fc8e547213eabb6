"""Magic link request and consumption.

Lifecycle of a single link: requested → issued → consumed | expired | replayed.

request_magic_link() issues a token for any syntactically valid email and
reports nothing back that the HTTP layer could leak: the endpoint answers
identically whatever happens here.

consume_magic_link() runs token consumption, identity resolution and
record claiming in one transaction. If anything after the token UPDATE
fails, the transaction rolls back and the link stays usable.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from email_validator import EmailNotValidError, validate_email
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.account_linking import resolve_or_create_user
from app.core.auth import create_session_jwt
from app.core.config import settings
from app.core.errors import InvalidMagicLinkError
from app.core.tokens import digest_token, generate_token, is_plausible_token
from app.models.user import User
from app.repositories.magic_token_repository import MagicTokenRepository
from app.services.record_claim_service import claim_migrated_records

logger = logging.getLogger(__name__)

# RFC 5321 path limit
_MAX_EMAIL_LENGTH = 254


@dataclass(frozen=True)
class MagicLinkDispatch:
    """A stored token whose link still has to be emailed.

    Attributes:
        email: Normalized recipient.
        token: Raw token for the link. Never persisted.
        expires_at: When the link stops working.
    """

    email: str
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class ConsumedMagicLink:
    """Outcome of a successful consumption.

    Attributes:
        user: Signed-in identity.
        created: True if the identity was created by this consumption.
        claimed_count: Migrated records claimed by this consumption.
        session_token: Signed session JWT for the cookie.
    """

    user: User
    created: bool
    claimed_count: int
    session_token: str


def normalize_email(raw: object) -> str:
    """Trim and lowercase an email; anything that is not a string becomes ""."""
    if not isinstance(raw, str):
        return ""
    return raw.strip().lower()


def looks_like_email(email: str) -> bool:
    """Syntactic email check. No DNS or deliverability lookups.

    Args:
        email: Normalized email address.

    Returns:
        True if the address is well-formed.
    """
    if not email or len(email) > _MAX_EMAIL_LENGTH:
        return False
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


async def _rollback_quietly(db: AsyncSession) -> None:
    """Roll back, tolerating a connection that is already gone."""
    try:
        await db.rollback()
    except Exception:
        logger.warning("Rollback failed", exc_info=True)


async def request_magic_link(
    db: AsyncSession,
    *,
    email: object,
    request_ip: str | None = None,
    request_user_agent: str | None = None,
) -> MagicLinkDispatch | None:
    """Issue a magic link token for an email.

    Security: a token is generated on every path so malformed and valid
    requests do the same crypto work. Store failures are logged and
    swallowed; the caller must respond the same way regardless of the
    return value.

    Args:
        db: Async database session.
        email: Email as received from the client (any JSON value).
        request_ip: Client address, stored for abuse monitoring.
        request_user_agent: Client user agent, stored for abuse monitoring.

    Returns:
        MagicLinkDispatch to email, or None if nothing was issued.
    """
    normalized = normalize_email(email)
    issued = generate_token()

    if not looks_like_email(normalized):
        logger.info("Magic link requested for malformed email")
        return None

    expires_at = datetime.now(UTC) + timedelta(minutes=settings.magic_link_ttl_minutes)
    try:
        await MagicTokenRepository.issue(
            db,
            email=normalized,
            token_digest=issued.digest,
            expires_at=expires_at,
            request_ip=request_ip,
            request_user_agent=request_user_agent,
        )
        await db.commit()
    except Exception:
        # Any store failure, including connection errors the driver raises
        # unwrapped, must leave the response unchanged
        logger.exception("Failed to store magic link token")
        await _rollback_quietly(db)
        return None

    return MagicLinkDispatch(email=normalized, token=issued.raw, expires_at=expires_at)


async def _consume_and_claim(
    db: AsyncSession,
    *,
    token_digest: str,
    now: datetime,
) -> ConsumedMagicLink | None:
    email = await MagicTokenRepository.consume_if_valid(
        db, token_digest=token_digest, now=now
    )
    if email is None:
        return None

    user, created = await resolve_or_create_user(db=db, email=email)
    claimed_count = await claim_migrated_records(db, user=user, email=email)

    # Signed before commit: a signing failure rolls the whole consumption back
    session_token = create_session_jwt(
        user_id=str(user.id),
        secret=settings.auth_secret.get_secret_value(),
        now=now,
    )
    await db.commit()

    return ConsumedMagicLink(
        user=user,
        created=created,
        claimed_count=claimed_count,
        session_token=session_token,
    )


async def _log_rejected_token(
    db: AsyncSession, token_digest: str, now: datetime
) -> None:
    """Record why a token was rejected. Debug mode only (extra query).

    Failures here are logged and dropped; the caller still answers with
    the generic invalid-link error.
    """
    try:
        token = await MagicTokenRepository.get_by_digest(db, token_digest)
    except Exception:
        logger.warning("Could not load rejected magic link", exc_info=True)
        await _rollback_quietly(db)
        return
    state = token.state_at(now) if token is not None else "unknown"
    logger.debug("Magic link rejected", extra={"token_state": str(state)})


async def consume_magic_link(
    db: AsyncSession,
    *,
    raw_token: str | None,
    now: datetime | None = None,
) -> ConsumedMagicLink:
    """Consume a magic link and sign the user in.

    Steps (one transaction):
    1. Reject implausible tokens without touching the database
    2. Atomically mark the token used (unknown/used/expired → rejected)
    3. Resolve or create the identity for the token's email
    4. Claim migrated records for that email
    5. Sign a session credential, then commit

    Args:
        db: Async database session.
        raw_token: Token from the link's query string.
        now: Consumption instant. Defaults to the current time.

    Returns:
        ConsumedMagicLink for the signed-in user.

    Raises:
        InvalidMagicLinkError: For every failure, whatever the cause.
    """
    if raw_token is None or not is_plausible_token(raw_token):
        raise InvalidMagicLinkError()

    now = now or datetime.now(UTC)
    token_digest = digest_token(raw_token)

    try:
        consumed = await _consume_and_claim(db, token_digest=token_digest, now=now)
    except Exception:
        logger.exception(
            "Magic link consumption failed",
            extra={"token_digest_prefix": token_digest[:8]},
        )
        await _rollback_quietly(db)
        raise InvalidMagicLinkError() from None

    if consumed is None:
        await _rollback_quietly(db)
        if settings.debug_magic_link:
            await _log_rejected_token(db, token_digest, now)
        raise InvalidMagicLinkError()

    logger.info(
        "Magic link consumed",
        extra={
            "user_id": str(consumed.user.id),
            "created": consumed.created,
            "claimed_count": consumed.claimed_count,
        },
    )
    return consumed
