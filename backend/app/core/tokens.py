"""Magic link token generation and digesting.

Raw tokens go into the emailed link and nowhere else; the database only
ever sees the digest. A leaked magic_tokens table therefore cannot be
replayed.
"""

import hashlib
import secrets
from typing import NamedTuple

# 32 bytes = 256 bits of entropy; token_urlsafe emits no '=' padding
_TOKEN_BYTES = 32

# Upper bound accepted by the consume endpoint before any store lookup
MAX_RAW_TOKEN_LENGTH = 512


class IssuedToken(NamedTuple):
    """A freshly generated token.

    Attributes:
        raw: URL-safe token for the emailed link. Never persisted.
        digest: Hex SHA-256 of ``raw``, the only form that is stored.
    """

    raw: str
    digest: str


def digest_token(raw: str) -> str:
    """Compute the storage digest of a raw token.

    Args:
        raw: Raw token as received in the link.

    Returns:
        64-character lowercase hex SHA-256 digest.
    """
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def generate_token() -> IssuedToken:
    """Generate a magic link token and its digest."""
    raw = secrets.token_urlsafe(_TOKEN_BYTES)
    return IssuedToken(raw=raw, digest=digest_token(raw))


def is_plausible_token(raw: str | None) -> bool:
    """Cheap shape check applied before touching the database."""
    if not raw:
        return False
    return len(raw) <= MAX_RAW_TOKEN_LENGTH
