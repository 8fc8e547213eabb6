"""Session credential helpers: JWT creation/verification and cookie handling.

Shared utilities used by the magic link endpoints and auth dependencies.

Pipeline:
- create_session_jwt / set_session_cookie: session issuance after sign-in
- decode_session_jwt: verification for authenticated requests
- clear_session_cookie: logout
"""

import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt
from fastapi import Response

from app.core.config import settings

_ALGORITHM = "HS256"

# Random session id (jti) reserved for server-side revocation lists
_SESSION_ID_BYTES = 16

_REQUIRED_CLAIMS = ["sub", "iat", "exp", "jti"]


class InvalidSessionError(Exception):
    """Session credential failed verification.

    Raised for bad signatures, expired credentials, wrong audience/issuer,
    missing claims, and anything that is not a JWT at all. Callers must not
    surface the reason to clients.
    """


@dataclass(frozen=True)
class SessionClaims:
    """Verified contents of a session credential.

    Attributes:
        subject: User id the session belongs to.
        issued_at: When the session was issued.
        expires_at: When the session stops being accepted.
        session_id: Random per-session nonce (jti).
    """

    subject: str
    issued_at: datetime
    expires_at: datetime
    session_id: str


def create_session_jwt(
    *,
    user_id: str,
    secret: str,
    lifetime: timedelta | None = None,
    now: datetime | None = None,
) -> str:
    """Create a signed session JWT.

    Args:
        user_id: User UUID string for the sub claim.
        secret: HMAC signing secret.
        lifetime: Time until expiration. Defaults to the configured
            session lifetime.
        now: Issue time. Defaults to the current time.

    Returns:
        Encoded JWT string.

    Raises:
        ValueError: If no signing secret is configured.
    """
    if not secret:
        msg = "Session signing secret is not configured (set AUTH_SECRET)"
        raise ValueError(msg)

    issued_at = now or datetime.now(UTC)
    payload = {
        "sub": user_id,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "iat": issued_at,
        "exp": issued_at
        + (lifetime or timedelta(seconds=settings.session_ttl_seconds)),
        "jti": secrets.token_urlsafe(_SESSION_ID_BYTES),
    }
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def decode_session_jwt(token: str, *, secret: str) -> SessionClaims:
    """Verify a session JWT and return its claims.

    Expiry is always checked against the server clock; nothing in the
    credential is trusted before the signature verifies.

    Args:
        token: Encoded JWT from the session cookie.
        secret: HMAC signing secret.

    Returns:
        Verified SessionClaims.

    Raises:
        InvalidSessionError: For any verification failure.
    """
    if not secret:
        raise InvalidSessionError("Session signing secret is not configured")

    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[_ALGORITHM],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
            options={"require": _REQUIRED_CLAIMS},
        )
    except jwt.InvalidTokenError as exc:
        raise InvalidSessionError(str(exc)) from exc

    sub = payload["sub"]
    jti = payload["jti"]
    if not isinstance(sub, str) or not isinstance(jti, str):
        raise InvalidSessionError("Malformed session claims")

    return SessionClaims(
        subject=sub,
        issued_at=datetime.fromtimestamp(payload["iat"], UTC),
        expires_at=datetime.fromtimestamp(payload["exp"], UTC),
        session_id=jti,
    )


def set_session_cookie(response: Response, token: str) -> None:
    """Set the session cookie on a response.

    Security: the __Host- name prefix makes browsers reject the cookie
    unless it is Secure, Path=/ and has no Domain, which pins it to the
    exact issuing origin. httpOnly keeps it away from scripts; SameSite=Lax
    still lets the emailed link (a top-level navigation) carry it.

    Args:
        response: FastAPI response object.
        token: Session JWT string.
    """
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_ttl_seconds,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    """Delete the session cookie.

    Attributes must match set_session_cookie() for the browser to delete it.

    Args:
        response: FastAPI response object.
    """
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        secure=True,
        httponly=True,
        samesite="lax",
    )
