"""Shared dependencies for API endpoints.

Authentication dependencies: the session JWT is read from the __Host-
cookie issued by the magic link consume endpoint.

WHY DEPENDENCY INJECTION:
- Consistent auth across all endpoints
- Testable with overridden dependencies
"""

import uuid
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import InvalidSessionError, decode_session_jwt
from app.core.config import settings
from app.core.database import get_db
from app.core.errors import UnauthorizedError


def get_current_user_id(request: Request) -> uuid.UUID:
    """Get current user ID from the session cookie.

    Validation steps:
    1. Read JWT from cookie
    2. Decode + verify signature (HS256)
    3. Verify exp, aud, iss and required claims
    4. Extract sub as UUID

    Security: every failure produces the same generic 401; the reason
    (expired, bad signature, malformed) is never revealed.

    Args:
        request: HTTP request (injected by FastAPI).

    Returns:
        UUID of the current authenticated user.

    Raises:
        UnauthorizedError: 401 for any auth failure.
    """
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        raise UnauthorizedError()

    try:
        claims = decode_session_jwt(
            token, secret=settings.auth_secret.get_secret_value()
        )
        return uuid.UUID(claims.subject)
    except (InvalidSessionError, ValueError) as exc:
        raise UnauthorizedError() from exc


# Reusable type aliases for dependency injection
CurrentUserId = Annotated[uuid.UUID, Depends(get_current_user_id)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
