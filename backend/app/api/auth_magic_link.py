"""Magic link + session endpoints.

Passwordless sign-in via email magic links, current user info and logout.

Endpoints:
- POST /auth/magic/request: request magic link email
- GET /auth/magic/consume: consume token, claim records, set cookie, redirect
- GET /auth/me: return current user info
- POST /auth/logout: clear session cookie
"""

import json

from fastapi import APIRouter, BackgroundTasks, Request
from fastapi.responses import RedirectResponse
from starlette.responses import Response

from app.api.deps import CurrentUserId, DbSession
from app.core.auth import clear_session_cookie, set_session_cookie
from app.core.config import settings
from app.core.email import send_magic_link_email
from app.core.errors import UnauthorizedError
from app.core.rate_limiting import limiter
from app.core.responses import DataResponse
from app.core.side_effects import run_best_effort
from app.repositories.migrated_record_repository import MigratedRecordRepository
from app.repositories.user_repository import UserRepository
from app.services.magic_link_service import consume_magic_link, request_magic_link

router = APIRouter()

NEUTRAL_MESSAGE = "If that email is valid, we've sent a sign-in link."

# The request body only ever carries one email address
MAX_BODY_BYTES = 32 * 1024


# ===================================================================
# Request helpers
# ===================================================================


async def _read_body_capped(request: Request) -> bytes | None:
    """Read the request body, giving up past MAX_BODY_BYTES.

    The declared Content-Length is checked first; the stream is still
    counted because the header may be absent (chunked) or wrong.
    """
    declared = request.headers.get("content-length")
    if declared is not None and (
        not declared.isdigit() or int(declared) > MAX_BODY_BYTES
    ):
        return None

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > MAX_BODY_BYTES:
            return None
    return bytes(body)


async def _read_email_field(request: Request) -> object:
    """Extract ``email`` from a JSON body without ever failing.

    A body model would turn malformed input into a 400, which would make
    malformed requests distinguishable from accepted ones. Oversized
    bodies count as malformed.
    """
    body = await _read_body_capped(request)
    if body is None:
        return None
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    if isinstance(payload, dict):
        return payload.get("email")
    return None


# ===================================================================
# POST /auth/magic/request
# ===================================================================


@router.post("/magic/request")
@limiter.limit(lambda: settings.rate_limit_magic_request)
async def request_link(
    request: Request,
    background_tasks: BackgroundTasks,
    db: DbSession,
) -> DataResponse[dict]:
    """Request a magic link sign-in email.

    Body: ``{"email": "..."}``.

    Always returns the same 200 body regardless of whether the email is
    registered, malformed, or whether storage or delivery failed
    (enumeration defense).

    Email is sent as a background task after the response, through the
    best-effort runner, so delivery can neither delay nor alter it.

    Rate limit: RATE_LIMIT_MAGIC_REQUEST per client address.
    """
    email = await _read_email_field(request)

    dispatch = await request_magic_link(
        db,
        email=email,
        request_ip=request.client.host if request.client else None,
        request_user_agent=request.headers.get("user-agent"),
    )

    if dispatch is not None:
        background_tasks.add_task(
            run_best_effort,
            "magic_link_email",
            send_magic_link_email,
            to_email=dispatch.email,
            token=dispatch.token,
        )

    return DataResponse(data={"message": NEUTRAL_MESSAGE})


# ===================================================================
# GET /auth/magic/consume
# ===================================================================


@router.get("/magic/consume")
@limiter.limit(lambda: settings.rate_limit_magic_consume)
async def consume_link(
    request: Request,  # noqa: ARG001
    db: DbSession,
    token: str | None = None,
) -> RedirectResponse:
    """Consume a magic link, claim migrated records, and start a session.

    No query constraints are declared on ``token``: missing or oversized
    tokens take the same path as unknown ones and get the same 400.

    Rate limit: RATE_LIMIT_MAGIC_CONSUME per client address.
    """
    consumed = await consume_magic_link(db, raw_token=token)

    # 303: the browser follows with a GET regardless of the original method
    response = RedirectResponse(url=settings.app_landing_url, status_code=303)
    set_session_cookie(response, consumed.session_token)
    # Prevent token leakage via Referer header
    response.headers["Referrer-Policy"] = "no-referrer"
    return response


# ===================================================================
# GET /auth/me
# ===================================================================


@router.get("/me")
async def get_me(
    user_id: CurrentUserId,
    db: DbSession,
) -> DataResponse[dict]:
    """Return the signed-in user and how many migrated records they own.

    Returns 401 if no valid session cookie.
    """
    user = await UserRepository.get_by_id(db, user_id)
    if user is None:
        raise UnauthorizedError()

    claimed_count = await MigratedRecordRepository.count_claimed_by_user(db, user.id)
    return DataResponse(
        data={
            "id": str(user.id),
            "email": user.email,
            "claimed_record_count": claimed_count,
        }
    )


# ===================================================================
# POST /auth/logout
# ===================================================================


@router.post("/logout")
async def logout(response: Response) -> DataResponse[dict]:
    """Clear the session cookie.

    No auth required; the cookie is cleared regardless.
    """
    clear_session_cookie(response)
    return DataResponse(data={"message": "Signed out"})
