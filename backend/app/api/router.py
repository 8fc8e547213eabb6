"""API router aggregator.

Auth endpoints live at /auth/... without a version prefix: the consume URL
is embedded in emails already sitting in inboxes and must stay stable.
"""

from fastapi import APIRouter

from app.api import auth_magic_link

router = APIRouter()

# =============================================================================
# Authentication
# =============================================================================

_AUTH_PREFIX = "/auth"

router.include_router(auth_magic_link.router, prefix=_AUTH_PREFIX, tags=["auth"])
