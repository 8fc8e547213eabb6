"""Email sending via Resend API.

Simple HTTP POST to Resend for magic link emails, plain-text format.
Without a RESEND_API_KEY (local development) messages are logged instead
of sent.
"""

import logging
from urllib.parse import quote, urlencode

import httpx

from app.core.config import settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"
_RESEND_TIMEOUT = 10.0

CONSUME_PATH = "/auth/magic/consume"

MAGIC_LINK_SUBJECT = "Your secure sign-in link"


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects or fails a send."""


def build_magic_link(token: str) -> str:
    """Compose the emailed link for a raw token.

    The email address is deliberately not part of the link.

    Args:
        token: Raw (unhashed) magic link token.

    Returns:
        Absolute URL of the consume endpoint carrying the token.
    """
    params = urlencode({"token": token}, quote_via=quote)
    return f"{settings.public_base_url.rstrip('/')}{CONSUME_PATH}?{params}"


async def send_email(*, to_email: str, subject: str, text: str) -> None:
    """Send a plain-text email.

    Args:
        to_email: Recipient email address.
        subject: Subject line.
        text: Plain-text body.

    Raises:
        EmailDeliveryError: If the provider request fails.
    """
    api_key = settings.resend_api_key.get_secret_value()
    if not api_key:
        logger.info(
            "Email delivery not configured; message not sent",
            extra={"subject": subject},
        )
        if settings.debug_magic_link:
            logger.debug("Undelivered email to %s:\n%s", to_email, text)
        return

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.post(
                _RESEND_API_URL,
                headers={"Authorization": f"Bearer {api_key}"},
                json={
                    "from": settings.email_from,
                    "to": to_email,
                    "subject": subject,
                    "text": text,
                },
                timeout=_RESEND_TIMEOUT,
            )
            resp.raise_for_status()
    except httpx.HTTPError as exc:
        msg = f"Email provider request failed: {type(exc).__name__}"
        raise EmailDeliveryError(msg) from exc


async def send_magic_link_email(*, to_email: str, token: str) -> None:
    """Send a magic link sign-in email.

    The user clicks the link, the consume endpoint verifies the token, sets
    the session cookie, and redirects to the application.

    Args:
        to_email: Recipient email address.
        token: Raw (unhashed) magic link token.

    Raises:
        EmailDeliveryError: If the provider request fails.
    """
    link = build_magic_link(token)
    if settings.debug_magic_link:
        logger.debug("Magic link for %s: %s", to_email, link)

    ttl = settings.magic_link_ttl_minutes
    await send_email(
        to_email=to_email,
        subject=MAGIC_LINK_SUBJECT,
        text=(
            f"Click to sign in:\n\n{link}\n\n"
            f"This link expires in {ttl} minutes. "
            "If you didn't request this, you can safely ignore this email."
        ),
    )
