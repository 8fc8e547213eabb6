"""Tests for magic link email composition and delivery."""

from unittest.mock import AsyncMock, Mock, patch
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from pydantic import SecretStr

from app.core.config import settings
from app.core.email import (
    CONSUME_PATH,
    MAGIC_LINK_SUBJECT,
    EmailDeliveryError,
    build_magic_link,
    send_email,
    send_magic_link_email,
)

_TOKEN = "Zm9vYmFyLWJhei1xdXV4LXRva2VuLXZhbHVlLTEyMzQ"


@pytest.fixture
def resend_configured(monkeypatch):
    """Configure a Resend API key for the duration of a test."""
    monkeypatch.setattr(settings, "resend_api_key", SecretStr("re_test_key"))


class TestBuildMagicLink:
    """Tests for build_magic_link()."""

    def test_points_at_consume_endpoint(self, monkeypatch):
        monkeypatch.setattr(settings, "public_base_url", "https://auth.example.com/")
        link = urlsplit(build_magic_link(_TOKEN))
        assert link.scheme == "https"
        assert link.netloc == "auth.example.com"
        assert link.path == CONSUME_PATH

    def test_carries_only_the_token(self):
        """The email address never appears in the link."""
        query = parse_qs(urlsplit(build_magic_link(_TOKEN)).query)
        assert query == {"token": [_TOKEN]}


class TestSendEmail:
    """Tests for send_email()."""

    async def test_without_api_key_does_not_call_provider(self, monkeypatch):
        monkeypatch.setattr(settings, "resend_api_key", SecretStr(""))
        with patch.object(httpx.AsyncClient, "post", AsyncMock()) as mock_post:
            await send_email(to_email="a@example.com", subject="s", text="t")
        mock_post.assert_not_awaited()

    async def test_posts_to_resend(self, resend_configured):  # noqa: ARG002
        response = Mock()
        with patch.object(
            httpx.AsyncClient, "post", AsyncMock(return_value=response)
        ) as mock_post:
            await send_email(to_email="a@example.com", subject="Hi", text="Body")

        mock_post.assert_awaited_once()
        kwargs = mock_post.call_args.kwargs
        assert kwargs["headers"] == {"Authorization": "Bearer re_test_key"}
        assert kwargs["json"]["to"] == "a@example.com"
        assert kwargs["json"]["subject"] == "Hi"
        response.raise_for_status.assert_called_once()

    async def test_transport_error_becomes_delivery_error(
        self,
        resend_configured,  # noqa: ARG002
    ):
        with (
            patch.object(
                httpx.AsyncClient,
                "post",
                AsyncMock(side_effect=httpx.ConnectError("unreachable")),
            ),
            pytest.raises(EmailDeliveryError),
        ):
            await send_email(to_email="a@example.com", subject="s", text="t")


class TestSendMagicLinkEmail:
    """Tests for send_magic_link_email()."""

    async def test_sends_link_and_ttl(self):
        with patch("app.core.email.send_email", AsyncMock()) as mock_send:
            await send_magic_link_email(to_email="a@example.com", token=_TOKEN)

        kwargs = mock_send.call_args.kwargs
        assert kwargs["to_email"] == "a@example.com"
        assert kwargs["subject"] == MAGIC_LINK_SUBJECT
        assert build_magic_link(_TOKEN) in kwargs["text"]
        assert f"{settings.magic_link_ttl_minutes} minutes" in kwargs["text"]
