"""Tests for the magic link service with the store mocked out.

Covers input handling and failure paths; the real-database behavior is in
test_magic_link_endpoints.py and test_magic_link_concurrency.py.
"""

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import InvalidMagicLinkError
from app.core.tokens import IssuedToken, digest_token
from app.models.user import User
from app.services.magic_link_service import (
    consume_magic_link,
    looks_like_email,
    normalize_email,
    request_magic_link,
)

_REPO = "app.services.magic_link_service.MagicTokenRepository"
_GENERATE = "app.services.magic_link_service.generate_token"
_RESOLVE = "app.services.magic_link_service.resolve_or_create_user"
_CLAIM = "app.services.magic_link_service.claim_migrated_records"


@pytest.fixture
def db():
    """Mock AsyncSession; only commit/rollback are ever awaited directly."""
    return AsyncMock()


class TestNormalizeEmail:
    """Tests for normalize_email()."""

    def test_trims_and_lowercases(self):
        assert normalize_email("  Alice@Example.COM ") == "alice@example.com"

    @pytest.mark.parametrize("raw", [None, 42, ["a@example.com"], {"x": 1}])
    def test_non_strings_become_empty(self, raw):
        assert normalize_email(raw) == ""


class TestLooksLikeEmail:
    """Tests for looks_like_email()."""

    @pytest.mark.parametrize(
        "email", ["user@example.com", "first.last+tag@sub.example.org"]
    )
    def test_accepts_well_formed(self, email):
        assert looks_like_email(email) is True

    @pytest.mark.parametrize(
        "email", ["", "no-at-sign", "@example.com", "user@", "a b@example.com"]
    )
    def test_rejects_malformed(self, email):
        assert looks_like_email(email) is False

    def test_rejects_overlong(self):
        email = "a" * 64 + "@" + ("b" * 60 + ".") * 4 + "com"
        assert len(email) > 254
        assert looks_like_email(email) is False


class TestRequestMagicLink:
    """Tests for request_magic_link()."""

    async def test_issues_token_for_valid_email(self, db):
        with patch(f"{_REPO}.issue", AsyncMock()) as mock_issue:
            dispatch = await request_magic_link(db, email="  User@Example.com ")

        assert dispatch is not None
        assert dispatch.email == "user@example.com"
        kwargs = mock_issue.call_args.kwargs
        assert kwargs["email"] == "user@example.com"
        assert kwargs["token_digest"] == digest_token(dispatch.token)
        assert kwargs["token_digest"] != dispatch.token
        db.commit.assert_awaited_once()

    async def test_expiry_uses_configured_ttl(self, db):
        before = datetime.now(UTC)
        with patch(f"{_REPO}.issue", AsyncMock()):
            dispatch = await request_magic_link(db, email="user@example.com")
        after = datetime.now(UTC)

        assert before + timedelta(minutes=15) <= dispatch.expires_at
        assert dispatch.expires_at <= after + timedelta(minutes=15)

    async def test_malformed_email_issues_nothing(self, db):
        with patch(f"{_REPO}.issue", AsyncMock()) as mock_issue:
            dispatch = await request_magic_link(db, email="not-an-email")

        assert dispatch is None
        mock_issue.assert_not_awaited()

    async def test_malformed_email_still_generates_token(self, db):
        """Both paths do the same crypto work."""
        issued = IssuedToken(raw="raw", digest="0" * 64)
        with patch(_GENERATE, return_value=issued) as mock_generate:
            await request_magic_link(db, email=None)

        mock_generate.assert_called_once()

    async def test_store_failure_returns_none(self, db):
        with patch(
            f"{_REPO}.issue",
            AsyncMock(side_effect=OperationalError("INSERT", {}, Exception("down"))),
        ):
            dispatch = await request_magic_link(db, email="user@example.com")

        assert dispatch is None
        db.rollback.assert_awaited_once()

    async def test_connection_refused_returns_none(self, db):
        """asyncpg raises OSError subclasses that SQLAlchemy does not wrap."""
        with patch(
            f"{_REPO}.issue",
            AsyncMock(side_effect=ConnectionRefusedError(111, "refused")),
        ):
            dispatch = await request_magic_link(db, email="user@example.com")

        assert dispatch is None

    async def test_passes_request_metadata(self, db):
        with patch(f"{_REPO}.issue", AsyncMock()) as mock_issue:
            await request_magic_link(
                db,
                email="user@example.com",
                request_ip="203.0.113.9",
                request_user_agent="Mozilla/5.0",
            )

        kwargs = mock_issue.call_args.kwargs
        assert kwargs["request_ip"] == "203.0.113.9"
        assert kwargs["request_user_agent"] == "Mozilla/5.0"


class TestConsumeMagicLink:
    """Tests for consume_magic_link()."""

    @pytest.fixture(autouse=True)
    def _secret(self, auth_secret):  # noqa: ARG002
        """Session signing needs a configured secret."""

    @pytest.mark.parametrize("raw", [None, "", "x" * 513])
    async def test_implausible_token_never_touches_store(self, db, raw):
        with (
            patch(f"{_REPO}.consume_if_valid", AsyncMock()) as mock_consume,
            pytest.raises(InvalidMagicLinkError),
        ):
            await consume_magic_link(db, raw_token=raw)

        mock_consume.assert_not_awaited()

    async def test_unconsumable_token_is_rejected(self, db):
        with (
            patch(f"{_REPO}.consume_if_valid", AsyncMock(return_value=None)),
            pytest.raises(InvalidMagicLinkError),
        ):
            await consume_magic_link(db, raw_token="some-token")

        db.rollback.assert_awaited_once()
        db.commit.assert_not_awaited()

    async def test_consumes_by_digest(self, db):
        user = User(id=uuid.uuid4(), email="user@example.com")
        with (
            patch(
                f"{_REPO}.consume_if_valid",
                AsyncMock(return_value="user@example.com"),
            ) as mock_consume,
            patch(_RESOLVE, AsyncMock(return_value=(user, True))),
            patch(_CLAIM, AsyncMock(return_value=2)),
        ):
            consumed = await consume_magic_link(db, raw_token="some-token")

        assert mock_consume.call_args.kwargs["token_digest"] == digest_token(
            "some-token"
        )
        assert consumed.user is user
        assert consumed.created is True
        assert consumed.claimed_count == 2
        assert consumed.session_token
        db.commit.assert_awaited_once()

    async def test_claim_failure_rolls_back_consumption(self, db):
        """Nothing is committed if claiming fails, so the link stays usable."""
        user = User(id=uuid.uuid4(), email="user@example.com")
        with (
            patch(
                f"{_REPO}.consume_if_valid",
                AsyncMock(return_value="user@example.com"),
            ),
            patch(_RESOLVE, AsyncMock(return_value=(user, False))),
            patch(
                _CLAIM,
                AsyncMock(side_effect=OperationalError("UPDATE", {}, Exception())),
            ),
            pytest.raises(InvalidMagicLinkError),
        ):
            await consume_magic_link(db, raw_token="some-token")

        db.commit.assert_not_awaited()
        db.rollback.assert_awaited_once()

    async def test_missing_secret_rolls_back(self, db, monkeypatch):
        from pydantic import SecretStr

        from app.core.config import settings

        monkeypatch.setattr(settings, "auth_secret", SecretStr(""))
        user = User(id=uuid.uuid4(), email="user@example.com")
        with (
            patch(
                f"{_REPO}.consume_if_valid",
                AsyncMock(return_value="user@example.com"),
            ),
            patch(_RESOLVE, AsyncMock(return_value=(user, False))),
            patch(_CLAIM, AsyncMock(return_value=0)),
            pytest.raises(InvalidMagicLinkError),
        ):
            await consume_magic_link(db, raw_token="some-token")

        db.commit.assert_not_awaited()

    async def test_unwrapped_connection_error_is_rejected(self, db):
        """Driver connection errors outside SQLAlchemy still map to 400."""
        with (
            patch(
                f"{_REPO}.consume_if_valid",
                AsyncMock(side_effect=ConnectionRefusedError(111, "refused")),
            ),
            pytest.raises(InvalidMagicLinkError),
        ):
            await consume_magic_link(db, raw_token="some-token")

        db.commit.assert_not_awaited()

    async def test_failed_rollback_still_rejects(self, db):
        db.rollback.side_effect = OSError("connection lost")
        with (
            patch(f"{_REPO}.consume_if_valid", AsyncMock(side_effect=OSError())),
            pytest.raises(InvalidMagicLinkError),
        ):
            await consume_magic_link(db, raw_token="some-token")
