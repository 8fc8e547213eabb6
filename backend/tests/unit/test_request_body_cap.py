"""Tests for reading the magic link request body.

The request endpoint is unauthenticated; bodies over MAX_BODY_BYTES are
treated as carrying no email instead of being buffered.
"""

import json

from starlette.requests import Request

from app.api.auth_magic_link import MAX_BODY_BYTES, _read_email_field


def _request(chunks: list[bytes], headers: dict[str, str] | None = None) -> Request:
    """Build a request whose body arrives in the given chunks."""
    messages = [
        {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
        for i, chunk in enumerate(chunks)
    ]

    async def receive() -> dict:
        return messages.pop(0)

    raw_headers = [
        (name.lower().encode(), value.encode())
        for name, value in (headers or {}).items()
    ]
    scope = {"type": "http", "method": "POST", "path": "/", "headers": raw_headers}
    return Request(scope, receive)


def _padded_body(size: int) -> bytes:
    """JSON body with a valid email, padded to roughly ``size`` bytes."""
    return json.dumps({"email": "user@example.com", "pad": "x" * size}).encode()


class TestReadEmailField:
    """Tests for _read_email_field()."""

    async def test_reads_email_from_small_body(self):
        body = json.dumps({"email": "user@example.com"}).encode()
        request = _request([body], {"Content-Length": str(len(body))})

        assert await _read_email_field(request) == "user@example.com"

    async def test_declared_oversize_is_ignored(self):
        body = _padded_body(MAX_BODY_BYTES)
        request = _request([body], {"Content-Length": str(len(body))})

        assert await _read_email_field(request) is None

    async def test_undeclared_oversize_stream_is_ignored(self):
        """Without Content-Length the stream is counted as it arrives."""
        body = _padded_body(MAX_BODY_BYTES)
        chunks = [body[i : i + 4096] for i in range(0, len(body), 4096)]

        assert await _read_email_field(_request(chunks)) is None

    async def test_understated_content_length_is_caught(self):
        body = _padded_body(MAX_BODY_BYTES)
        request = _request([body], {"Content-Length": "10"})

        assert await _read_email_field(request) is None

    async def test_non_numeric_content_length_is_ignored(self):
        body = json.dumps({"email": "user@example.com"}).encode()
        request = _request([body], {"Content-Length": "lots"})

        assert await _read_email_field(request) is None

    async def test_body_at_cap_is_read(self):
        prefix = json.dumps({"email": "user@example.com", "pad": ""}).encode()
        body = _padded_body(MAX_BODY_BYTES - len(prefix))
        assert len(body) == MAX_BODY_BYTES

        assert await _read_email_field(_request([body])) == "user@example.com"
