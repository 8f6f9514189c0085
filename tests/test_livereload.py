"""Tests for preen.reactive.livereload — client script injection."""

from __future__ import annotations

from dataclasses import dataclass
from unittest.mock import AsyncMock

import pytest

from preen.reactive.livereload import (
    GENERATION_HEADER,
    LIVERELOAD_ENDPOINT,
    inject_script,
    livereload_middleware,
    livereload_script,
)


# ---------------------------------------------------------------------------
# Minimal response mock (frozen dataclass like Chirp's Response)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _MockResponse:
    body: str | bytes = ""
    status: int = 200
    content_type: str = "text/html; charset=utf-8"
    headers: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True, slots=True)
class _MockStreamingResponse:
    """Streaming response (no body to inject into)."""

    chunks: object = None
    content_type: str = "text/html; charset=utf-8"


def _make_next(response: object) -> AsyncMock:
    """Create a mock 'next' middleware callable."""
    return AsyncMock(return_value=response)


def _mock_request() -> object:
    return object()


# ---------------------------------------------------------------------------
# Script
# ---------------------------------------------------------------------------


class TestLivereloadScript:
    def test_long_polls_endpoint(self) -> None:
        script = livereload_script(7)
        assert "fetch(" in script
        assert LIVERELOAD_ENDPOINT in script
        assert "location.reload()" in script

    def test_generation_embedded(self) -> None:
        assert "var gen = 7;" in livereload_script(7)

    def test_unknown_generation_is_null(self) -> None:
        assert "var gen = null;" in livereload_script(None)

    def test_placeholders_substituted(self) -> None:
        assert "__PREEN_" not in livereload_script(3)


class TestInjectScript:
    def test_before_body_close(self) -> None:
        out = inject_script("<html><body><p>x</p></body></html>", "<script></script>")
        assert out == "<html><body><p>x</p><script></script></body></html>"

    def test_before_html_close_without_body(self) -> None:
        out = inject_script("<html><p>x</p></html>", "<s/>")
        assert out == "<html><p>x</p><s/></html>"

    def test_appended_to_fragment(self) -> None:
        assert inject_script("<p>x</p>", "<s/>") == "<p>x</p><s/>"

    def test_only_first_body_close(self) -> None:
        out = inject_script("<body></body><pre></body></pre>", "<s/>")
        assert out.count("<s/>") == 1


# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------


class TestLivereloadMiddleware:
    """Tests for livereload_middleware."""

    @pytest.mark.asyncio
    async def test_injects_into_html(self) -> None:
        response = _MockResponse(body="<html><body><h1>Hi</h1></body></html>")
        result = await livereload_middleware(_mock_request(), _make_next(response))

        assert "data-preen-livereload" in result.body
        assert result.body.index("data-preen-livereload") < result.body.index("</body>")

    @pytest.mark.asyncio
    async def test_generation_header_forwarded_to_script(self) -> None:
        response = _MockResponse(
            body="<body></body>",
            headers=((GENERATION_HEADER, "42"), ("Cache-Control", "no-cache")),
        )
        result = await livereload_middleware(_mock_request(), _make_next(response))

        assert "var gen = 42;" in result.body

    @pytest.mark.asyncio
    async def test_bytes_body_decoded(self) -> None:
        response = _MockResponse(body=b"<body></body>")
        result = await livereload_middleware(_mock_request(), _make_next(response))

        assert isinstance(result.body, str)
        assert "data-preen-livereload" in result.body

    @pytest.mark.asyncio
    async def test_non_utf8_html_served_unchanged(self) -> None:
        body = b"<html><body>caf\xe9</body></html>"
        response = _MockResponse(body=body)
        result = await livereload_middleware(_mock_request(), _make_next(response))

        assert result is response
        assert result.body == body

    @pytest.mark.asyncio
    async def test_skips_non_html(self) -> None:
        response = _MockResponse(body=b"\x89PNG", content_type="image/png")
        result = await livereload_middleware(_mock_request(), _make_next(response))

        assert result is response

    @pytest.mark.asyncio
    async def test_skips_empty_body(self) -> None:
        response = _MockResponse(body="")
        result = await livereload_middleware(_mock_request(), _make_next(response))

        assert result is response

    @pytest.mark.asyncio
    async def test_skips_streaming_response(self) -> None:
        response = _MockStreamingResponse()
        result = await livereload_middleware(_mock_request(), _make_next(response))

        assert result is response

    @pytest.mark.asyncio
    async def test_preserves_status_code(self) -> None:
        response = _MockResponse(body="<body></body>", status=404)
        result = await livereload_middleware(_mock_request(), _make_next(response))

        assert result.status == 404
