"""Tests for retrospectify.openrouter.query_model."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from retrospectify import config
from retrospectify.openrouter import query_model

MESSAGES = [{"role": "user", "content": "hello"}]


def _response(status_code: int, json_body: dict | None = None) -> httpx.Response:
    request = httpx.Request("POST", config.OPENROUTER_API_URL)
    if json_body is None:
        return httpx.Response(status_code, text="error", request=request)
    return httpx.Response(status_code, json=json_body, request=request)


class TestQueryModel:
    """Tests for query_model."""

    @pytest.mark.asyncio
    async def test_success_returns_content_and_metrics(self):
        body = {
            "id": "gen-1",
            "model": "google/gemini",
            "provider": "Google",
            "choices": [{"message": {"content": "<h1>Hi</h1>"}}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
        }
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_response(200, body))):
            result = await query_model("google/gemini", MESSAGES)

        assert result["content"] == "<h1>Hi</h1>"
        assert result["metrics"]["total_tokens"] == 15
        assert result["metrics"]["request_id"] == "gen-1"
        assert result["metrics"]["provider"] == "Google"

    @pytest.mark.asyncio
    async def test_sends_model_and_auth_header(self):
        body = {"choices": [{"message": {"content": "ok"}}]}
        mock_post = AsyncMock(return_value=_response(200, body))
        with patch("httpx.AsyncClient.post", mock_post):
            await query_model("some/model", MESSAGES)

        kwargs = mock_post.call_args.kwargs
        assert kwargs["json"] == {"model": "some/model", "messages": MESSAGES}
        assert kwargs["headers"]["Authorization"] == f"Bearer {config.OPENROUTER_API_KEY}"

    @pytest.mark.asyncio
    async def test_http_error_returns_none(self):
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_response(500))):
            assert await query_model("m", MESSAGES) is None

    @pytest.mark.asyncio
    async def test_timeout_returns_none(self):
        with patch("httpx.AsyncClient.post", AsyncMock(side_effect=httpx.ReadTimeout("slow"))):
            assert await query_model("m", MESSAGES) is None

    @pytest.mark.asyncio
    async def test_malformed_body_returns_none(self):
        with patch("httpx.AsyncClient.post", AsyncMock(return_value=_response(200, {"choices": []}))):
            assert await query_model("m", MESSAGES) is None
