"""Unit tests for LLM providers."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from brain_core.llm.base import (
    LLMAuthenticationError,
    LLMModelNotFoundError,
    LLMRateLimitError,
    LLMRequest,
)
from brain_core.llm.providers import OpenAIProvider
from tests.mocks.llm.mock_provider import MockProvider


_API_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def api_error(error_class, status_code):
    response = httpx.Response(status_code, request=_API_REQUEST)
    return error_class("error", response=response, body=None)


def completion(content="Hello there", model="gpt-4o-mini"):
    return SimpleNamespace(
        id="chatcmpl-1",
        model=model,
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=10, completion_tokens=3, total_tokens=13),
    )


@pytest.fixture
def openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(return_value=completion())
    return client


@pytest.fixture
def request_obj():
    return LLMRequest(
        messages=[{"role": "user", "content": "Hello"}],
        model="gpt-4o-mini",
        max_tokens=50,
    )


class TestMockProvider:
    """Test cases for the scripted MockProvider."""

    @pytest.mark.asyncio
    async def test_scripted_responses(self, request_obj):
        provider = MockProvider(["first", "second"])

        responses = [await provider.generate(request_obj) for _ in range(3)]

        assert [r.content for r in responses] == ["first", "second", "second"]
        assert len(provider.requests) == 3

    @pytest.mark.asyncio
    async def test_is_available(self):
        assert await MockProvider().is_available() is True
        assert await MockProvider([None]).is_available() is False
        assert await MockProvider([LLMRateLimitError("busy")]).is_available() is False


class TestOpenAIProvider:
    """Test cases for OpenAIProvider."""

    def test_get_default_model(self, openai_client):
        assert OpenAIProvider(client=openai_client).get_default_model() == "gpt-4o-mini"
        assert OpenAIProvider({"model": "gpt-4o"}, client=openai_client).get_default_model() == "gpt-4o"

    def test_builds_client_from_config(self):
        provider = OpenAIProvider({"api_key": "sk-test", "base_url": "http://localhost:8080/v1", "timeout": 5.0})

        assert isinstance(provider.client, openai.AsyncOpenAI)
        assert str(provider.client.base_url).startswith("http://localhost:8080/v1")

    @pytest.mark.asyncio
    async def test_generate(self, openai_client, request_obj):
        provider = OpenAIProvider(client=openai_client)

        response = await provider.generate(request_obj)

        assert response.success
        assert response.content == "Hello there"
        assert response.usage.total_tokens == 13
        assert response.metadata == {"finish_reason": "stop", "response_id": "chatcmpl-1"}
        openai_client.chat.completions.create.assert_awaited_once_with(
            model="gpt-4o-mini",
            messages=[{"role": "user", "content": "Hello"}],
            temperature=0.3,
            max_tokens=50,
        )

    @pytest.mark.asyncio
    async def test_json_mode(self, openai_client):
        provider = OpenAIProvider(client=openai_client)
        request = LLMRequest(messages=[{"role": "user", "content": "Hi"}], model="gpt-4o-mini", json_mode=True)

        await provider.generate(request)

        kwargs = openai_client.chat.completions.create.await_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert "max_tokens" not in kwargs

    @pytest.mark.asyncio
    async def test_invalid_request(self, openai_client):
        provider = OpenAIProvider(client=openai_client)

        response = await provider.generate(LLMRequest(messages=[], model="gpt-4o-mini"))

        assert not response.success
        assert response.error == "Invalid request"
        openai_client.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error, expected", [
        (lambda: api_error(openai.RateLimitError, 429), LLMRateLimitError),
        (lambda: api_error(openai.AuthenticationError, 401), LLMAuthenticationError),
        (lambda: api_error(openai.NotFoundError, 404), LLMModelNotFoundError),
    ])
    async def test_error_mapping(self, openai_client, request_obj, error, expected):
        openai_client.chat.completions.create.side_effect = error()
        provider = OpenAIProvider(client=openai_client)

        with pytest.raises(expected):
            await provider.generate(request_obj)

    @pytest.mark.asyncio
    async def test_other_api_errors_return_failed_response(self, openai_client, request_obj):
        openai_client.chat.completions.create.side_effect = openai.APIConnectionError(request=_API_REQUEST)
        provider = OpenAIProvider(client=openai_client)

        response = await provider.generate(request_obj)

        assert not response.success
        assert response.error
