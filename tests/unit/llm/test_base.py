"""Unit tests for LLM base classes."""

from unittest.mock import AsyncMock

import pytest

from brain_core.errors import BrainError
from brain_core.llm.base import (
    LLMAuthenticationError,
    LLMProvider,
    LLMProviderError,
    LLMRateLimitError,
    LLMRequest,
    LLMResponse,
    LLMResponseFormatError,
    LLMUsage,
)


class MockLLMProvider(LLMProvider):
    """Mock LLM provider for testing."""

    def __init__(self, config=None):
        super().__init__(config)
        self.generate_mock = AsyncMock()

    async def generate(self, request: LLMRequest) -> LLMResponse:
        return await self.generate_mock(request)

    def get_default_model(self) -> str:
        return "mock-model"


class TestLLMRequest:
    """Test cases for LLMRequest."""

    def test_defaults(self):
        request = LLMRequest(messages=[{"role": "user", "content": "Hi"}], model="m")

        assert request.max_tokens is None
        assert request.temperature == 0.3
        assert request.json_mode is False
        assert request.metadata == {}


class TestLLMUsage:
    """Test cases for LLMUsage."""

    def test_to_dict(self):
        usage = LLMUsage(prompt_tokens=10, completion_tokens=20, total_tokens=30)

        assert usage.to_dict() == {"prompt_tokens": 10, "completion_tokens": 20, "total_tokens": 30}


class TestLLMProvider:
    """Test cases for LLMProvider base class."""

    def test_init(self):
        provider = MockLLMProvider()

        assert provider.config == {}
        assert provider.name == "MockLLMProvider"

    @pytest.mark.asyncio
    async def test_is_available_success(self):
        provider = MockLLMProvider()
        provider.generate_mock.return_value = LLMResponse(content="pong", model="mock-model", usage=LLMUsage())

        assert await provider.is_available() is True
        request = provider.generate_mock.await_args.args[0]
        assert request.max_tokens == 1

    @pytest.mark.asyncio
    async def test_is_available_failure(self):
        provider = MockLLMProvider()
        provider.generate_mock.side_effect = LLMAuthenticationError("bad key")

        assert await provider.is_available() is False

    @pytest.mark.parametrize("messages, model, valid", [
        ([{"role": "user", "content": "Hi"}], "m", True),
        ([], "m", False),
        ([{"role": "user", "content": "Hi"}], "", False),
        ([{"content": "Hi"}], "m", False),
    ])
    def test_validate_request(self, messages, model, valid):
        assert MockLLMProvider().validate_request(LLMRequest(messages=messages, model=model)) is valid


class TestLLMExceptions:
    """Test cases for LLM exception hierarchy."""

    def test_hierarchy(self):
        assert issubclass(LLMProviderError, BrainError)
        assert issubclass(LLMRateLimitError, LLMProviderError)
        assert issubclass(LLMResponseFormatError, LLMProviderError)

    def test_response_format_error_keeps_content(self):
        error = LLMResponseFormatError("not json", raw_content="plain text")

        assert str(error) == "not json"
        assert error.raw_content == "plain text"
