"""OpenAI-compatible chat completion provider."""

import os
from typing import Any, Dict, Optional

import openai
from openai import AsyncOpenAI
from loguru import logger

from ..base import LLMProvider, LLMRequest, LLMResponse, LLMUsage
from ..base import LLMAuthenticationError, LLMModelNotFoundError, LLMRateLimitError


class OpenAIProvider(LLMProvider):
    """Provider for the OpenAI chat completions API and compatible endpoints."""

    DEFAULT_MODEL = "gpt-4o-mini"

    def __init__(self, config: Optional[Dict[str, Any]] = None, client: Optional[AsyncOpenAI] = None):
        """Initialize OpenAI provider.

        Args:
            config: Provider configuration (api_key, base_url, timeout, model)
            client: Preconfigured client, mainly for tests
        """
        super().__init__(config)

        if client is None:
            api_key = self.config.get("api_key") or os.getenv("OPENAI_API_KEY")
            client_kwargs: Dict[str, Any] = {"timeout": self.config.get("timeout", 30.0)}
            if api_key:
                client_kwargs["api_key"] = api_key
            if self.config.get("base_url"):
                client_kwargs["base_url"] = self.config["base_url"]
            client = AsyncOpenAI(**client_kwargs)

        self.client = client

    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate a chat completion.

        Args:
            request: LLM request object

        Returns:
            LLM response object
        """
        if not self.validate_request(request):
            return LLMResponse(
                content="",
                model=request.model,
                usage=LLMUsage(),
                success=False,
                error="Invalid request",
            )

        openai_kwargs: Dict[str, Any] = {
            "model": request.model,
            "messages": request.messages,
            "temperature": request.temperature,
        }
        if request.max_tokens:
            openai_kwargs["max_tokens"] = request.max_tokens
        if request.json_mode:
            openai_kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(**openai_kwargs)
        except openai.RateLimitError as e:
            logger.warning(f"OpenAIProvider: Rate limit exceeded: {e}")
            raise LLMRateLimitError(f"Rate limit exceeded: {e}") from e
        except openai.AuthenticationError as e:
            logger.error(f"OpenAIProvider: Authentication failed: {e}")
            raise LLMAuthenticationError(f"Authentication failed: {e}") from e
        except openai.NotFoundError as e:
            logger.error(f"OpenAIProvider: Model not found: {e}")
            raise LLMModelNotFoundError(f"Model not found: {e}") from e
        except openai.OpenAIError as e:
            logger.error(f"OpenAIProvider: API error: {e}")
            return LLMResponse(
                content="",
                model=request.model,
                usage=LLMUsage(),
                success=False,
                error=str(e),
            )

        choice = response.choices[0]
        usage = LLMUsage(
            prompt_tokens=response.usage.prompt_tokens if response.usage else 0,
            completion_tokens=response.usage.completion_tokens if response.usage else 0,
            total_tokens=response.usage.total_tokens if response.usage else 0,
        )
        return LLMResponse(
            content=choice.message.content or "",
            model=response.model,
            usage=usage,
            metadata={
                "finish_reason": choice.finish_reason,
                "response_id": response.id,
            },
        )

    def get_default_model(self) -> str:
        return self.config.get("model") or self.DEFAULT_MODEL
