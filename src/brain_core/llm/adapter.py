"""Turns a chat provider into the ``complete()`` contract used by the pipeline."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from loguru import logger

from .base import LLMProvider, LLMProviderError, LLMRequest, LLMResponseFormatError, LLMUsage
from .prompts import PromptManager


@dataclass
class ModelCompletion:
    """Decoded model output.

    Without a schema ``object`` is ``{"answer": <text>}``; with a schema it is
    the JSON object produced by the model, not yet validated.
    """
    object: Any
    usage: LLMUsage = field(default_factory=LLMUsage)
    raw: str = ""
    model: str = ""


def extract_json(content: str) -> Optional[Dict[str, Any]]:
    """Extract the first JSON object from model output.

    Handles bare JSON, fenced ```json blocks and objects embedded in prose.

    Returns:
        The decoded object, or None if no JSON object could be found
    """
    sanitized = content.strip()
    if sanitized.startswith("```"):
        sanitized = sanitized[3:]
        if sanitized.lower().startswith("json"):
            sanitized = sanitized[4:]
        sanitized = sanitized.strip()
        if sanitized.endswith("```"):
            sanitized = sanitized[:-3].rstrip()

    try:
        parsed = json.loads(sanitized)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    start = sanitized.find("{")
    while start != -1:
        try:
            parsed, _ = decoder.raw_decode(sanitized, start)
        except json.JSONDecodeError:
            start = sanitized.find("{", start + 1)
            continue
        if isinstance(parsed, dict):
            return parsed
        start = sanitized.find("{", start + 1)
    return None


class LanguageModelAdapter:
    """Adapter between the query pipeline and an :class:`LLMProvider`."""

    def __init__(
        self,
        provider: LLMProvider,
        model: Optional[str] = None,
        default_max_tokens: Optional[int] = None,
        default_temperature: float = 0.3,
        prompt_manager: Optional[PromptManager] = None,
    ):
        self.provider = provider
        self.model = model or provider.get_default_model()
        self.default_max_tokens = default_max_tokens
        self.default_temperature = default_temperature
        self.prompt_manager = prompt_manager or PromptManager()

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Optional[Dict[str, Any]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> ModelCompletion:
        """Run one completion.

        Args:
            system_prompt: System instructions
            user_prompt: User message
            schema: JSON schema the output object should follow
            max_tokens: Override of the default completion budget
            temperature: Override of the default temperature

        Returns:
            Decoded completion

        Raises:
            LLMProviderError: The provider failed, or the output is not a
                JSON object although a schema was given
        """
        if schema is not None:
            system_prompt = system_prompt + self.prompt_manager.get_prompt(
                "structured_output",
                schema=json.dumps(schema, indent=2),
            )

        request = LLMRequest(
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            model=self.model,
            max_tokens=max_tokens if max_tokens is not None else self.default_max_tokens,
            temperature=temperature if temperature is not None else self.default_temperature,
            json_mode=schema is not None,
        )

        response = await self.provider.generate(request)
        if not response.success:
            raise LLMProviderError(response.error or f"{self.provider.name} returned no completion")

        logger.debug(
            f"LanguageModelAdapter: {response.model or self.model} used "
            f"{response.usage.total_tokens} tokens"
        )

        if schema is None:
            obj: Any = {"answer": response.content.strip()}
        else:
            obj = extract_json(response.content)
            if obj is None:
                raise LLMResponseFormatError(
                    "Model response does not contain a JSON object",
                    raw_content=response.content,
                )

        return ModelCompletion(
            object=obj,
            usage=response.usage,
            raw=response.content,
            model=response.model,
        )
