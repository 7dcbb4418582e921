"""Language model integration.

Providers implement :class:`LLMProvider`; the pipeline talks to them through
:class:`LanguageModelAdapter`.
"""

from .adapter import LanguageModelAdapter, ModelCompletion, extract_json
from .base import (
    LLMAuthenticationError,
    LLMModelNotFoundError,
    LLMProvider,
    LLMProviderError,
    LLMRateLimitError,
    LLMRequest,
    LLMResponse,
    LLMResponseFormatError,
    LLMUsage,
)
from .config import LLMConfig
from .prompts import PromptManager
from .providers import OpenAIProvider

__all__ = [
    "LLMAuthenticationError",
    "LLMConfig",
    "LLMModelNotFoundError",
    "LLMProvider",
    "LLMProviderError",
    "LLMRateLimitError",
    "LLMRequest",
    "LLMResponse",
    "LLMResponseFormatError",
    "LLMUsage",
    "LanguageModelAdapter",
    "ModelCompletion",
    "OpenAIProvider",
    "PromptManager",
    "extract_json",
]
