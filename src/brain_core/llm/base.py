"""Base classes and interfaces for language model providers."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from loguru import logger

from ..errors import BrainError


@dataclass
class LLMUsage:
    """Token usage information."""
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass
class LLMResponse:
    """Response from a provider."""
    content: str
    model: str
    usage: LLMUsage
    metadata: Dict[str, Any] = field(default_factory=dict)
    success: bool = True
    error: Optional[str] = None


@dataclass
class LLMRequest:
    """Request to a provider.

    ``json_mode`` asks the provider to constrain its output to a JSON object
    where the backend supports it.
    """
    messages: List[Dict[str, str]]
    model: str
    max_tokens: Optional[int] = None
    temperature: float = 0.3
    json_mode: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)


class LLMProvider(ABC):
    """Abstract base class for chat-completion providers."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initialize the provider.

        Args:
            config: Provider-specific configuration
        """
        self.config = config or {}
        self.name = self.__class__.__name__

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Generate a response.

        Args:
            request: LLM request object

        Returns:
            LLM response object; transport failures that are not mapped to
            an :class:`LLMProviderError` come back with ``success=False``
        """
        pass

    @abstractmethod
    def get_default_model(self) -> str:
        """Get the default model for this provider."""
        pass

    async def is_available(self) -> bool:
        """Check if the provider answers a minimal request."""
        try:
            response = await self.generate(LLMRequest(
                messages=[{"role": "user", "content": "ping"}],
                model=self.get_default_model(),
                max_tokens=1,
            ))
            return response.success
        except LLMProviderError as e:
            logger.warning(f"{self.name}: Availability check failed: {e}")
            return False

    def validate_request(self, request: LLMRequest) -> bool:
        """Validate an LLM request.

        Args:
            request: LLM request to validate

        Returns:
            True if request is valid, False otherwise
        """
        if not request.messages or not request.model:
            return False

        for message in request.messages:
            if "role" not in message or "content" not in message:
                return False

        return True


class LLMProviderError(BrainError):
    """Base exception for provider errors."""
    pass


class LLMRateLimitError(LLMProviderError):
    """Exception raised when rate limit is exceeded."""
    pass


class LLMAuthenticationError(LLMProviderError):
    """Exception raised when authentication fails."""
    pass


class LLMModelNotFoundError(LLMProviderError):
    """Exception raised when model is not found."""
    pass


class LLMResponseFormatError(LLMProviderError):
    """Exception raised when a response cannot be decoded into the requested shape."""

    def __init__(self, message: str, raw_content: str = ""):
        self.raw_content = raw_content
        super().__init__(message)
