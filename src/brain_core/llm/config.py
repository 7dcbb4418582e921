"""Configuration for language model providers."""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class LLMConfig:
    """Configuration for the language model provider and adapter."""

    # Provider selection
    provider: str = "openai"

    # Model configuration
    model: str = "gpt-4o-mini"
    max_tokens: Optional[int] = 1024
    temperature: float = 0.3

    # API configuration
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    timeout: float = 30.0

    # Summarizer overrides; None falls back to the values above
    summary_max_tokens: Optional[int] = 400
    summary_temperature: Optional[float] = None

    # Additional provider-specific config
    provider_config: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_env(cls) -> "LLMConfig":
        """Create configuration from environment variables."""
        max_tokens = os.getenv("BRAIN_LLM_MAX_TOKENS", "1024")
        return cls(
            provider=os.getenv("BRAIN_LLM_PROVIDER", "openai"),
            model=os.getenv("BRAIN_LLM_MODEL", "gpt-4o-mini"),
            max_tokens=int(max_tokens) if max_tokens else None,
            temperature=float(os.getenv("BRAIN_LLM_TEMPERATURE", "0.3")),
            api_key=os.getenv("BRAIN_LLM_API_KEY") or os.getenv("OPENAI_API_KEY"),
            base_url=os.getenv("BRAIN_LLM_BASE_URL"),
            timeout=float(os.getenv("BRAIN_LLM_TIMEOUT", "30.0")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary with the API key masked."""
        return {
            "provider": self.provider,
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "api_key": "***" if self.api_key else None,
            "base_url": self.base_url,
            "timeout": self.timeout,
            "summary_max_tokens": self.summary_max_tokens,
            "summary_temperature": self.summary_temperature,
            "provider_config": self.provider_config,
        }

    def provider_settings(self) -> Dict[str, Any]:
        """Settings handed to the provider constructor."""
        settings = dict(self.provider_config)
        settings.update({
            "api_key": self.api_key,
            "base_url": self.base_url,
            "timeout": self.timeout,
            "model": self.model,
        })
        return settings

    def validate(self) -> bool:
        """Validate configuration."""
        if not self.provider or not self.model:
            return False

        if self.temperature < 0 or self.temperature > 2:
            return False

        if self.max_tokens is not None and self.max_tokens <= 0:
            return False

        if self.timeout <= 0:
            return False

        return True
