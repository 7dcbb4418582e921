"""Language model provider implementations."""

from .openai import OpenAIProvider


__all__ = [
    "OpenAIProvider",
]
