"""Prompt templates."""

from .manager import PromptManager

__all__ = ["PromptManager"]
