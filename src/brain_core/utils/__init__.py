"""Utility modules."""

from .token_counter import TokenCounter

__all__ = ["TokenCounter"]
