"""Tiered conversation memory."""

from .summarizer import ConversationSummarizer, LLMConversationSummarizer
from .tiered import TieredMemoryConfig, TieredMemoryManager

__all__ = [
    "ConversationSummarizer",
    "LLMConversationSummarizer",
    "TieredMemoryConfig",
    "TieredMemoryManager",
]
