"""Conversation model, storage and room management."""

from .manager import DEFAULT_ROOM_ID, ConversationManager
from .storage import ConversationStorage, InMemoryConversationStorage
from .types import Conversation, ConversationInfo, SearchCriteria, Summary, TieredHistory, Turn

__all__ = [
    "DEFAULT_ROOM_ID",
    "Conversation",
    "ConversationInfo",
    "ConversationManager",
    "ConversationStorage",
    "InMemoryConversationStorage",
    "SearchCriteria",
    "Summary",
    "TieredHistory",
    "Turn",
]
