"""Core of a personal knowledge assistant.

Three pieces work together: the in-process message bus connecting the
contexts, the tiered conversation memory and the query pipeline.
"""

from .bus import ContextId, DeliveryReport, Message, MessageBus, MessageFactory, MessageKind, MessageType
from .config import BrainConfig, BusConfig, load_config
from .conversation import ConversationManager, InMemoryConversationStorage, Turn
from .memory import LLMConversationSummarizer, TieredMemoryConfig, TieredMemoryManager
from .pipeline import OutputSchema, QueryConfig, QueryOptions, QueryProcessor, QueryResult

__version__ = "0.1.0"

__all__ = [
    "BrainConfig",
    "BusConfig",
    "ContextId",
    "ConversationManager",
    "DeliveryReport",
    "InMemoryConversationStorage",
    "LLMConversationSummarizer",
    "Message",
    "MessageBus",
    "MessageFactory",
    "MessageKind",
    "MessageType",
    "OutputSchema",
    "QueryConfig",
    "QueryOptions",
    "QueryProcessor",
    "QueryResult",
    "TieredMemoryConfig",
    "TieredMemoryManager",
    "Turn",
    "load_config",
]
