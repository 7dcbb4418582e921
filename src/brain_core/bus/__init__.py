"""In-process message bus."""

from .messages import ContextId, Message, MessageFactory, MessageKind, MessageType
from .mediator import DeliveryReport, MessageBus

__all__ = [
    "ContextId",
    "DeliveryReport",
    "Message",
    "MessageBus",
    "MessageFactory",
    "MessageKind",
    "MessageType",
]
