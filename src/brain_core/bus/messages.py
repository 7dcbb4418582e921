"""Message types exchanged over the in-process message bus.

Message types form a closed enum. Every member is either a request type,
owned by exactly one context, or a notification type that any context may
subscribe to.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ContextId(str, Enum):
    """Independently-owned subsystems connected by the bus."""
    NOTES = "notes"
    PROFILE = "profile"
    CONVERSATION = "conversation"
    EXTERNAL_SOURCES = "externalSources"
    QUERY = "query"


class MessageKind(str, Enum):
    """Kind of a bus message."""
    NOTIFICATION = "notification"
    REQUEST = "request"
    RESPONSE = "response"


class MessageType(str, Enum):
    """Closed set of message types understood by the bus."""

    # Requests
    NOTES_SEARCH = "notes.search"
    NOTES_RELATED = "notes.related"
    NOTE_BY_ID = "notes.byId"
    PROFILE_DATA = "profile.data"
    CONVERSATION_HISTORY = "conversation.history"
    EXTERNAL_SOURCES_SEARCH = "externalSources.search"

    # Notifications
    NOTE_CREATED = "notes.created"
    NOTE_UPDATED = "notes.updated"
    NOTE_DELETED = "notes.deleted"
    PROFILE_UPDATED = "profile.updated"
    CONVERSATION_STARTED = "conversation.started"
    CONVERSATION_UPDATED = "conversation-updated"
    CONVERSATION_CLEARED = "conversation.cleared"
    EXTERNAL_SOURCES_STATUS = "externalSources.statusChanged"

    @property
    def is_request(self) -> bool:
        return self in _REQUEST_OWNERS

    @property
    def is_notification(self) -> bool:
        return not self.is_request

    @property
    def owner(self) -> Optional[ContextId]:
        """Context that serves this request type, ``None`` for notifications."""
        return _REQUEST_OWNERS.get(self)


_REQUEST_OWNERS: Dict[MessageType, ContextId] = {
    MessageType.NOTES_SEARCH: ContextId.NOTES,
    MessageType.NOTES_RELATED: ContextId.NOTES,
    MessageType.NOTE_BY_ID: ContextId.NOTES,
    MessageType.PROFILE_DATA: ContextId.PROFILE,
    MessageType.CONVERSATION_HISTORY: ContextId.CONVERSATION,
    MessageType.EXTERNAL_SOURCES_SEARCH: ContextId.EXTERNAL_SOURCES,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Message:
    """A single bus message.

    Requests and their responses share ``correlation_id``, which defaults
    to the request's own ``id``; notifications carry none.
    """
    kind: MessageKind
    message_type: MessageType
    source_context: ContextId
    payload: Dict[str, Any] = field(default_factory=dict)
    target_context: Optional[ContextId] = None
    correlation_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=_now)

    def __post_init__(self):
        if self.kind is MessageKind.REQUEST and self.correlation_id is None:
            self.correlation_id = self.id

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "message_type": self.message_type.value,
            "source_context": self.source_context.value,
            "target_context": self.target_context.value if self.target_context else None,
            "correlation_id": self.correlation_id,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }


class MessageFactory:
    """Builds well-formed bus messages."""

    @staticmethod
    def request(
        source: ContextId,
        message_type: MessageType,
        payload: Optional[Dict[str, Any]] = None,
        target: Optional[ContextId] = None,
    ) -> Message:
        """Create a request addressed to the owner of ``message_type``.

        Args:
            source: Requesting context
            message_type: Request type
            payload: Request parameters
            target: Explicit target, defaults to the type's owner

        Returns:
            Request message whose correlation id equals its id
        """
        if not message_type.is_request:
            raise ValueError(f"{message_type.value} is not a request type")
        message_id = str(uuid.uuid4())
        return Message(
            kind=MessageKind.REQUEST,
            message_type=message_type,
            source_context=source,
            target_context=target or message_type.owner,
            payload=dict(payload or {}),
            correlation_id=message_id,
            id=message_id,
        )

    @staticmethod
    def response(request: Message, payload: Optional[Dict[str, Any]] = None) -> Message:
        """Create the response to ``request``."""
        if request.kind is not MessageKind.REQUEST:
            raise ValueError("Responses can only be created for requests")
        return Message(
            kind=MessageKind.RESPONSE,
            message_type=request.message_type,
            source_context=request.target_context or request.message_type.owner,
            target_context=request.source_context,
            payload=dict(payload or {}),
            correlation_id=request.correlation_id,
        )

    @staticmethod
    def notification(
        source: ContextId,
        message_type: MessageType,
        payload: Optional[Dict[str, Any]] = None,
        target: Optional[ContextId] = None,
    ) -> Message:
        """Create a notification, optionally restricted to one subscriber."""
        if not message_type.is_notification:
            raise ValueError(f"{message_type.value} is not a notification type")
        return Message(
            kind=MessageKind.NOTIFICATION,
            message_type=message_type,
            source_context=source,
            target_context=target,
            payload=dict(payload or {}),
        )
