"""Room to conversation binding and the active conversation pointer."""

from typing import Dict, Optional

from loguru import logger

from ..bus import ContextId, MessageBus, MessageFactory, MessageType
from .storage import ConversationStorage
from .types import Conversation


DEFAULT_ROOM_ID = "default-cli-room"


class ConversationManager:
    """Tracks which conversation belongs to which room.

    The manager keeps an in-process room cache in front of the storage and a
    pointer to the conversation currently in use. When a bus is supplied,
    conversation lifecycle notifications are published on it.
    """

    def __init__(
        self,
        storage: ConversationStorage,
        interface_type: str = "cli",
        default_room_id: str = DEFAULT_ROOM_ID,
        bus: Optional[MessageBus] = None,
    ):
        self.storage = storage
        self.interface_type = interface_type
        self.default_room_id = default_room_id
        self.bus = bus

        self._rooms: Dict[str, str] = {}
        self._current_room_id: Optional[str] = None
        self._current_conversation_id: Optional[str] = None

    @property
    def current_room_id(self) -> Optional[str]:
        return self._current_room_id

    @property
    def current_conversation_id(self) -> Optional[str]:
        return self._current_conversation_id

    def has_active_conversation(self) -> bool:
        return self._current_conversation_id is not None

    async def get_or_create_for_room(self, room_id: str) -> str:
        """Get the conversation bound to ``room_id``, creating it if needed.

        Args:
            room_id: Room identifier

        Returns:
            Conversation ID
        """
        conversation_id = self._rooms.get(room_id)
        if conversation_id is not None:
            return conversation_id

        conversation_id = await self.storage.get_conversation_by_room(room_id, self.interface_type)
        if conversation_id is None:
            conversation_id = await self.storage.create_conversation(self.interface_type, room_id)
            logger.info(f"ConversationManager: Created conversation {conversation_id} for room {room_id}")
            self._publish(MessageType.CONVERSATION_STARTED, {
                "conversation_id": conversation_id,
                "room_id": room_id,
                "interface_type": self.interface_type,
            })

        self._rooms[room_id] = conversation_id
        return conversation_id

    async def set_current_room(self, room_id: str) -> str:
        """Make the conversation of ``room_id`` the active one."""
        conversation_id = await self.get_or_create_for_room(room_id)
        self._current_room_id = room_id
        self._current_conversation_id = conversation_id
        logger.debug(f"ConversationManager: Switched to room {room_id} ({conversation_id})")
        return conversation_id

    async def initialize_conversation(self) -> str:
        """Ensure there is an active conversation, using the default room if none."""
        if self._current_conversation_id is not None:
            return self._current_conversation_id
        return await self.set_current_room(self._current_room_id or self.default_room_id)

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return await self.storage.get_conversation(conversation_id)

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation, clearing its room binding and the active pointer."""
        conversation = await self.storage.get_conversation(conversation_id)
        deleted = await self.storage.delete_conversation(conversation_id)

        for room_id in [r for r, c in self._rooms.items() if c == conversation_id]:
            del self._rooms[room_id]
        if self._current_conversation_id == conversation_id:
            self._current_conversation_id = None

        if deleted:
            logger.info(f"ConversationManager: Deleted conversation {conversation_id}")
            self._publish(MessageType.CONVERSATION_CLEARED, {
                "conversation_id": conversation_id,
                "room_id": conversation.room_id if conversation else None,
            })
        return deleted

    def _publish(self, message_type: MessageType, payload: dict) -> None:
        if self.bus is None:
            return
        self.bus.notify(MessageFactory.notification(ContextId.CONVERSATION, message_type, payload))
