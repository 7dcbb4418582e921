"""Conversation storage interface and in-memory implementation.

The storage owns conversations and their tiers. Tier transitions are decided
by :class:`~brain_core.memory.tiered.TieredMemoryManager`, which writes the
resulting tiers back through ``update_conversation``.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Set

from loguru import logger

from .types import Conversation, ConversationInfo, SearchCriteria, Summary, Turn


class ConversationStorage(ABC):
    """Persistence collaborator for conversations."""

    @abstractmethod
    async def create_conversation(
        self,
        interface_type: str,
        room_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Create a conversation bound to a room.

        Args:
            interface_type: Interface the conversation belongs to (e.g. "cli")
            room_id: Room identifier
            metadata: Initial metadata

        Returns:
            ID of the new conversation
        """
        pass

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        """Get a conversation with all of its tiers, None if not found."""
        pass

    @abstractmethod
    async def get_conversation_by_room(
        self,
        room_id: str,
        interface_type: Optional[str] = None,
    ) -> Optional[str]:
        """Get the ID of the conversation bound to a room, None if unbound."""
        pass

    @abstractmethod
    async def update_conversation(self, conversation_id: str, **updates: Any) -> bool:
        """Replace fields of a conversation.

        Accepted fields: ``active_turns``, ``summaries``, ``archived_turns``,
        ``metadata``, ``room_id``, ``interface_type``.

        Returns:
            True if updated, False if the conversation does not exist

        Raises:
            ValueError: If an unknown field is given
        """
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation and everything it holds."""
        pass

    @abstractmethod
    async def add_turn(self, conversation_id: str, turn: Turn) -> str:
        """Append a turn to the active tier.

        Returns:
            ID of the stored turn

        Raises:
            ValueError: If the conversation does not exist
        """
        pass

    @abstractmethod
    async def get_turns(
        self,
        conversation_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
        turn_ids: Optional[List[str]] = None,
    ) -> List[Turn]:
        """Get stored turns oldest first, optionally restricted to ``turn_ids``."""
        pass

    @abstractmethod
    async def update_turn_metadata(
        self,
        conversation_id: str,
        turn_id: str,
        metadata: Dict[str, Any],
    ) -> bool:
        """Merge metadata into an active turn.

        Returns:
            True if updated, False if the turn is not in the active tier
        """
        pass

    @abstractmethod
    async def add_summary(self, conversation_id: str, summary: Summary) -> str:
        """Append a summary to the summary tier."""
        pass

    @abstractmethod
    async def get_summaries(self, conversation_id: str) -> List[Summary]:
        """Get summaries oldest first."""
        pass

    @abstractmethod
    async def find_conversations(self, criteria: SearchCriteria) -> List[ConversationInfo]:
        """Find conversations matching ``criteria``, most recently updated first."""
        pass

    @abstractmethod
    async def get_recent_conversations(
        self,
        limit: int = 10,
        interface_type: Optional[str] = None,
    ) -> List[ConversationInfo]:
        """Get the most recently updated conversations."""
        pass

    @abstractmethod
    async def update_metadata(self, conversation_id: str, metadata: Dict[str, Any]) -> bool:
        """Merge metadata into a conversation."""
        pass

    @abstractmethod
    async def get_metadata(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        """Get a copy of a conversation's metadata, None if not found."""
        pass


class InMemoryConversationStorage(ConversationStorage):
    """Dictionary-backed conversation storage.

    Objects are copied on the way in and out, so callers never share state
    with the store. Besides the tiers, a per-conversation turn log keeps every
    turn still referenced by a tier or by a summary; turns that fall out of
    the archive are purged from it.
    """

    _UPDATABLE_FIELDS = {
        "active_turns",
        "summaries",
        "archived_turns",
        "metadata",
        "room_id",
        "interface_type",
    }

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._turn_log: Dict[str, List[Turn]] = {}
        self._room_index: Dict[str, str] = {}

    @staticmethod
    def _room_key(room_id: str, interface_type: str) -> str:
        return f"{interface_type}:{room_id}"

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ValueError(f"Conversation with ID {conversation_id} not found")
        return conversation

    def _prune_turn_log(self, conversation: Conversation) -> None:
        referenced: Set[str] = {t.id for t in conversation.active_turns}
        referenced.update(t.id for t in conversation.archived_turns)
        for summary in conversation.summaries:
            referenced.update(summary.covered_turn_ids)

        log = self._turn_log.get(conversation.id, [])
        kept = [t for t in log if t.id in referenced]
        if len(kept) != len(log):
            logger.debug(
                f"InMemoryConversationStorage: Purged {len(log) - len(kept)} turns "
                f"from conversation {conversation.id}"
            )
        self._turn_log[conversation.id] = kept

    async def create_conversation(
        self,
        interface_type: str,
        room_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> str:
        conversation = Conversation(
            interface_type=interface_type,
            room_id=room_id,
            metadata=dict(metadata or {}),
        )
        self._conversations[conversation.id] = conversation
        self._turn_log[conversation.id] = []
        self._room_index[self._room_key(room_id, interface_type)] = conversation.id
        logger.debug(
            f"InMemoryConversationStorage: Created conversation {conversation.id} for room {room_id}"
        )
        return conversation.id

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        conversation = self._conversations.get(conversation_id)
        return copy.deepcopy(conversation) if conversation else None

    async def get_conversation_by_room(
        self,
        room_id: str,
        interface_type: Optional[str] = None,
    ) -> Optional[str]:
        if interface_type is not None:
            return self._room_index.get(self._room_key(room_id, interface_type))
        for conversation in self._conversations.values():
            if conversation.room_id == room_id:
                return conversation.id
        return None

    async def update_conversation(self, conversation_id: str, **updates: Any) -> bool:
        unknown = set(updates) - self._UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update conversation fields: {sorted(unknown)}")

        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return False

        old_key = self._room_key(conversation.room_id, conversation.interface_type)
        for name, value in updates.items():
            setattr(conversation, name, copy.deepcopy(value))

        new_key = self._room_key(conversation.room_id, conversation.interface_type)
        if new_key != old_key:
            if self._room_index.get(old_key) == conversation_id:
                del self._room_index[old_key]
            self._room_index[new_key] = conversation_id

        self._prune_turn_log(conversation)
        conversation.touch()
        return True

    async def delete_conversation(self, conversation_id: str) -> bool:
        conversation = self._conversations.pop(conversation_id, None)
        if conversation is None:
            return False
        self._turn_log.pop(conversation_id, None)
        key = self._room_key(conversation.room_id, conversation.interface_type)
        if self._room_index.get(key) == conversation_id:
            del self._room_index[key]
        logger.debug(f"InMemoryConversationStorage: Deleted conversation {conversation_id}")
        return True

    async def add_turn(self, conversation_id: str, turn: Turn) -> str:
        conversation = self._require(conversation_id)
        stored = copy.deepcopy(turn)
        conversation.active_turns.append(stored)
        self._turn_log[conversation_id].append(stored)
        conversation.touch()
        return stored.id

    async def get_turns(
        self,
        conversation_id: str,
        limit: Optional[int] = None,
        offset: int = 0,
        turn_ids: Optional[List[str]] = None,
    ) -> List[Turn]:
        turns = self._turn_log.get(conversation_id, [])
        if turn_ids is not None:
            wanted = set(turn_ids)
            turns = [t for t in turns if t.id in wanted]
        turns = sorted(turns, key=lambda t: t.timestamp)
        end = offset + limit if limit is not None else None
        return copy.deepcopy(turns[offset:end])

    async def update_turn_metadata(
        self,
        conversation_id: str,
        turn_id: str,
        metadata: Dict[str, Any],
    ) -> bool:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return False
        for turn in conversation.active_turns:
            if turn.id == turn_id:
                turn.metadata.update(metadata)
                for logged in self._turn_log.get(conversation_id, []):
                    if logged.id == turn_id and logged is not turn:
                        logged.metadata.update(metadata)
                conversation.touch()
                return True
        return False

    async def add_summary(self, conversation_id: str, summary: Summary) -> str:
        conversation = self._require(conversation_id)
        stored = copy.deepcopy(summary)
        stored.conversation_id = conversation_id
        conversation.summaries.append(stored)
        conversation.touch()
        return stored.id

    async def get_summaries(self, conversation_id: str) -> List[Summary]:
        conversation = self._conversations.get(conversation_id)
        return copy.deepcopy(conversation.summaries) if conversation else []

    async def find_conversations(self, criteria: SearchCriteria) -> List[ConversationInfo]:
        results: List[ConversationInfo] = []
        for conversation in self._conversations.values():
            if criteria.interface_type and conversation.interface_type != criteria.interface_type:
                continue
            if criteria.room_id and conversation.room_id != criteria.room_id:
                continue
            if criteria.start_date and conversation.created_at < criteria.start_date:
                continue
            if criteria.end_date and conversation.created_at > criteria.end_date:
                continue

            turns = self._turn_log.get(conversation.id, [])
            if criteria.query:
                needle = criteria.query.lower()
                if not any(
                    needle in t.query.lower() or needle in t.response.lower()
                    for t in turns
                ):
                    continue

            results.append(ConversationInfo(
                id=conversation.id,
                interface_type=conversation.interface_type,
                room_id=conversation.room_id,
                started_at=conversation.created_at,
                updated_at=conversation.updated_at,
                turn_count=len(turns),
                metadata=dict(conversation.metadata),
            ))

        results.sort(key=lambda info: info.updated_at, reverse=True)
        end = criteria.offset + criteria.limit if criteria.limit is not None else None
        return results[criteria.offset:end]

    async def get_recent_conversations(
        self,
        limit: int = 10,
        interface_type: Optional[str] = None,
    ) -> List[ConversationInfo]:
        return await self.find_conversations(
            SearchCriteria(interface_type=interface_type, limit=limit)
        )

    async def update_metadata(self, conversation_id: str, metadata: Dict[str, Any]) -> bool:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return False
        conversation.metadata.update(metadata)
        conversation.touch()
        return True

    async def get_metadata(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        conversation = self._conversations.get(conversation_id)
        return dict(conversation.metadata) if conversation else None

    def clear(self) -> None:
        """Remove all conversations."""
        self._conversations.clear()
        self._turn_log.clear()
        self._room_index.clear()
