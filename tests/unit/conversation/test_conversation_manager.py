"""Tests for ConversationManager."""

from unittest.mock import MagicMock

import pytest

from brain_core.bus import ContextId, MessageType
from brain_core.conversation import DEFAULT_ROOM_ID, ConversationManager


@pytest.fixture
def manager(conversation_storage):
    return ConversationManager(conversation_storage)


class TestRooms:
    """Test cases for room to conversation binding."""

    @pytest.mark.asyncio
    async def test_same_room_same_conversation(self, manager):
        first = await manager.get_or_create_for_room("room-1")
        second = await manager.get_or_create_for_room("room-1")
        other = await manager.get_or_create_for_room("room-2")

        assert first == second
        assert other != first

    @pytest.mark.asyncio
    async def test_existing_conversation_is_reused(self, conversation_storage):
        """A new manager finds the conversation bound in storage."""
        existing = await conversation_storage.create_conversation("cli", "room-1")
        manager = ConversationManager(conversation_storage)

        assert await manager.get_or_create_for_room("room-1") == existing

    @pytest.mark.asyncio
    async def test_set_current_room(self, manager):
        assert not manager.has_active_conversation()

        conversation_id = await manager.set_current_room("room-1")

        assert manager.current_room_id == "room-1"
        assert manager.current_conversation_id == conversation_id
        assert manager.has_active_conversation()

    @pytest.mark.asyncio
    async def test_initialize_uses_default_room(self, manager):
        conversation_id = await manager.initialize_conversation()

        assert manager.current_room_id == DEFAULT_ROOM_ID
        assert await manager.initialize_conversation() == conversation_id

    @pytest.mark.asyncio
    async def test_initialize_keeps_current_room(self, manager):
        room_conversation = await manager.set_current_room("room-1")

        assert await manager.initialize_conversation() == room_conversation


class TestDeletion:
    """Test cases for deleting conversations."""

    @pytest.mark.asyncio
    async def test_delete_clears_binding(self, manager):
        conversation_id = await manager.set_current_room("room-1")

        assert await manager.delete_conversation(conversation_id) is True
        assert manager.current_conversation_id is None
        assert await manager.get_conversation(conversation_id) is None

        recreated = await manager.get_or_create_for_room("room-1")
        assert recreated != conversation_id

    @pytest.mark.asyncio
    async def test_delete_missing(self, manager):
        assert await manager.delete_conversation("missing") is False


class TestNotifications:
    """Test cases for lifecycle notifications."""

    @pytest.mark.asyncio
    async def test_lifecycle_notifications(self, conversation_storage, message_bus):
        started = MagicMock()
        cleared = MagicMock()
        message_bus.subscribe(ContextId.NOTES, MessageType.CONVERSATION_STARTED, started)
        message_bus.subscribe(ContextId.NOTES, MessageType.CONVERSATION_CLEARED, cleared)
        manager = ConversationManager(conversation_storage, bus=message_bus)

        conversation_id = await manager.get_or_create_for_room("room-1")
        await manager.get_or_create_for_room("room-1")
        await manager.delete_conversation(conversation_id)
        await message_bus.drain()

        started.assert_called_once_with({
            "conversation_id": conversation_id,
            "room_id": "room-1",
            "interface_type": "cli",
        })
        cleared.assert_called_once_with({"conversation_id": conversation_id, "room_id": "room-1"})
