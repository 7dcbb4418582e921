"""Tests for TieredMemoryManager."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from brain_core.errors import SummarizationError
from brain_core.memory import TieredMemoryConfig, TieredMemoryManager


@pytest.fixture
def block_counter():
    """Token counter that counts one token per rendered block."""
    counter = MagicMock()
    counter.count_tokens.side_effect = lambda text: len(text.split("\n\n")) if text else 0
    return counter


async def add_turns(manager, conversation_id, make_turn, count):
    turns = []
    for _ in range(count):
        turn = make_turn()
        await manager.add_turn(conversation_id, turn)
        turns.append(turn)
    return turns


class TestTieredMemoryConfig:
    """Test cases for tier bound validation."""

    def test_defaults(self):
        config = TieredMemoryConfig()

        assert config.max_active_turns == 10
        assert config.max_summaries == 3
        assert config.summary_turn_count == 5
        assert config.max_archived_turns == 50

    @pytest.mark.parametrize("changes", [
        {"max_active_turns": 0},
        {"max_summaries": -1},
        {"summary_turn_count": 0},
        {"max_archived_turns": -1},
        {"max_tokens": 0},
    ])
    def test_invalid_bounds(self, changes):
        with pytest.raises(ValueError):
            TieredMemoryConfig(**changes)


class TestPromotion:
    """Test cases for moving turns between tiers."""

    @pytest.mark.asyncio
    async def test_summarizes_oldest_batch(self, conversation_storage, summarizer, token_counter, make_turn):
        """Four turns with three allowed active leave two active turns and one summary."""
        manager = TieredMemoryManager(
            conversation_storage,
            summarizer,
            TieredMemoryConfig(max_active_turns=3, summary_turn_count=2),
            token_counter,
        )
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")

        turns = await add_turns(manager, conversation_id, make_turn, 4)

        history = await manager.get_tiered_history(conversation_id)
        assert len(history.active_turns) == 2
        assert len(history.summaries) == 1
        assert history.summaries[0].covered_turn_ids == [turns[0].id, turns[1].id]
        assert [t.id for t in history.active_turns] == [turns[2].id, turns[3].id]
        summarized = summarizer.summarize.await_args.args[0]
        assert [t.id for t in summarized] == [turns[0].id, turns[1].id]

    @pytest.mark.asyncio
    async def test_bounds_hold_after_every_turn(self, memory_manager, conversation_storage, memory_config, make_turn):
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")

        for _ in range(15):
            await memory_manager.add_turn(conversation_id, make_turn())
            history = await memory_manager.get_tiered_history(conversation_id)
            assert len(history.active_turns) <= memory_config.max_active_turns
            assert len(history.summaries) <= memory_config.max_summaries
            assert len(history.archived_turns) <= memory_config.max_archived_turns

    @pytest.mark.asyncio
    async def test_archive_and_trim(self, memory_manager, conversation_storage, make_turn):
        """Summaries beyond the bound are archived; the archive keeps the newest turns."""
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")

        turns = await add_turns(memory_manager, conversation_id, make_turn, 10)

        history = await memory_manager.get_tiered_history(conversation_id)
        assert [t.id for t in history.active_turns] == [turns[8].id, turns[9].id]
        assert [s.covered_turn_ids for s in history.summaries] == [
            [turns[4].id, turns[5].id],
            [turns[6].id, turns[7].id],
        ]
        assert [t.query for t in history.archived_turns] == [t.query for t in turns[1:4]]

        stats = memory_manager.get_stats()
        assert stats["total_summaries_created"] == 4
        assert stats["total_summaries_archived"] == 2
        assert stats["total_turns_discarded"] == 1

    @pytest.mark.asyncio
    async def test_turn_order_is_preserved(self, memory_manager, conversation_storage, make_turn):
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")

        await add_turns(memory_manager, conversation_id, make_turn, 7)

        history = await memory_manager.get_tiered_history(conversation_id)
        timestamps = [t.timestamp for t in history.active_turns]
        assert timestamps == sorted(timestamps)
        assert history.total_turns == 7

    @pytest.mark.asyncio
    async def test_summarization_failure_is_retried(self, memory_manager, conversation_storage, summarizer, make_turn):
        """A failing summarizer leaves the turn stored and retries on the next turn."""
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")
        await add_turns(memory_manager, conversation_id, make_turn, 3)

        summarizer.summarize.side_effect = SummarizationError("model down")
        await memory_manager.add_turn(conversation_id, make_turn())

        history = await memory_manager.get_tiered_history(conversation_id)
        assert len(history.active_turns) == 4
        assert history.summaries == []
        assert memory_manager.get_stats()["total_summarization_failures"] == 1

        summarizer.summarize.side_effect = lambda turns: "Recovered summary"
        await memory_manager.add_turn(conversation_id, make_turn())

        history = await memory_manager.get_tiered_history(conversation_id)
        assert len(history.active_turns) == 3
        assert [s.content for s in history.summaries] == ["Recovered summary"]

    @pytest.mark.asyncio
    async def test_add_turn_to_missing_conversation(self, memory_manager, make_turn):
        with pytest.raises(ValueError):
            await memory_manager.add_turn("missing", make_turn())


class TestForceSummarize:
    """Test cases for force_summarize."""

    @pytest.mark.asyncio
    async def test_needs_two_turns(self, memory_manager, conversation_storage, make_turn):
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")
        await memory_manager.add_turn(conversation_id, make_turn())

        assert await memory_manager.force_summarize(conversation_id) is None

    @pytest.mark.asyncio
    async def test_summarizes_below_bound(self, memory_manager, conversation_storage, make_turn):
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")
        await add_turns(memory_manager, conversation_id, make_turn, 2)

        summary = await memory_manager.force_summarize(conversation_id)

        history = await memory_manager.get_tiered_history(conversation_id)
        assert summary.content == "Summary of 2 turns"
        assert history.active_turns == []
        assert [s.id for s in history.summaries] == [summary.id]

    @pytest.mark.asyncio
    async def test_failure_returns_none(self, memory_manager, conversation_storage, summarizer, make_turn):
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")
        await add_turns(memory_manager, conversation_id, make_turn, 2)
        summarizer.summarize.side_effect = SummarizationError("model down")

        assert await memory_manager.force_summarize(conversation_id) is None
        history = await memory_manager.get_tiered_history(conversation_id)
        assert len(history.active_turns) == 2


class TestContextForPrompt:
    """Test cases for rendering history into a prompt."""

    @pytest.mark.asyncio
    async def test_includes_turn_verbatim(self, memory_manager, conversation_storage, make_turn):
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")
        await memory_manager.add_turn(conversation_id, make_turn("What is X?", "X is a letter."))

        context = await memory_manager.get_context_for_prompt(conversation_id)

        assert context == "User: What is X?\nAssistant: X is a letter."

    @pytest.mark.asyncio
    async def test_summaries_before_turns(self, memory_manager, conversation_storage, make_turn):
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")
        await add_turns(memory_manager, conversation_id, make_turn, 4)

        context = await memory_manager.get_context_for_prompt(conversation_id)

        assert context.split("\n\n") == [
            "Summary: Summary of 2 turns",
            "User: Question 3\nAssistant: Answer 3",
            "User: Question 4\nAssistant: Answer 4",
        ]

    @pytest.mark.asyncio
    async def test_drops_oldest_turns_then_summaries(
        self, conversation_storage, summarizer, memory_config, block_counter, make_turn
    ):
        manager = TieredMemoryManager(conversation_storage, summarizer, memory_config, block_counter)
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")
        await add_turns(manager, conversation_id, make_turn, 6)

        # Two summaries and two active turns
        assert len((await manager.get_context_for_prompt(conversation_id)).split("\n\n")) == 4

        three = await manager.get_context_for_prompt(conversation_id, max_tokens=3)
        one = await manager.get_context_for_prompt(conversation_id, max_tokens=1)
        none = await manager.get_context_for_prompt(conversation_id, max_tokens=0)

        assert three.split("\n\n") == [
            "Summary: Summary of 2 turns",
            "Summary: Summary of 2 turns",
            "User: Question 6\nAssistant: Answer 6",
        ]
        assert one == "Summary: Summary of 2 turns"
        assert none == ""

    @pytest.mark.asyncio
    async def test_budget_is_inclusive(
        self, conversation_storage, summarizer, memory_config, block_counter, make_turn
    ):
        """A context whose count equals the budget is returned whole."""
        manager = TieredMemoryManager(conversation_storage, summarizer, memory_config, block_counter)
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")
        await add_turns(manager, conversation_id, make_turn, 4)

        exact = await manager.get_context_for_prompt(conversation_id, max_tokens=3)
        below = await manager.get_context_for_prompt(conversation_id, max_tokens=2)

        assert exact.split("\n\n") == [
            "Summary: Summary of 2 turns",
            "User: Question 3\nAssistant: Answer 3",
            "User: Question 4\nAssistant: Answer 4",
        ]
        assert below.split("\n\n") == [
            "Summary: Summary of 2 turns",
            "User: Question 4\nAssistant: Answer 4",
        ]

    @pytest.mark.asyncio
    async def test_missing_conversation(self, memory_manager):
        assert await memory_manager.get_context_for_prompt("missing") == ""


class TestConfiguration:
    """Test cases for reading and changing tier bounds."""

    def test_get_config_returns_copy(self, memory_manager):
        config = memory_manager.get_config()
        config.max_active_turns = 99

        assert memory_manager.config.max_active_turns == 3

    def test_set_config(self, memory_manager):
        updated = memory_manager.set_config(max_active_turns=5)

        assert updated.max_active_turns == 5
        assert memory_manager.config.summary_turn_count == 2

    def test_set_config_validates(self, memory_manager):
        with pytest.raises(ValueError):
            memory_manager.set_config(max_active_turns=0)

    @pytest.mark.asyncio
    async def test_new_bounds_apply_on_next_turn(self, memory_manager, conversation_storage, make_turn):
        conversation_id = await conversation_storage.create_conversation("cli", "room-1")
        await add_turns(memory_manager, conversation_id, make_turn, 3)

        memory_manager.set_config(max_active_turns=1, summary_turn_count=3)
        await memory_manager.add_turn(conversation_id, make_turn())

        history = await memory_manager.get_tiered_history(conversation_id)
        assert len(history.active_turns) == 1
        assert len(history.summaries) == 1
