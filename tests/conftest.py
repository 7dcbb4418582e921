"""Pytest configuration and shared fixtures for brain-core tests."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from brain_core.bus import MessageBus
from brain_core.contexts.notes import NoteRef
from brain_core.contexts.profile import ProfileRef
from brain_core.conversation import InMemoryConversationStorage, Turn
from brain_core.memory import TieredMemoryConfig, TieredMemoryManager
from brain_core.memory.summarizer import ConversationSummarizer
from brain_core.utils import TokenCounter


@pytest.fixture
def message_bus():
    """Message bus with a short default timeout."""
    return MessageBus(default_timeout=1.0)


@pytest.fixture
def conversation_storage():
    """Empty in-memory conversation storage."""
    return InMemoryConversationStorage()


@pytest.fixture
def token_counter():
    """Token counter using the word-based estimate, no encoding download."""
    return TokenCounter(use_tiktoken=False)


@pytest.fixture
def summarizer():
    """Summarizer stub whose summary names the number of turns covered."""
    mock = MagicMock(spec=ConversationSummarizer)
    mock.summarize = AsyncMock(side_effect=lambda turns: f"Summary of {len(turns)} turns")
    return mock


@pytest.fixture
def memory_config():
    """Small tier bounds so promotions happen after a few turns."""
    return TieredMemoryConfig(
        max_active_turns=3,
        max_summaries=2,
        summary_turn_count=2,
        max_archived_turns=3,
        max_tokens=2000,
    )


@pytest.fixture
def memory_manager(conversation_storage, summarizer, memory_config, token_counter):
    """Tiered memory manager over the in-memory storage."""
    return TieredMemoryManager(
        storage=conversation_storage,
        summarizer=summarizer,
        config=memory_config,
        token_counter=token_counter,
    )


@pytest.fixture
def make_turn():
    """Factory for turns with strictly increasing timestamps."""
    start = datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(query=None, response=None, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        kwargs.setdefault("timestamp", start + timedelta(minutes=n))
        return Turn(
            query=query or f"Question {n}",
            response=response or f"Answer {n}",
            **kwargs,
        )

    return _make


@pytest.fixture
def sample_notes():
    """Notes as returned by a notes search."""
    return [
        NoteRef(
            id="note-1",
            title="Ecosystem Architecture",
            content="Ecosystem architecture treats a product as a set of interacting contexts "
                    "that communicate over a message bus instead of direct calls.",
            tags=["architecture", "design"],
        ),
        NoteRef(
            id="note-2",
            title="Message Bus Patterns",
            content="Request/response pairs are correlated by id; notifications fan out.",
            tags=["messaging"],
        ),
    ]


@pytest.fixture
def sample_profile():
    """User profile."""
    return ProfileRef(
        display_name="Sam Doe",
        headline="Software Engineer",
        summary="Builds knowledge management tools.",
        location="Berlin",
        current_roles=["Staff Engineer at Example Corp"],
        past_roles=["Engineer at Startup"],
        projects=["Personal brain"],
        skills=["Python", "Distributed systems"],
    )
