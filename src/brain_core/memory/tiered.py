"""Tiered conversation memory.

Turns move through three tiers as a conversation grows:

1. active turns, kept verbatim;
2. summaries, each covering ``summary_turn_count`` of the oldest active turns;
3. archived turns, the frozen turns of summaries that fell out of the
   summary tier, trimmed to ``max_archived_turns``.

Promotion happens as a side effect of :meth:`TieredMemoryManager.add_turn`.
Callers must await ``add_turn`` before adding another turn to the same
conversation.
"""

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, List, Optional

from loguru import logger

from ..conversation.storage import ConversationStorage
from ..conversation.types import Conversation, Summary, TieredHistory, Turn
from ..utils.token_counter import TokenCounter
from .summarizer import ConversationSummarizer


@dataclass
class TieredMemoryConfig:
    """Bounds of the memory tiers."""
    max_active_turns: int = 10
    max_summaries: int = 3
    summary_turn_count: int = 5
    max_archived_turns: int = 50
    max_tokens: int = 2000
    token_model: str = "gpt-4o-mini"

    def __post_init__(self):
        """Validate tier bounds."""
        if self.max_active_turns < 1:
            raise ValueError("max_active_turns must be at least 1")
        if self.max_summaries < 0:
            raise ValueError("max_summaries must be non-negative")
        if self.summary_turn_count < 1:
            raise ValueError("summary_turn_count must be at least 1")
        if self.max_archived_turns < 0:
            raise ValueError("max_archived_turns must be non-negative")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be at least 1")


def format_turn(turn: Turn) -> str:
    """Prompt block for one turn."""
    return f"User: {turn.query}\nAssistant: {turn.response}"


def format_summary(summary: Summary) -> str:
    """Prompt block for one summary."""
    return f"Summary: {summary.content}"


class TieredMemoryManager:
    """Maintains the active, summarized and archived tiers of conversations."""

    def __init__(
        self,
        storage: ConversationStorage,
        summarizer: ConversationSummarizer,
        config: Optional[TieredMemoryConfig] = None,
        token_counter: Optional[TokenCounter] = None,
    ):
        """Initialize the memory manager.

        Args:
            storage: Conversation storage holding the tiers
            summarizer: Summarizer used for promotions
            config: Tier bounds
            token_counter: Counter for prompt budgets
        """
        self.storage = storage
        self.summarizer = summarizer
        self.config = config or TieredMemoryConfig()
        self.token_counter = token_counter or TokenCounter(self.config.token_model)

        # Statistics
        self.total_turns_added = 0
        self.total_summaries_created = 0
        self.total_summaries_archived = 0
        self.total_turns_discarded = 0
        self.total_summarization_failures = 0

        logger.info(
            f"TieredMemoryManager: Initialized with max_active_turns={self.config.max_active_turns}, "
            f"max_summaries={self.config.max_summaries}, "
            f"summary_turn_count={self.config.summary_turn_count}, "
            f"max_archived_turns={self.config.max_archived_turns}"
        )

    async def add_turn(self, conversation_id: str, turn: Turn) -> str:
        """Append a turn and promote tiers that exceed their bounds.

        The turn is always stored. If summarization fails, promotion is
        skipped and retried on the next call, so the active tier may exceed
        its bound until then.

        Args:
            conversation_id: Target conversation
            turn: Turn to append

        Returns:
            ID of the stored turn
        """
        turn_id = await self.storage.add_turn(conversation_id, turn)
        self.total_turns_added += 1
        logger.debug(f"TieredMemoryManager: Added turn {turn_id} to conversation {conversation_id}")

        await self._rebalance(conversation_id)
        return turn_id

    async def force_summarize(self, conversation_id: str) -> Optional[Summary]:
        """Summarize the oldest active batch regardless of the active bound.

        Returns:
            The new summary, or None if there were fewer than two active
            turns or summarization failed
        """
        conversation = await self._require(conversation_id)
        if len(conversation.active_turns) < 2:
            logger.debug(
                f"TieredMemoryManager: Not enough active turns to summarize in {conversation_id}"
            )
            return None

        summary = await self._summarize_batch(conversation)
        if summary is None:
            return None

        await self._archive_overflow(conversation)
        await self._save_tiers(conversation)
        return summary

    async def _rebalance(self, conversation_id: str) -> None:
        conversation = await self._require(conversation_id)

        changed = False
        while len(conversation.active_turns) > self.config.max_active_turns:
            if await self._summarize_batch(conversation) is None:
                break
            changed = True

        if await self._archive_overflow(conversation):
            changed = True

        if changed:
            await self._save_tiers(conversation)

    async def _summarize_batch(self, conversation: Conversation) -> Optional[Summary]:
        """Move the oldest active batch into a new summary on ``conversation``."""
        batch = conversation.active_turns[:self.config.summary_turn_count]
        try:
            content = await self.summarizer.summarize(batch)
        except Exception as e:
            self.total_summarization_failures += 1
            logger.warning(
                f"TieredMemoryManager: Summarization failed for conversation {conversation.id}, "
                f"retrying on next turn: {e}"
            )
            return None

        summary = Summary(
            conversation_id=conversation.id,
            content=content,
            covered_turn_ids=[t.id for t in batch],
        )
        conversation.active_turns = conversation.active_turns[len(batch):]
        conversation.summaries.append(summary)
        self.total_summaries_created += 1
        logger.info(
            f"TieredMemoryManager: Summarized {len(batch)} turns of conversation {conversation.id}"
        )
        return summary

    async def _archive_overflow(self, conversation: Conversation) -> bool:
        """Archive summaries beyond the bound and trim the archive."""
        changed = False
        while len(conversation.summaries) > self.config.max_summaries:
            dropped = conversation.summaries.pop(0)
            covered = await self.storage.get_turns(conversation.id, turn_ids=dropped.covered_turn_ids)
            conversation.archived_turns.extend(t.frozen_copy() for t in covered)
            self.total_summaries_archived += 1
            changed = True
            logger.info(
                f"TieredMemoryManager: Archived {len(covered)} turns of conversation {conversation.id}"
            )

        overflow = len(conversation.archived_turns) - self.config.max_archived_turns
        if overflow > 0:
            conversation.archived_turns = conversation.archived_turns[overflow:]
            self.total_turns_discarded += overflow
            changed = True
            logger.debug(
                f"TieredMemoryManager: Discarded {overflow} archived turns of conversation {conversation.id}"
            )
        return changed

    async def _save_tiers(self, conversation: Conversation) -> None:
        await self.storage.update_conversation(
            conversation.id,
            active_turns=conversation.active_turns,
            summaries=conversation.summaries,
            archived_turns=conversation.archived_turns,
        )

    async def _require(self, conversation_id: str) -> Conversation:
        conversation = await self.storage.get_conversation(conversation_id)
        if conversation is None:
            raise ValueError(f"Conversation with ID {conversation_id} not found")
        return conversation

    async def get_context_for_prompt(
        self,
        conversation_id: str,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Render summaries and active turns for a prompt.

        Summaries come first, then active turns, each oldest first. Whole
        active turns are dropped from the oldest until the text fits
        ``max_tokens``; if it still does not fit, whole summaries are dropped
        the same way. A block is never cut. The budget is inclusive: a text
        of exactly ``max_tokens`` tokens is kept whole.

        Args:
            conversation_id: Conversation to render
            max_tokens: Token budget, defaults to ``config.max_tokens``

        Returns:
            The rendered history, empty if nothing fits or the
            conversation does not exist
        """
        conversation = await self.storage.get_conversation(conversation_id)
        if conversation is None:
            return ""

        budget = self.config.max_tokens if max_tokens is None else max_tokens
        summary_blocks = [format_summary(s) for s in conversation.summaries]
        turn_blocks = [format_turn(t) for t in conversation.active_turns]

        while turn_blocks and self._count(summary_blocks + turn_blocks) > budget:
            turn_blocks.pop(0)
        while summary_blocks and self._count(summary_blocks + turn_blocks) > budget:
            summary_blocks.pop(0)

        dropped = len(conversation.summaries) + len(conversation.active_turns) - len(summary_blocks) - len(turn_blocks)
        if dropped:
            logger.debug(
                f"TieredMemoryManager: Dropped {dropped} blocks of conversation {conversation_id} "
                f"to fit {budget} tokens"
            )
        return "\n\n".join(summary_blocks + turn_blocks)

    def _count(self, blocks: List[str]) -> int:
        return self.token_counter.count_tokens("\n\n".join(blocks))

    async def get_tiered_history(self, conversation_id: str) -> TieredHistory:
        """Get a snapshot of all three tiers."""
        conversation = await self._require(conversation_id)
        return TieredHistory(
            active_turns=conversation.active_turns,
            summaries=conversation.summaries,
            archived_turns=conversation.archived_turns,
        )

    def get_config(self) -> TieredMemoryConfig:
        """Get a copy of the tier bounds."""
        return replace(self.config)

    def set_config(self, **changes: Any) -> TieredMemoryConfig:
        """Change tier bounds; new bounds apply from the next ``add_turn``."""
        self.config = replace(self.config, **changes)
        if "token_model" in changes:
            self.token_counter = TokenCounter(self.config.token_model)
        logger.info(f"TieredMemoryManager: Updated config {changes}")
        return self.get_config()

    def get_stats(self) -> Dict[str, Any]:
        """Get memory manager statistics."""
        return {
            "config": asdict(self.config),
            "total_turns_added": self.total_turns_added,
            "total_summaries_created": self.total_summaries_created,
            "total_summaries_archived": self.total_summaries_archived,
            "total_turns_discarded": self.total_turns_discarded,
            "total_summarization_failures": self.total_summarization_failures,
        }
