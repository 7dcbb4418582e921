"""
Conversation summarizers.

A summarizer condenses a run of turns into plain text. It has no side
effects; persisting the summary is the memory manager's job.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from loguru import logger

from ..conversation.types import Turn
from ..errors import SummarizationError
from ..llm.base import LLMProvider, LLMProviderError, LLMRequest
from ..llm.prompts import PromptManager


class ConversationSummarizer(ABC):
    """Interface for turning conversation turns into a summary text."""

    @abstractmethod
    async def summarize(self, turns: List[Turn]) -> str:
        """Summarize turns.

        Args:
            turns: Turns to summarize, in any order

        Returns:
            Summary text

        Raises:
            SummarizationError: If no summary could be produced
        """
        pass


def render_turns(turns: List[Turn]) -> str:
    """Render turns chronologically as a transcript."""
    ordered = sorted(turns, key=lambda t: t.timestamp)
    return "\n\n".join(
        f"{turn.user_name or 'User'}: {turn.query}\nAssistant: {turn.response}"
        for turn in ordered
    )


class LLMConversationSummarizer(ConversationSummarizer):
    """Summarizer backed by a language model provider."""

    def __init__(
        self,
        provider: LLMProvider,
        model: Optional[str] = None,
        max_tokens: Optional[int] = 400,
        temperature: float = 0.3,
        prompt_manager: Optional[PromptManager] = None,
    ):
        """Initialize the summarizer.

        Args:
            provider: Provider used for the summary completion
            model: Model name, defaults to the provider's default model
            max_tokens: Completion budget for one summary
            temperature: Sampling temperature
            prompt_manager: Source of the summary templates
        """
        self.provider = provider
        self.model = model or provider.get_default_model()
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.prompt_manager = prompt_manager or PromptManager()

    async def summarize(self, turns: List[Turn]) -> str:
        if not turns:
            raise SummarizationError("Cannot summarize an empty list of turns")

        request = LLMRequest(
            messages=[
                {"role": "system", "content": self.prompt_manager.get_prompt("conversation_summary_system")},
                {"role": "user", "content": self.prompt_manager.get_prompt(
                    "conversation_summary",
                    conversation=render_turns(turns),
                )},
            ],
            model=self.model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

        try:
            response = await self.provider.generate(request)
        except LLMProviderError as e:
            raise SummarizationError(f"Summary generation failed: {e}") from e

        if not response.success:
            raise SummarizationError(f"Summary generation failed: {response.error}")

        content = response.content.strip()
        if not content:
            raise SummarizationError("Summary generation returned empty content")

        logger.debug(f"LLMConversationSummarizer: Summarized {len(turns)} turns into {len(content)} chars")
        return content
