"""Token counting for prompt budgets.

Counts with tiktoken when the model's encoding can be loaded and falls back
to a word-based estimate otherwise.
"""

import re
from typing import Any, Dict, List

import tiktoken
from loguru import logger


_CJK = r'[\u4e00-\u9fff\u3400-\u4dbf\u3040-\u309f\u30a0-\u30ff]'


class TokenCounter:
    """Token counting utility with tiktoken support and fallback estimation."""

    def __init__(self, model: str = "gpt-4o-mini", use_tiktoken: bool = True):
        """Initialize the token counter.

        Args:
            model: Model name used to pick the tiktoken encoding
            use_tiktoken: Disable to always use the word-based estimate
        """
        self.model = model
        self.encoding = None

        if use_tiktoken:
            try:
                self.encoding = tiktoken.encoding_for_model(model)
                logger.debug(f"TokenCounter: Initialized with tiktoken for model {model}")
            except Exception as e:
                logger.warning(f"TokenCounter: Failed to load model {model}, using cl100k_base: {e}")
                try:
                    self.encoding = tiktoken.get_encoding("cl100k_base")
                except Exception as e2:
                    logger.error(f"TokenCounter: Failed to load cl100k_base encoding: {e2}")
        else:
            logger.debug("TokenCounter: Using word-based estimation")

    @property
    def uses_tiktoken(self) -> bool:
        return self.encoding is not None

    def count_tokens(self, text: str) -> int:
        """Count tokens in a text string.

        Args:
            text: Text to count tokens for

        Returns:
            Number of tokens in the text
        """
        if not text:
            return 0

        if self.encoding is not None:
            try:
                return len(self.encoding.encode(text))
            except Exception as e:
                logger.warning(f"TokenCounter: tiktoken encoding failed, using fallback: {e}")
        return self._fallback_count_tokens(text)

    def count_message_tokens(self, messages: List[Dict[str, Any]]) -> int:
        """Count tokens of chat messages including per-message overhead.

        Args:
            messages: List of ``{"role", "content"}`` dictionaries

        Returns:
            Total number of tokens
        """
        total_tokens = 0
        for message in messages:
            role = message.get("role", "")
            content = message.get("content", "")
            # Start, message and end markers
            total_tokens += self.count_tokens(role) + self.count_tokens(content) + 4
        return total_tokens

    def _fallback_count_tokens(self, text: str) -> int:
        # 1.3 tokens per word is the empirical ratio for mixed English/CJK text
        return int(self._count_words_with_cjk(text) * 1.3)

    @staticmethod
    def _count_words_with_cjk(text: str) -> int:
        total_count = 0
        for word in re.findall(r'\S+', text):
            cjk_chars = re.findall(_CJK, word)
            non_cjk_words = [part for part in re.split(_CJK, word) if part.strip()]
            total_count += len(cjk_chars) + len(non_cjk_words)
        return max(total_count, 1)
