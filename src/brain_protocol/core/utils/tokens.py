"""Token counting utilities for managing context window limits.

The default counter approximates one token per four characters. The
tiktoken counter can be passed wherever a ``TokenCounter`` is accepted.
"""

import math
from abc import ABC, abstractmethod

import tiktoken

ELLIPSIS = "...\n"


class TokenCounter(ABC):
    """Counts and truncates text against a token budget."""

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Count tokens in a text string."""
        pass

    def truncate_to_tokens(self, text: str, max_tokens: int, suffix: str = ELLIPSIS) -> str:
        """Cut ``text`` so that it, plus ``suffix``, fits in ``max_tokens``.

        Returns ``text`` unchanged when it already fits and an empty string
        when not even the suffix fits.
        """
        if self.count_tokens(text) <= max_tokens:
            return text
        if max_tokens <= 0 or self.count_tokens(suffix) >= max_tokens:
            return ""

        cut = text
        while cut:
            candidate = cut.rstrip() + suffix
            excess = self.count_tokens(candidate) - max_tokens
            if excess <= 0:
                return candidate
            cut = cut[: max(0, len(cut) - max(1, excess * 4))]
        return ""


class ApproximateTokenCounter(TokenCounter):
    """Heuristic counter: ``ceil(len(text) / 4)``."""

    def count_tokens(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / 4)


class TiktokenTokenCounter(TokenCounter):
    """Utility for counting tokens in text using tiktoken."""

    def __init__(self, encoding_name: str = "cl100k_base"):
        """Initialize token counter.

        Args:
            encoding_name: Name of the tiktoken encoding to use.
                          "cl100k_base" is used by GPT-4, GPT-3.5-turbo
        """
        self.encoding = tiktoken.get_encoding(encoding_name)

    def count_tokens(self, text: str) -> int:
        if not text:
            return 0
        return len(self.encoding.encode(text))


# Global token counter instance
token_counter = ApproximateTokenCounter()
