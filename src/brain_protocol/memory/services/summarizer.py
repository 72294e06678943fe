"""Conversation summarization service for the summary tier."""

import logging
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field

from ...core.domain.conversation import Turn
from ...core.exceptions import SummarizationError
from ...core.llm.base import LanguageModel
from ...core.utils.tokens import TokenCounter, token_counter

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a precise conversation summarizer. Extract the key points, main "
    "topics and important details from a conversation between a user and an "
    "assistant. Keep the summary under 250 words, note any decisions, facts "
    "or action items, follow the flow of the conversation, and write in a "
    "neutral third-person tone without adding your own commentary."
)


class SummaryDraft(BaseModel):
    """Condensed text produced for a run of turns."""

    content: str = Field(..., description="Summary text")
    is_fallback: bool = Field(
        default=False,
        description="True when produced without the language model"
    )


class Summarizer(ABC):
    """Compresses a run of turns into condensed text."""

    @abstractmethod
    async def summarize(self, turns: list[Turn]) -> SummaryDraft:
        """Summarize turns.

        Raises:
            SummarizationError: If no summary can be produced
        """
        pass


def chronological(turns: list[Turn]) -> list[Turn]:
    if all(turn.timestamp for turn in turns):
        return sorted(turns, key=lambda turn: turn.timestamp)
    return list(turns)


def format_turns_for_summary(turns: list[Turn]) -> str:
    """Render turns chronologically as a plain transcript."""
    ordered = chronological(turns)
    return "\n\n".join(
        f"{turn.user_name or 'User'}: {turn.query}\nAssistant: {turn.response}"
        for turn in ordered
    )


def _clip(text: str, length: int = 50) -> str:
    return text[:length] + "..." if len(text) > length else text


def build_fallback_summary(turns: list[Turn]) -> str:
    """Deterministic summary used when the language model is unavailable."""
    ordered = chronological(turns)

    # First word of each query, when it is long enough to be a topic
    topics: list[str] = []
    for turn in ordered:
        words = turn.query.split()
        if words and len(words[0]) > 3 and words[0] not in topics:
            topics.append(words[0])

    topics_list = ", ".join(topics[:5]) or "various subjects"
    return (
        f"This conversation contains {len(ordered)} turns, starting with "
        f"\"{_clip(ordered[0].query)}\" and ending with \"{_clip(ordered[-1].query)}\". "
        f"Topics include: {topics_list}."
    )


class LLMSummarizer(Summarizer):
    """Summarizer backed by a language model with a deterministic fallback."""

    def __init__(
        self,
        language_model: LanguageModel | None,
        max_tokens: int = 500,
        counter: TokenCounter | None = None,
    ):
        """Initialize the summarizer.

        Args:
            language_model: Model used for summaries; None means fallback only
            max_tokens: Completion budget for a summary
            counter: Token counter used to check summary length
        """
        self.language_model = language_model
        self.max_tokens = max_tokens
        self.counter = counter or token_counter

    async def summarize(self, turns: list[Turn]) -> SummaryDraft:
        if not turns:
            raise SummarizationError("Cannot summarize an empty list of turns")

        if self.language_model is None:
            return SummaryDraft(content=build_fallback_summary(turns), is_fallback=True)

        prompt = (
            "Please summarize the following conversation, focusing on the key "
            "topics and important details:\n\n"
            f"{format_turns_for_summary(turns)}\n\n"
            "Summary:"
        )

        try:
            response = await self.language_model.complete(
                SYSTEM_PROMPT, prompt, max_tokens=self.max_tokens
            )
        except Exception as e:
            logger.error(f"Summarization failed, using fallback summary: {str(e)}")
            return SummaryDraft(content=build_fallback_summary(turns), is_fallback=True)

        content = response.text.strip()
        if not content:
            logger.warning("Language model returned an empty summary, using fallback")
            return SummaryDraft(content=build_fallback_summary(turns), is_fallback=True)

        # Verify token count
        actual_tokens = self.counter.count_tokens(content)
        if actual_tokens > self.max_tokens * 1.1:  # 10% buffer
            logger.warning(
                f"Summary exceeded token limit: {actual_tokens} > {self.max_tokens}"
            )

        return SummaryDraft(content=content)
