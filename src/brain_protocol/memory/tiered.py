"""Tiered conversation memory.

Three views are maintained per conversation:

- active: recent turns kept verbatim for prompts
- summary: condensed text covering older runs of turns
- archive: summarized turns, kept raw for export and audit

Compression moves the oldest run of active turns into a summary once the
active tier overflows. A turn moves from active to summarized exactly once.
"""

import logging
import math
from collections.abc import Sequence

from pydantic import BaseModel, Field

from ..core.config import Settings
from ..core.domain.conversation import Summary, TieredHistory, Turn
from ..core.exceptions import ConversationNotFoundError
from ..core.utils.tokens import TokenCounter, token_counter
from .services.summarizer import Summarizer, chronological
from .storage.base import ConversationStore

logger = logging.getLogger(__name__)

SUMMARIES_HEADER = "CONVERSATION SUMMARIES:\n"
RECENT_HEADER = "RECENT CONVERSATION:\n"

# Share of the active tier kept verbatim after an overflow compression
ACTIVE_KEEP_RATIO = 0.8


class TieredMemoryConfig(BaseModel):
    """Bounds for the tiered memory views."""

    max_active_turns: int = Field(default=10, ge=1, description="Active tier bound")
    summary_turn_count: int = Field(
        default=5,
        ge=2,
        description="Maximum turns folded into one summary"
    )
    max_archived_turns: int = Field(default=50, ge=0, description="Archive tier bound")
    max_tokens: int = Field(default=2000, ge=0, description="Prompt history budget")
    max_summaries: int = Field(
        default=3,
        ge=0,
        description="Summaries listed to adapters"
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "TieredMemoryConfig":
        return cls(
            max_active_turns=settings.max_active_turns,
            summary_turn_count=settings.summary_turn_count,
            max_archived_turns=settings.max_archived_turns,
            max_tokens=settings.history_max_tokens,
            max_summaries=settings.max_summaries,
        )


def format_turn(turn: Turn) -> str:
    return f"{turn.user_name or 'User'}: {turn.query}\nAssistant: {turn.response}"


class TieredMemoryManager:
    """Policy layer over a ConversationStore deciding when to compress turns."""

    def __init__(
        self,
        store: ConversationStore,
        summarizer: Summarizer,
        config: TieredMemoryConfig | None = None,
        counter: TokenCounter | None = None,
    ):
        self.store = store
        self.summarizer = summarizer
        self.config = config or TieredMemoryConfig()
        self.counter = counter or token_counter

    async def _require_conversation(self, conversation_id: str) -> None:
        if await self.store.get_conversation(conversation_id) is None:
            raise ConversationNotFoundError(conversation_id)

    async def _active_turns(self, conversation_id: str) -> list[Turn]:
        turns = await self.store.get_turns(conversation_id)
        return [turn for turn in turns if turn.is_active]

    async def add_turn(self, conversation_id: str, turn: Turn) -> str:
        """Append a turn, then compress the active tier if it overflowed.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        turn_id = await self.store.add_turn(conversation_id, turn)
        await self.check_and_summarize(conversation_id)
        return turn_id

    async def check_and_summarize(self, conversation_id: str) -> bool:
        """Compress the oldest active turns when the active tier overflows.

        Returns:
            True if a summary was created. Failures are logged and reported
            as False; the conversation stays usable uncompressed.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        await self._require_conversation(conversation_id)

        try:
            active = await self._active_turns(conversation_id)
            if len(active) <= self.config.max_active_turns:
                return False

            keep = math.floor(self.config.max_active_turns * ACTIVE_KEEP_RATIO)
            count = min(self.config.summary_turn_count, len(active) - keep)
            if count < 2:
                logger.debug(
                    f"Active tier of conversation {conversation_id} overflowed "
                    f"but only {count} turn(s) qualify for compression"
                )
                return False

            return await self._summarize(conversation_id, active[:count])

        except Exception as e:
            logger.error(f"Error summarizing turns for conversation {conversation_id}: {str(e)}")
            return False

    async def force_summarize(self, conversation_id: str) -> bool:
        """Compress the oldest active turns regardless of the active tier size.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
        """
        await self._require_conversation(conversation_id)

        try:
            active = await self._active_turns(conversation_id)
            if len(active) < 2:
                logger.warning(
                    f"Not enough active turns to summarize for conversation {conversation_id}"
                )
                return False

            count = min(self.config.summary_turn_count, len(active))
            return await self._summarize(conversation_id, active[:count])

        except Exception as e:
            logger.error(f"Error summarizing turns for conversation {conversation_id}: {str(e)}")
            return False

    async def _summarize(self, conversation_id: str, turns: Sequence[Turn]) -> bool:
        ordered = chronological(list(turns))
        draft = await self.summarizer.summarize(ordered)

        turn_ids = [turn.id for turn in ordered if turn.id]
        summary = Summary(
            content=draft.content,
            start_turn_id=turn_ids[0],
            end_turn_id=turn_ids[-1],
            metadata={"is_fallback": True} if draft.is_fallback else {},
        )
        summary_id = await self.store.compress(conversation_id, summary, turn_ids)

        logger.debug(
            f"Summarized {len(turn_ids)} turns for conversation {conversation_id} "
            f"into {summary_id}"
        )
        return True

    async def get_tiered_history(self, conversation_id: str) -> TieredHistory:
        """Active, summary and archive views, each timestamp-ascending."""
        turns = await self.store.get_turns(conversation_id)
        summaries = await self.store.get_summaries(conversation_id)

        active = [turn for turn in turns if turn.is_active]
        archived = [turn for turn in turns if not turn.is_active]
        archive_slice = (
            archived[-self.config.max_archived_turns:]
            if self.config.max_archived_turns
            else []
        )

        return TieredHistory(
            active_turns=active[-self.config.max_active_turns:],
            summaries=summaries,
            archived_turns=archive_slice,
        )

    async def get_recent_summaries(self, conversation_id: str) -> list[Summary]:
        """Newest summaries, bounded by ``max_summaries``, oldest first."""
        summaries = await self.store.get_summaries(conversation_id)
        if not self.config.max_summaries:
            return []
        return summaries[-self.config.max_summaries:]

    async def format_history_for_prompt(
        self,
        conversation_id: str,
        max_tokens: int | None = None,
    ) -> str:
        """Render tiered history as a single string under a token budget.

        Summaries are added oldest to newest. One that does not fit is
        dropped whole, except the newest, which may be truncated to what is
        left. Active turns are then added newest to oldest while they fit
        and emitted chronologically. Section headers count against the
        budget.
        """
        budget = self.config.max_tokens if max_tokens is None else max_tokens
        history = await self.get_tiered_history(conversation_id)

        used = 0
        summary_texts: list[str] = []
        if history.summaries:
            header_tokens = (
                self.counter.count_tokens(SUMMARIES_HEADER)
                + self.counter.count_tokens(RECENT_HEADER)
            )
            summary_texts, summary_tokens = self._fit_summaries(
                history.summaries, budget - header_tokens
            )
            if summary_texts:
                used = header_tokens + summary_tokens

        turn_texts: list[str] = []
        for turn in reversed(history.active_turns):
            text = f"{format_turn(turn)}\n\n"
            tokens = self.counter.count_tokens(text)
            if used + tokens > budget:
                break
            turn_texts.append(text)
            used += tokens
        turn_texts.reverse()

        parts: list[str] = []
        if summary_texts:
            parts.append(SUMMARIES_HEADER)
            parts.extend(summary_texts)
            parts.append(RECENT_HEADER)
        parts.extend(turn_texts)

        return "".join(parts).strip()

    def _fit_summaries(self, summaries: list[Summary], budget: int) -> tuple[list[str], int]:
        if budget <= 0:
            return [], 0

        texts: list[str] = []
        used = 0
        # Summaries are append-only, so storage order is creation order
        last = len(summaries) - 1
        for position, summary in enumerate(summaries):
            text = f"Summary: {summary.content}\n\n"
            tokens = self.counter.count_tokens(text)
            if used + tokens <= budget:
                texts.append(text)
                used += tokens
            elif position == last:
                truncated = self.counter.truncate_to_tokens(text, budget - used)
                if truncated:
                    texts.append(truncated)
                    used += self.counter.count_tokens(truncated)

        return texts, used
