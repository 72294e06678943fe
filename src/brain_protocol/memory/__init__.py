"""Conversation memory: storage backends, summarization and tiered history."""

from .services.summarizer import LLMSummarizer, Summarizer, SummaryDraft
from .storage import (
    ConversationStore,
    InMemoryConversationStore,
    RedisConversationStore,
)
from .tiered import TieredMemoryConfig, TieredMemoryManager

__all__ = [
    "ConversationStore",
    "InMemoryConversationStore",
    "LLMSummarizer",
    "RedisConversationStore",
    "Summarizer",
    "SummaryDraft",
    "TieredMemoryConfig",
    "TieredMemoryManager",
]
