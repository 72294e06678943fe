"""Conversation storage backends."""

from .base import DEFAULT_ROOM_LOOKUP_PRECEDENCE, ConversationStore
from .in_memory import InMemoryConversationStore
from .redis_store import RedisConnectionError, RedisConversationStore

__all__ = [
    "DEFAULT_ROOM_LOOKUP_PRECEDENCE",
    "ConversationStore",
    "InMemoryConversationStore",
    "RedisConnectionError",
    "RedisConversationStore",
]
