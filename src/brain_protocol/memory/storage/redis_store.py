"""Redis-backed conversation store.

Key Schema:
    conversation:{id}:v1 - JSON Conversation
    conversation:{id}:turns - Hash of turn_id -> JSON Turn
    conversation:{id}:turn_ids - List of turn ids in insertion order
    conversation:{id}:summaries - List of JSON Summary, append-only
    turn:{id}:conversation - Owning conversation id
    room:{interface}:{room_id} - Conversation id for the room
    conversations:index - Sorted set of conversation ids scored by updated_at
    lock:conversation:{id} - Lock guarding turn state transitions
"""

import logging
import uuid
from collections.abc import Sequence
from typing import Any

import redis.asyncio as redis
from redis.asyncio.lock import Lock

from ...core.domain.conversation import (
    Conversation,
    ConversationInfo,
    InterfaceType,
    NewConversation,
    SearchCriteria,
    Summary,
    Turn,
    TurnState,
    TurnUpdate,
)
from ...core.exceptions import (
    BrainProtocolError,
    CompressionConflictError,
    ConversationNotFoundError,
    DuplicateConversationError,
    DuplicateTurnError,
    TurnNotFoundError,
)
from .base import (
    ConversationStore,
    apply_turn_update,
    matches_criteria,
    paginate,
    room_key,
    to_info,
    utc_now,
)

logger = logging.getLogger(__name__)


class RedisConnectionError(BrainProtocolError):
    """Exception raised for Redis connection issues."""
    pass


class RedisConversationStore(ConversationStore):
    """Conversation store persisting JSON payloads in Redis."""

    INDEX_KEY = "conversations:index"

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        room_lookup_precedence: Sequence[InterfaceType | str] | None = None,
        redis_client: redis.Redis | None = None,
    ):
        """Initialize the Redis store.

        Args:
            redis_url: Connection URL used by ``initialize``
            room_lookup_precedence: Interface probe order for room lookups
            redis_client: Pre-built client, skips connecting in ``initialize``
        """
        super().__init__(room_lookup_precedence)
        self.redis_url = redis_url
        self.redis_client: redis.Redis | None = redis_client
        self._owns_client = redis_client is None
        self._lock_timeout = 30  # seconds

    async def initialize(self) -> None:
        """Establish Redis connection."""
        if self.redis_client is not None and not self._owns_client:
            return

        try:
            self.redis_client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True
            )

            # Test connection
            await self.redis_client.ping()
            logger.info("Connected to Redis for conversation storage")

        except Exception as e:
            logger.error(f"Failed to connect to Redis: {str(e)}")
            raise RedisConnectionError(f"Redis connection failed: {str(e)}") from e

    async def cleanup(self) -> None:
        """Close Redis connection."""
        if self.redis_client and self._owns_client:
            await self.redis_client.aclose()
            self.redis_client = None
            logger.info("Disconnected from Redis")

    @property
    def client(self) -> redis.Redis:
        if not self.redis_client:
            raise RedisConnectionError("Redis client not connected")
        return self.redis_client

    def _conversation_key(self, conversation_id: str) -> str:
        return f"conversation:{conversation_id}:v1"

    def _turns_key(self, conversation_id: str) -> str:
        return f"conversation:{conversation_id}:turns"

    def _turn_ids_key(self, conversation_id: str) -> str:
        return f"conversation:{conversation_id}:turn_ids"

    def _summaries_key(self, conversation_id: str) -> str:
        return f"conversation:{conversation_id}:summaries"

    def _turn_owner_key(self, turn_id: str) -> str:
        return f"turn:{turn_id}:conversation"

    def _room_key(self, room_id: str, interface_type: InterfaceType) -> str:
        return f"room:{room_key(room_id, interface_type)}"

    def _lock(self, conversation_id: str) -> Lock:
        return Lock(
            self.client,
            f"lock:conversation:{conversation_id}",
            timeout=self._lock_timeout,
            blocking_timeout=5
        )

    async def _load_conversation(self, conversation_id: str) -> Conversation | None:
        raw = await self.client.get(self._conversation_key(conversation_id))
        return Conversation.model_validate_json(raw) if raw else None

    async def _require(self, conversation_id: str) -> Conversation:
        conversation = await self._load_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def _touch(
        self,
        conversation_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """Bump ``updated_at`` and merge ``metadata`` into the stored record.

        The record is reloaded under the conversation lock so concurrent
        writers never overwrite each other, and a conversation deleted in the
        meantime is not recreated. Must not be called while holding the lock.
        """
        async with self._lock(conversation_id):
            conversation = await self._load_conversation(conversation_id)
            if conversation is None:
                return False

            if metadata:
                conversation.metadata = {**conversation.metadata, **metadata}
            conversation.updated_at = max(utc_now(), conversation.updated_at)
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.set(self._conversation_key(conversation_id), conversation.model_dump_json())
                pipe.zadd(self.INDEX_KEY, {conversation_id: conversation.updated_at.timestamp()})
                await pipe.execute()
        return True

    async def _load_turns(self, conversation_id: str) -> list[Turn]:
        turn_ids = await self.client.lrange(self._turn_ids_key(conversation_id), 0, -1)
        if not turn_ids:
            return []

        payloads = await self.client.hmget(self._turns_key(conversation_id), turn_ids)
        turns = [Turn.model_validate_json(raw) for raw in payloads if raw]
        return sorted(turns, key=lambda turn: turn.timestamp)

    async def create_conversation(self, descriptor: NewConversation) -> str:
        index_key = self._room_key(descriptor.room_id, descriptor.interface_type)
        existing = await self.client.get(index_key)
        if existing:
            return existing

        conversation_id = descriptor.id or str(uuid.uuid4())
        if await self.client.exists(self._conversation_key(conversation_id)):
            raise DuplicateConversationError(conversation_id)

        created_at = descriptor.started_at or utc_now()
        conversation = Conversation(
            id=conversation_id,
            interface_type=descriptor.interface_type,
            room_id=descriptor.room_id,
            created_at=created_at,
            updated_at=descriptor.updated_at or created_at,
            metadata=dict(descriptor.metadata),
        )

        # NX on the room index keeps concurrent creators on one conversation
        claimed = await self.client.set(index_key, conversation_id, nx=True)
        if not claimed:
            return await self.client.get(index_key)

        async with self.client.pipeline(transaction=True) as pipe:
            pipe.set(self._conversation_key(conversation_id), conversation.model_dump_json())
            pipe.zadd(self.INDEX_KEY, {conversation_id: conversation.updated_at.timestamp()})
            await pipe.execute()

        logger.info(
            f"Created conversation {conversation_id} for room "
            f"{descriptor.room_id} ({descriptor.interface_type.value})"
        )
        return conversation_id

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return await self._load_conversation(conversation_id)

    async def _lookup_room(self, room_id: str, interface_type: InterfaceType) -> str | None:
        return await self.client.get(self._room_key(room_id, interface_type))

    async def add_turn(self, conversation_id: str, turn: Turn) -> str:
        turn_id = turn.id or str(uuid.uuid4())
        stored = turn.model_copy(
            update={
                "id": turn_id,
                "conversation_id": conversation_id,
                "timestamp": turn.timestamp or utc_now(),
            },
            deep=True,
        )

        async with self._lock(conversation_id):
            await self._require(conversation_id)

            # NX on the owner key keeps a turn id in exactly one conversation
            claimed = await self.client.set(self._turn_owner_key(turn_id), conversation_id, nx=True)
            if not claimed:
                raise DuplicateTurnError(turn_id)

            async with self.client.pipeline(transaction=True) as pipe:
                pipe.hset(self._turns_key(conversation_id), turn_id, stored.model_dump_json())
                pipe.rpush(self._turn_ids_key(conversation_id), turn_id)
                await pipe.execute()

        await self._touch(conversation_id)
        return turn_id

    async def get_turns(
        self,
        conversation_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Turn]:
        return paginate(await self._load_turns(conversation_id), limit, offset)

    async def get_turn(self, turn_id: str) -> Turn | None:
        conversation_id = await self.client.get(self._turn_owner_key(turn_id))
        if not conversation_id:
            return None
        raw = await self.client.hget(self._turns_key(conversation_id), turn_id)
        return Turn.model_validate_json(raw) if raw else None

    async def update_turn(self, turn_id: str, update: TurnUpdate) -> Turn:
        conversation_id = await self.client.get(self._turn_owner_key(turn_id))
        if not conversation_id:
            raise TurnNotFoundError(turn_id)

        async with self._lock(conversation_id):
            raw = await self.client.hget(self._turns_key(conversation_id), turn_id)
            if not raw:
                raise TurnNotFoundError(turn_id)

            updated = apply_turn_update(Turn.model_validate_json(raw), update)
            await self.client.hset(
                self._turns_key(conversation_id), turn_id, updated.model_dump_json()
            )

        await self._touch(conversation_id)
        return updated

    async def add_summary(self, conversation_id: str, summary: Summary) -> str:
        await self._require(conversation_id)

        summary_id = summary.id or str(uuid.uuid4())
        stored = summary.model_copy(
            update={
                "id": summary_id,
                "conversation_id": conversation_id,
                "created_at": summary.created_at or utc_now(),
            },
            deep=True,
        )
        await self.client.rpush(self._summaries_key(conversation_id), stored.model_dump_json())
        await self._touch(conversation_id)
        return summary_id

    async def get_summaries(self, conversation_id: str) -> list[Summary]:
        payloads = await self.client.lrange(self._summaries_key(conversation_id), 0, -1)
        return [Summary.model_validate_json(raw) for raw in payloads]

    async def compress(
        self,
        conversation_id: str,
        summary: Summary,
        turn_ids: Sequence[str],
    ) -> str:
        await self._require(conversation_id)
        turns_key = self._turns_key(conversation_id)

        async with self._lock(conversation_id):
            payloads = await self.client.hmget(turns_key, list(turn_ids)) if turn_ids else []

            updated_turns: dict[str, str] = {}
            summary_id = summary.id or str(uuid.uuid4())
            for turn_id, raw in zip(turn_ids, payloads, strict=True):
                if not raw:
                    raise CompressionConflictError(
                        f"Turn {turn_id} does not belong to conversation {conversation_id}"
                    )
                turn = Turn.model_validate_json(raw)
                if turn.state is not TurnState.ACTIVE:
                    raise CompressionConflictError(f"Turn {turn_id} is no longer active")
                updated_turns[turn_id] = apply_turn_update(
                    turn,
                    TurnUpdate(state=TurnState.SUMMARIZED, summary_id=summary_id),
                ).model_dump_json()

            stored = self._build_summary(conversation_id, summary_id, summary, turn_ids)
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.rpush(self._summaries_key(conversation_id), stored.model_dump_json())
                if updated_turns:
                    pipe.hset(turns_key, mapping=updated_turns)
                await pipe.execute()

        await self._touch(conversation_id)
        logger.debug(
            f"Compressed {len(updated_turns)} turns of conversation {conversation_id} "
            f"into summary {summary_id}"
        )
        return summary_id

    async def find_conversations(self, criteria: SearchCriteria) -> list[ConversationInfo]:
        conversation_ids = await self.client.zrevrange(self.INDEX_KEY, 0, -1)

        matching: list[ConversationInfo] = []
        for conversation_id in conversation_ids:
            conversation = await self._load_conversation(conversation_id)
            if conversation is None:
                continue

            # Turns are only needed for the free-text filter
            if criteria.query:
                turns = await self._load_turns(conversation_id)
                turn_count = len(turns)
            else:
                turns = []
                turn_count = await self.client.llen(self._turn_ids_key(conversation_id))

            if matches_criteria(conversation, turns, criteria):
                matching.append(to_info(conversation, turn_count))

        return paginate(matching, criteria.limit, criteria.offset)

    async def update_metadata(self, conversation_id: str, metadata: dict[str, Any]) -> bool:
        return await self._touch(conversation_id, metadata)

    async def delete_conversation(self, conversation_id: str) -> bool:
        async with self._lock(conversation_id):
            conversation = await self._load_conversation(conversation_id)
            if conversation is None:
                return False

            turn_ids = await self.client.lrange(self._turn_ids_key(conversation_id), 0, -1)
            async with self.client.pipeline(transaction=True) as pipe:
                pipe.delete(
                    self._conversation_key(conversation_id),
                    self._turns_key(conversation_id),
                    self._turn_ids_key(conversation_id),
                    self._summaries_key(conversation_id),
                    self._room_key(conversation.room_id, conversation.interface_type),
                )
                for turn_id in turn_ids:
                    pipe.delete(self._turn_owner_key(turn_id))
                pipe.zrem(self.INDEX_KEY, conversation_id)
                await pipe.execute()

        logger.info(f"Deleted conversation {conversation_id}")
        return True
