"""In-process conversation store.

Default backend for single-process deployments and tests. Each instance owns
its own state; build a new instance to start from scratch.
"""

import logging
import uuid
from collections.abc import Sequence
from typing import Any

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


class InMemoryConversationStore(ConversationStore):
    """Conversation store backed by plain dictionaries.

    Methods never await while mutating, so each call (``compress`` included)
    runs to completion without interleaving on the event loop.
    """

    def __init__(self, room_lookup_precedence: Sequence[InterfaceType | str] | None = None):
        super().__init__(room_lookup_precedence)
        self._conversations: dict[str, Conversation] = {}
        self._turns: dict[str, list[Turn]] = {}
        self._turn_owner: dict[str, str] = {}
        self._summaries: dict[str, list[Summary]] = {}
        self._rooms: dict[str, str] = {}

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    def _touch(self, conversation_id: str) -> None:
        conversation = self._conversations[conversation_id]
        conversation.updated_at = utc_now()

    def _find_turn(self, turn_id: str) -> tuple[str, int]:
        conversation_id = self._turn_owner.get(turn_id)
        if conversation_id is None:
            raise TurnNotFoundError(turn_id)
        for index, turn in enumerate(self._turns[conversation_id]):
            if turn.id == turn_id:
                return conversation_id, index
        raise TurnNotFoundError(turn_id)

    async def create_conversation(self, descriptor: NewConversation) -> str:
        key = room_key(descriptor.room_id, descriptor.interface_type)
        existing = self._rooms.get(key)
        if existing:
            return existing

        conversation_id = descriptor.id or str(uuid.uuid4())
        if conversation_id in self._conversations:
            raise DuplicateConversationError(conversation_id)

        now = utc_now()
        created_at = descriptor.started_at or now
        self._conversations[conversation_id] = Conversation(
            id=conversation_id,
            interface_type=descriptor.interface_type,
            room_id=descriptor.room_id,
            created_at=created_at,
            updated_at=descriptor.updated_at or created_at,
            metadata=dict(descriptor.metadata),
        )
        self._turns[conversation_id] = []
        self._summaries[conversation_id] = []
        self._rooms[key] = conversation_id

        logger.info(
            f"Created conversation {conversation_id} for room "
            f"{descriptor.room_id} ({descriptor.interface_type.value})"
        )
        return conversation_id

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def _lookup_room(self, room_id: str, interface_type: InterfaceType) -> str | None:
        return self._rooms.get(room_key(room_id, interface_type))

    async def add_turn(self, conversation_id: str, turn: Turn) -> str:
        self._require(conversation_id)

        turn_id = turn.id or str(uuid.uuid4())
        if turn_id in self._turn_owner:
            raise DuplicateTurnError(turn_id)
        stored = turn.model_copy(
            update={
                "id": turn_id,
                "conversation_id": conversation_id,
                "timestamp": turn.timestamp or utc_now(),
            },
            deep=True,
        )
        self._turns[conversation_id].append(stored)
        self._turn_owner[turn_id] = conversation_id
        self._touch(conversation_id)
        return turn_id

    async def get_turns(
        self,
        conversation_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Turn]:
        turns = self._turns.get(conversation_id, [])
        # sorted() is stable, so equal timestamps keep insertion order
        ordered = sorted(turns, key=lambda turn: turn.timestamp)
        return [turn.model_copy(deep=True) for turn in paginate(ordered, limit, offset)]

    async def get_turn(self, turn_id: str) -> Turn | None:
        try:
            conversation_id, index = self._find_turn(turn_id)
        except TurnNotFoundError:
            return None
        return self._turns[conversation_id][index].model_copy(deep=True)

    async def update_turn(self, turn_id: str, update: TurnUpdate) -> Turn:
        conversation_id, index = self._find_turn(turn_id)
        updated = apply_turn_update(self._turns[conversation_id][index], update)
        self._turns[conversation_id][index] = updated
        self._touch(conversation_id)
        return updated.model_copy(deep=True)

    async def add_summary(self, conversation_id: str, summary: Summary) -> str:
        self._require(conversation_id)

        summary_id = summary.id or str(uuid.uuid4())
        stored = summary.model_copy(
            update={
                "id": summary_id,
                "conversation_id": conversation_id,
                "created_at": summary.created_at or utc_now(),
            },
            deep=True,
        )
        self._summaries[conversation_id].append(stored)
        self._touch(conversation_id)
        return summary_id

    async def get_summaries(self, conversation_id: str) -> list[Summary]:
        return [summary.model_copy(deep=True) for summary in self._summaries.get(conversation_id, [])]

    async def compress(
        self,
        conversation_id: str,
        summary: Summary,
        turn_ids: Sequence[str],
    ) -> str:
        self._require(conversation_id)

        positions: list[int] = []
        turns = self._turns[conversation_id]
        by_id = {turn.id: index for index, turn in enumerate(turns)}
        for turn_id in turn_ids:
            index = by_id.get(turn_id)
            if index is None:
                raise CompressionConflictError(
                    f"Turn {turn_id} does not belong to conversation {conversation_id}"
                )
            if turns[index].state is not TurnState.ACTIVE:
                raise CompressionConflictError(f"Turn {turn_id} is no longer active")
            positions.append(index)

        summary_id = summary.id or str(uuid.uuid4())
        self._summaries[conversation_id].append(
            self._build_summary(conversation_id, summary_id, summary, turn_ids)
        )
        for index in positions:
            turns[index] = apply_turn_update(
                turns[index],
                TurnUpdate(state=TurnState.SUMMARIZED, summary_id=summary_id),
            )
        self._touch(conversation_id)

        logger.debug(
            f"Compressed {len(positions)} turns of conversation {conversation_id} "
            f"into summary {summary_id}"
        )
        return summary_id

    async def find_conversations(self, criteria: SearchCriteria) -> list[ConversationInfo]:
        matching = [
            conversation
            for conversation in self._conversations.values()
            if matches_criteria(conversation, self._turns[conversation.id], criteria)
        ]
        matching.sort(key=lambda conversation: conversation.updated_at, reverse=True)

        return [
            to_info(conversation, len(self._turns[conversation.id]))
            for conversation in paginate(matching, criteria.limit, criteria.offset)
        ]

    async def update_metadata(self, conversation_id: str, metadata: dict[str, Any]) -> bool:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return False

        conversation.metadata = {**conversation.metadata, **metadata}
        self._touch(conversation_id)
        return True

    async def delete_conversation(self, conversation_id: str) -> bool:
        conversation = self._conversations.pop(conversation_id, None)
        if conversation is None:
            return False

        for turn in self._turns.pop(conversation_id, []):
            self._turn_owner.pop(turn.id, None)
        self._summaries.pop(conversation_id, None)
        self._rooms.pop(room_key(conversation.room_id, conversation.interface_type), None)

        logger.info(f"Deleted conversation {conversation_id}")
        return True
