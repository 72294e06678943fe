"""Conversation store abstraction shared by the in-memory and Redis backends."""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime, timezone
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
from ...core.exceptions import InvalidTurnTransitionError

DEFAULT_ROOM_LOOKUP_PRECEDENCE: tuple[InterfaceType, ...] = (
    InterfaceType.MATRIX,
    InterfaceType.CLI,
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def room_key(room_id: str, interface_type: InterfaceType) -> str:
    """Index key for a room within an interface."""
    return f"{interface_type.value}:{room_id}"


def apply_turn_update(turn: Turn, update: TurnUpdate) -> Turn:
    """Return a copy of ``turn`` with ``update`` applied.

    Summarized is terminal: a summarized turn accepts metadata patches only.
    A summary link can only be set together with the transition to
    summarized.

    Raises:
        InvalidTurnTransitionError: If the update breaks the state machine
    """
    changes: dict[str, Any] = {}

    if update.state is not None and update.state != turn.state:
        match turn.state:
            case TurnState.ACTIVE:
                changes["state"] = update.state
            case TurnState.SUMMARIZED:
                raise InvalidTurnTransitionError(
                    f"Turn {turn.id} is summarized and cannot become {update.state.value}"
                )
    elif update.state is TurnState.SUMMARIZED:
        raise InvalidTurnTransitionError(f"Turn {turn.id} is already summarized")

    if update.summary_id is not None:
        if changes.get("state") is not TurnState.SUMMARIZED:
            raise InvalidTurnTransitionError(
                f"Turn {turn.id} can only be linked to a summary while being summarized"
            )
        changes["summary_id"] = update.summary_id

    if update.metadata is not None:
        changes["metadata"] = {**turn.metadata, **update.metadata}

    return turn.model_copy(update=changes, deep=True)


def matches_criteria(
    conversation: Conversation,
    turns: Sequence[Turn],
    criteria: SearchCriteria,
) -> bool:
    """Check a conversation (and its turns) against search criteria."""
    if criteria.interface_type and conversation.interface_type != criteria.interface_type:
        return False
    if criteria.room_id and conversation.room_id != criteria.room_id:
        return False
    if criteria.start_date and conversation.created_at < criteria.start_date:
        return False
    if criteria.end_date and conversation.created_at > criteria.end_date:
        return False

    if criteria.query:
        needle = criteria.query.lower()
        return any(
            needle in turn.query.lower() or needle in turn.response.lower()
            for turn in turns
        )

    return True


def paginate(items: list[Any], limit: int | None, offset: int | None) -> list[Any]:
    """Simple offset/limit slicing."""
    start = offset or 0
    if limit is None:
        return items[start:]
    return items[start:start + limit]


def to_info(conversation: Conversation, turn_count: int) -> ConversationInfo:
    return ConversationInfo(
        id=conversation.id,
        interface_type=conversation.interface_type,
        room_id=conversation.room_id,
        started_at=conversation.created_at,
        updated_at=conversation.updated_at,
        turn_count=turn_count,
        metadata=dict(conversation.metadata),
    )


class ConversationStore(ABC):
    """Durable record of conversations, turns and summaries.

    Conversations are unique per (room_id, interface_type). When a room is
    looked up without an interface type, interface types are probed in the
    order given by ``room_lookup_precedence``. That order is a deployment
    policy (``Settings.room_lookup_precedence``), not a property of the data.
    """

    def __init__(self, room_lookup_precedence: Sequence[InterfaceType | str] | None = None):
        precedence = room_lookup_precedence or DEFAULT_ROOM_LOOKUP_PRECEDENCE
        self.room_lookup_precedence = tuple(InterfaceType(item) for item in precedence)

    async def initialize(self) -> None:
        """Initialize backend resources (connections, indexes)."""
        pass

    async def cleanup(self) -> None:
        """Release backend resources."""
        pass

    async def __aenter__(self) -> "ConversationStore":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.cleanup()

    @abstractmethod
    async def create_conversation(self, descriptor: NewConversation) -> str:
        """Create a conversation and index it by room and interface.

        If the room already has a conversation for that interface, its id is
        returned and nothing is created.

        Returns:
            The conversation id

        Raises:
            DuplicateConversationError: If an explicit id is already in use
        """
        pass

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        pass

    @abstractmethod
    async def _lookup_room(self, room_id: str, interface_type: InterfaceType) -> str | None:
        """Resolve a single (room, interface) index entry."""
        pass

    async def get_conversation_by_room(
        self,
        room_id: str,
        interface_type: InterfaceType | None = None,
    ) -> str | None:
        """Find the conversation id for a room.

        Args:
            room_id: Room identifier
            interface_type: Interface to look in; when omitted every interface
                type is tried in ``room_lookup_precedence`` order

        Returns:
            Conversation id or None if the room has no conversation
        """
        if interface_type is not None:
            return await self._lookup_room(room_id, interface_type)

        for candidate in self.room_lookup_precedence:
            conversation_id = await self._lookup_room(room_id, candidate)
            if conversation_id:
                return conversation_id
        return None

    @abstractmethod
    async def add_turn(self, conversation_id: str, turn: Turn) -> str:
        """Append a turn.

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            DuplicateTurnError: If an explicit turn id is already in use
        """
        pass

    @abstractmethod
    async def get_turns(
        self,
        conversation_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Turn]:
        """Turns in timestamp-ascending order, sliced by offset/limit."""
        pass

    @abstractmethod
    async def get_turn(self, turn_id: str) -> Turn | None:
        pass

    @abstractmethod
    async def update_turn(self, turn_id: str, update: TurnUpdate) -> Turn:
        """Patch a turn's state, summary link or metadata.

        Raises:
            TurnNotFoundError: If the turn does not exist
            InvalidTurnTransitionError: If the update breaks the state machine
        """
        pass

    @abstractmethod
    async def add_summary(self, conversation_id: str, summary: Summary) -> str:
        """Append a summary without touching its turns."""
        pass

    @abstractmethod
    async def get_summaries(self, conversation_id: str) -> list[Summary]:
        """Summaries in creation order."""
        pass

    @abstractmethod
    async def compress(
        self,
        conversation_id: str,
        summary: Summary,
        turn_ids: Sequence[str],
    ) -> str:
        """Persist a summary and mark its turns summarized as one step.

        Every turn must belong to the conversation and still be active.

        Returns:
            The new summary id

        Raises:
            ConversationNotFoundError: If the conversation does not exist
            CompressionConflictError: If any turn is missing or no longer active
        """
        pass

    @abstractmethod
    async def find_conversations(self, criteria: SearchCriteria) -> list[ConversationInfo]:
        """Conversations matching ``criteria``, most recently updated first."""
        pass

    async def get_recent_conversations(
        self,
        limit: int = 10,
        interface_type: InterfaceType | None = None,
    ) -> list[ConversationInfo]:
        return await self.find_conversations(
            SearchCriteria(interface_type=interface_type, limit=limit)
        )

    @abstractmethod
    async def update_metadata(self, conversation_id: str, metadata: dict[str, Any]) -> bool:
        """Merge ``metadata`` into the conversation's metadata."""
        pass

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation with its turns, summaries and index entries."""
        pass

    @staticmethod
    def _build_summary(
        conversation_id: str,
        summary_id: str,
        summary: Summary,
        turn_ids: Sequence[str],
    ) -> Summary:
        return summary.model_copy(
            update={
                "id": summary_id,
                "conversation_id": conversation_id,
                "created_at": summary.created_at or utc_now(),
                "turn_count": len(turn_ids),
                "original_turn_ids": list(turn_ids),
            },
            deep=True,
        )
