"""Conversation resources and tools consumed by chat and CLI adapters."""

import logging
from datetime import datetime
from typing import Any

from ..core.domain.conversation import InterfaceType, SearchCriteria
from ..core.exceptions import ConversationNotFoundError
from ..governor.orchestrator import Orchestrator
from .registry import ResourceRegistry

logger = logging.getLogger(__name__)


def register_conversation_resources(
    registry: ResourceRegistry,
    orchestrator: Orchestrator,
) -> ResourceRegistry:
    """Register the conversation surface on ``registry``.

    Resources return JSON-ready dictionaries; missing conversations raise
    ConversationNotFoundError.
    """

    @registry.resource("list_conversations", "conversations://list")
    async def list_conversations(
        limit: int | None = None,
        offset: int | None = None,
        interface_type: InterfaceType | None = None,
    ) -> list[dict[str, Any]]:
        """List conversations, most recently updated first."""
        infos = await orchestrator.find_conversations(SearchCriteria(
            interface_type=interface_type,
            limit=limit,
            offset=offset,
        ))
        return [info.model_dump(mode="json") for info in infos]

    @registry.resource("get_conversation", "conversations://get/:conversation_id")
    async def get_conversation(conversation_id: str) -> dict[str, Any]:
        """A conversation with its turns and summaries."""
        conversation = await orchestrator.get_conversation(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        turns = await orchestrator.get_turns(conversation_id)
        summaries = await orchestrator.get_summaries(conversation_id)
        return {
            **conversation.model_dump(mode="json"),
            "turns": [turn.model_dump(mode="json") for turn in turns],
            "summaries": [summary.model_dump(mode="json") for summary in summaries],
        }

    @registry.resource("search_conversations", "conversations://search")
    async def search_conversations(
        query: str | None = None,
        interface_type: InterfaceType | None = None,
        room_id: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> dict[str, Any]:
        """Search conversations by text, interface, room and date range."""
        criteria = SearchCriteria(
            query=query,
            interface_type=interface_type,
            room_id=room_id,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
        results = await orchestrator.find_conversations(criteria)
        return {
            "results": [info.model_dump(mode="json") for info in results],
            "count": len(results),
            "query": criteria.model_dump(mode="json", exclude_none=True),
        }

    @registry.resource("get_room_conversation", "conversations://room/:room_id")
    async def get_room_conversation(
        room_id: str,
        interface_type: InterfaceType | None = None,
    ) -> dict[str, Any]:
        """Conversation id for a room, if the room has one."""
        conversation_id = await orchestrator.get_conversation_by_room(room_id, interface_type)
        return {
            "room_id": room_id,
            "conversation_id": conversation_id,
            "found": conversation_id is not None,
        }

    @registry.resource("recent_conversations", "conversations://recent")
    async def recent_conversations(
        limit: int = 10,
        interface_type: InterfaceType | None = None,
    ) -> list[dict[str, Any]]:
        """Most recently updated conversations."""
        infos = await orchestrator.get_recent_conversations(limit, interface_type)
        return [info.model_dump(mode="json") for info in infos]

    @registry.resource("get_turns", "conversations://turns/:conversation_id")
    async def get_turns(
        conversation_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """Turns of a conversation in chronological order."""
        turns = await orchestrator.get_turns(conversation_id, limit=limit, offset=offset)
        return [turn.model_dump(mode="json") for turn in turns]

    @registry.resource("get_summaries", "conversations://summaries/:conversation_id")
    async def get_summaries(conversation_id: str) -> list[dict[str, Any]]:
        """Summaries of a conversation in creation order."""
        summaries = await orchestrator.get_summaries(conversation_id)
        return [summary.model_dump(mode="json") for summary in summaries]

    @registry.resource("get_history", "conversations://history/:conversation_id")
    async def get_history(conversation_id: str, max_tokens: int | None = None) -> dict[str, Any]:
        """Prompt-ready history under a token budget."""
        history = await orchestrator.get_conversation_history(conversation_id, max_tokens)
        return {"conversation_id": conversation_id, "history": history}

    @registry.tool("create_conversation", "conversations://create")
    async def create_conversation(
        room_id: str,
        interface_type: InterfaceType = InterfaceType.CLI,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Create (or reuse) the conversation of a room."""
        conversation_id = await orchestrator.create_conversation(room_id, interface_type, metadata)
        return {"conversation_id": conversation_id}

    @registry.tool("add_turn", "conversations://turns/:conversation_id/add")
    async def add_turn(
        conversation_id: str,
        query: str,
        response: str = "",
        user_id: str | None = None,
        user_name: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Append a turn and compress the active tier when it overflows."""
        turn_id = await orchestrator.add_turn(
            conversation_id,
            query,
            response,
            user_id=user_id,
            user_name=user_name,
            metadata=metadata,
        )
        return {"conversation_id": conversation_id, "turn_id": turn_id}

    @registry.tool("force_summarize", "conversations://summarize/:conversation_id")
    async def force_summarize(conversation_id: str) -> dict[str, Any]:
        """Compress the oldest active turns now."""
        summarized = await orchestrator.force_summarize(conversation_id)
        return {"conversation_id": conversation_id, "summarized": summarized}

    @registry.tool("delete_conversation", "conversations://delete/:conversation_id")
    async def delete_conversation(conversation_id: str) -> dict[str, Any]:
        """Delete a conversation with its turns and summaries."""
        deleted = await orchestrator.delete_conversation(conversation_id)
        return {"conversation_id": conversation_id, "deleted": deleted}

    logger.debug(f"Registered {len(registry)} conversation operations")
    return registry
