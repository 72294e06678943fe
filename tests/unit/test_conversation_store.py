"""Unit tests for the in-memory conversation store."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from brain_protocol.core.domain.conversation import (
    InterfaceType,
    NewConversation,
    SearchCriteria,
    Summary,
    Turn,
    TurnState,
    TurnUpdate,
)
from brain_protocol.core.exceptions import (
    CompressionConflictError,
    ConversationNotFoundError,
    DuplicateConversationError,
    DuplicateTurnError,
    InvalidTurnTransitionError,
    TurnNotFoundError,
)
from brain_protocol.memory.storage.in_memory import InMemoryConversationStore

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def new_conversation(room_id: str = "room-1", interface_type=InterfaceType.CLI, **kwargs):
    return NewConversation(room_id=room_id, interface_type=interface_type, **kwargs)


async def add_turns(store, conversation_id: str, count: int) -> list[str]:
    turn_ids = []
    for index in range(count):
        turn_ids.append(await store.add_turn(conversation_id, Turn(
            query=f"Question {index}",
            response=f"Answer {index}",
            timestamp=BASE_TIME + timedelta(minutes=index),
        )))
    return turn_ids


@pytest.mark.asyncio
class TestConversations:
    """Test conversation creation and room lookups."""

    async def test_create_and_get(self, store):
        conversation_id = await store.create_conversation(
            new_conversation(metadata={"topic": "architecture"})
        )

        conversation = await store.get_conversation(conversation_id)

        assert conversation is not None
        assert conversation.room_id == "room-1"
        assert conversation.interface_type == InterfaceType.CLI
        assert conversation.metadata == {"topic": "architecture"}
        assert conversation.created_at.tzinfo is not None

    async def test_get_missing_conversation(self, store):
        assert await store.get_conversation("missing") is None

    async def test_create_is_idempotent_per_room(self, store):
        first = await store.create_conversation(new_conversation())
        second = await store.create_conversation(new_conversation())

        assert first == second
        assert len(await store.find_conversations(SearchCriteria())) == 1

    async def test_same_room_on_other_interface_is_separate(self, store):
        cli_id = await store.create_conversation(new_conversation())
        matrix_id = await store.create_conversation(new_conversation(interface_type=InterfaceType.MATRIX))

        assert cli_id != matrix_id
        assert await store.get_conversation_by_room("room-1", InterfaceType.CLI) == cli_id
        assert await store.get_conversation_by_room("room-1", InterfaceType.MATRIX) == matrix_id

    async def test_explicit_id_already_in_use(self, store):
        await store.create_conversation(new_conversation(id="fixed"))

        with pytest.raises(DuplicateConversationError):
            await store.create_conversation(new_conversation(room_id="room-2", id="fixed"))

    async def test_room_lookup_follows_default_precedence(self, store):
        await store.create_conversation(new_conversation(room_id="shared"))
        matrix_id = await store.create_conversation(
            new_conversation(room_id="shared", interface_type=InterfaceType.MATRIX)
        )

        assert await store.get_conversation_by_room("shared") == matrix_id

    async def test_room_lookup_follows_configured_precedence(self):
        store = InMemoryConversationStore(room_lookup_precedence=["cli", "matrix"])
        cli_id = await store.create_conversation(new_conversation(room_id="shared"))
        await store.create_conversation(
            new_conversation(room_id="shared", interface_type=InterfaceType.MATRIX)
        )

        assert await store.get_conversation_by_room("shared") == cli_id

    async def test_room_lookup_falls_through_precedence(self, store):
        cli_id = await store.create_conversation(new_conversation(room_id="cli-only"))

        assert await store.get_conversation_by_room("cli-only") == cli_id
        assert await store.get_conversation_by_room("unknown") is None

    async def test_update_metadata_merges(self, store):
        conversation_id = await store.create_conversation(new_conversation(metadata={"a": 1}))

        assert await store.update_metadata(conversation_id, {"b": 2}) is True
        assert await store.update_metadata("missing", {"b": 2}) is False

        conversation = await store.get_conversation(conversation_id)
        assert conversation.metadata == {"a": 1, "b": 2}


@pytest.mark.asyncio
class TestTurns:
    """Test turn storage and the turn state machine."""

    async def test_add_turn_to_missing_conversation(self, store):
        with pytest.raises(ConversationNotFoundError):
            await store.add_turn("missing", Turn(query="Hello"))

    async def test_duplicate_turn_id_rejected(self, store):
        first = await store.create_conversation(new_conversation("room-a"))
        second = await store.create_conversation(new_conversation("room-b"))
        await store.add_turn(first, Turn(id="t1", query="q-a"))

        with pytest.raises(DuplicateTurnError):
            await store.add_turn(second, Turn(id="t1", query="q-b"))
        with pytest.raises(DuplicateTurnError):
            await store.add_turn(first, Turn(id="t1", query="q-a again"))

        assert (await store.get_turn("t1")).query == "q-a"
        assert (await store.get_turn("t1")).conversation_id == first
        assert len(await store.get_turns(first)) == 1
        assert await store.get_turns(second) == []

    async def test_add_turn_assigns_identity(self, store):
        conversation_id = await store.create_conversation(new_conversation())

        turn_id = await store.add_turn(conversation_id, Turn(query="Hello", response="Hi"))
        turn = await store.get_turn(turn_id)

        assert turn.id == turn_id
        assert turn.conversation_id == conversation_id
        assert turn.timestamp is not None
        assert turn.state == TurnState.ACTIVE
        assert turn.summary_id is None

    async def test_get_turns_orders_by_timestamp(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        await store.add_turn(conversation_id, Turn(query="later", timestamp=BASE_TIME + timedelta(hours=1)))
        await store.add_turn(conversation_id, Turn(query="earlier", timestamp=BASE_TIME))

        turns = await store.get_turns(conversation_id)

        assert [turn.query for turn in turns] == ["earlier", "later"]

    async def test_get_turns_pagination(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        await add_turns(store, conversation_id, 5)

        page = await store.get_turns(conversation_id, limit=2, offset=1)

        assert [turn.query for turn in page] == ["Question 1", "Question 2"]

    async def test_returned_turns_are_copies(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        turn_id = (await add_turns(store, conversation_id, 1))[0]

        turn = await store.get_turn(turn_id)
        turn.metadata["mutated"] = True

        assert (await store.get_turn(turn_id)).metadata == {}

    async def test_summarize_transition(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        turn_id = (await add_turns(store, conversation_id, 1))[0]

        updated = await store.update_turn(
            turn_id, TurnUpdate(state=TurnState.SUMMARIZED, summary_id="summary-1")
        )

        assert updated.state == TurnState.SUMMARIZED
        assert updated.summary_id == "summary-1"
        assert updated.is_active is False

    async def test_summarized_is_terminal(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        turn_id = (await add_turns(store, conversation_id, 1))[0]
        await store.update_turn(turn_id, TurnUpdate(state=TurnState.SUMMARIZED, summary_id="s"))

        with pytest.raises(InvalidTurnTransitionError):
            await store.update_turn(turn_id, TurnUpdate(state=TurnState.ACTIVE))
        with pytest.raises(InvalidTurnTransitionError):
            await store.update_turn(turn_id, TurnUpdate(state=TurnState.SUMMARIZED, summary_id="t"))

        assert (await store.get_turn(turn_id)).summary_id == "s"

    async def test_summary_link_requires_transition(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        turn_id = (await add_turns(store, conversation_id, 1))[0]

        with pytest.raises(InvalidTurnTransitionError):
            await store.update_turn(turn_id, TurnUpdate(summary_id="summary-1"))

    async def test_metadata_patch_on_summarized_turn(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        turn_id = (await add_turns(store, conversation_id, 1))[0]
        await store.update_turn(turn_id, TurnUpdate(state=TurnState.SUMMARIZED, summary_id="s"))

        updated = await store.update_turn(turn_id, TurnUpdate(metadata={"reviewed": True}))

        assert updated.metadata == {"reviewed": True}
        assert updated.state == TurnState.SUMMARIZED

    async def test_update_missing_turn(self, store):
        with pytest.raises(TurnNotFoundError):
            await store.update_turn("missing", TurnUpdate(metadata={}))


def test_turn_text_is_not_patchable():
    """Query and response text cannot be changed through an update."""
    with pytest.raises(ValidationError):
        TurnUpdate(query="rewritten")


@pytest.mark.asyncio
class TestCompression:
    """Test the atomic compress operation."""

    async def test_compress_links_turns_and_summary(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        turn_ids = await add_turns(store, conversation_id, 3)

        summary_id = await store.compress(
            conversation_id,
            Summary(content="Recap", start_turn_id=turn_ids[0], end_turn_id=turn_ids[1]),
            turn_ids[:2],
        )

        summaries = await store.get_summaries(conversation_id)
        assert len(summaries) == 1
        assert summaries[0].id == summary_id
        assert summaries[0].turn_count == 2
        assert summaries[0].original_turn_ids == turn_ids[:2]

        turns = await store.get_turns(conversation_id)
        assert [turn.state for turn in turns] == [
            TurnState.SUMMARIZED,
            TurnState.SUMMARIZED,
            TurnState.ACTIVE,
        ]
        assert turns[0].summary_id == summary_id

    async def test_compress_rejects_summarized_turns(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        turn_ids = await add_turns(store, conversation_id, 2)
        summary = Summary(content="Recap", start_turn_id=turn_ids[0], end_turn_id=turn_ids[1])
        await store.compress(conversation_id, summary, turn_ids)

        with pytest.raises(CompressionConflictError):
            await store.compress(conversation_id, summary, turn_ids)

        assert len(await store.get_summaries(conversation_id)) == 1

    async def test_compress_is_all_or_nothing(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        turn_ids = await add_turns(store, conversation_id, 2)

        with pytest.raises(CompressionConflictError):
            await store.compress(
                conversation_id,
                Summary(content="Recap", start_turn_id=turn_ids[0], end_turn_id="foreign"),
                [turn_ids[0], "foreign"],
            )

        assert await store.get_summaries(conversation_id) == []
        assert all(turn.is_active for turn in await store.get_turns(conversation_id))

    async def test_compress_missing_conversation(self, store):
        with pytest.raises(ConversationNotFoundError):
            await store.compress(
                "missing",
                Summary(content="Recap", start_turn_id="a", end_turn_id="b"),
                ["a", "b"],
            )

    async def test_add_summary_keeps_turns(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        turn_ids = await add_turns(store, conversation_id, 2)

        await store.add_summary(
            conversation_id,
            Summary(content="Recap", start_turn_id=turn_ids[0], end_turn_id=turn_ids[1]),
        )

        assert all(turn.is_active for turn in await store.get_turns(conversation_id))


@pytest.mark.asyncio
class TestSearchAndDelete:
    """Test conversation search and cascading deletes."""

    async def test_find_by_text_is_case_insensitive(self, store):
        first = await store.create_conversation(new_conversation("room-a"))
        await store.create_conversation(new_conversation("room-b"))
        await store.add_turn(first, Turn(query="Tell me about Kafka", response="Kafka is a log."))

        results = await store.find_conversations(SearchCriteria(query="kafka"))

        assert [info.id for info in results] == [first]
        assert results[0].turn_count == 1

    async def test_find_by_interface(self, store):
        await store.create_conversation(new_conversation("room-a"))
        matrix_id = await store.create_conversation(
            new_conversation("room-b", interface_type=InterfaceType.MATRIX)
        )

        results = await store.find_conversations(SearchCriteria(interface_type=InterfaceType.MATRIX))

        assert [info.id for info in results] == [matrix_id]

    async def test_find_orders_by_recent_update(self, store):
        old = BASE_TIME - timedelta(days=2)
        first = await store.create_conversation(new_conversation("room-a", started_at=old))
        second = await store.create_conversation(
            new_conversation("room-b", started_at=old + timedelta(days=1))
        )

        assert [info.id for info in await store.find_conversations(SearchCriteria())] == [second, first]

        await store.add_turn(first, Turn(query="bump"))

        recent = await store.get_recent_conversations(limit=1)
        assert [info.id for info in recent] == [first]

    async def test_find_by_date_range(self, store):
        await store.create_conversation(
            new_conversation("old-room", started_at=BASE_TIME - timedelta(days=30))
        )
        recent_id = await store.create_conversation(new_conversation("new-room", started_at=BASE_TIME))

        results = await store.find_conversations(
            SearchCriteria(start_date=BASE_TIME - timedelta(days=1))
        )

        assert [info.id for info in results] == [recent_id]

    async def test_delete_cascades(self, store):
        conversation_id = await store.create_conversation(new_conversation())
        turn_ids = await add_turns(store, conversation_id, 2)
        await store.compress(
            conversation_id,
            Summary(content="Recap", start_turn_id=turn_ids[0], end_turn_id=turn_ids[1]),
            turn_ids,
        )

        assert await store.delete_conversation(conversation_id) is True

        assert await store.get_conversation(conversation_id) is None
        assert await store.get_turn(turn_ids[0]) is None
        assert await store.get_summaries(conversation_id) == []
        assert await store.get_conversation_by_room("room-1") is None
        assert await store.delete_conversation(conversation_id) is False

        recreated = await store.create_conversation(new_conversation())
        assert recreated != conversation_id
