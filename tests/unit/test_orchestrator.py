"""Unit tests for the query orchestrator."""

import pytest

from brain_protocol.core.domain.conversation import InterfaceType, SearchCriteria
from brain_protocol.core.domain.knowledge import ExternalResult, Note
from brain_protocol.core.exceptions import ConversationNotFoundError, LanguageModelError
from brain_protocol.governor.context.system_prompts import SystemPromptGenerator, SystemPromptVariant
from brain_protocol.governor.orchestrator import APOLOGY_ANSWER, DEFAULT_QUERY
from fakes import FakeEmbeddingService, FakeExternalSearch, FakeLanguageModel, FakeNotes, FakeProfiles


@pytest.fixture
def external_settings(settings):
    return settings.model_copy(update={"external_sources_enabled": True})


@pytest.fixture
def wikipedia_result() -> ExternalResult:
    return ExternalResult(
        title="Garbage collection",
        source="Wikipedia",
        url="https://en.wikipedia.org/wiki/Garbage_collection_(computer_science)",
        content="Garbage collection is a form of automatic memory management.",
    )


@pytest.mark.asyncio
class TestProcessQuery:
    """Test the query pipeline."""

    async def test_empty_query_uses_default_question(self, make_orchestrator, store):
        model = FakeLanguageModel()
        orchestrator = make_orchestrator(language_model=model)

        result = await orchestrator.process_query("   ")

        assert result.answer == "Here is your answer."
        assert model.calls[0]["user_prompt"].endswith(DEFAULT_QUERY)

        turns = await store.get_turns(result.conversation_id)
        assert [turn.query for turn in turns] == [DEFAULT_QUERY]

    async def test_answer_with_citations_and_related_notes(self, make_orchestrator, sample_notes):
        related = [Note(id="note-9", title="Sagas", content="Long-running transactions.")]
        notes = FakeNotes(sample_notes, related=related)
        model = FakeLanguageModel(text="Event sourcing records changes as events.")
        orchestrator = make_orchestrator(notes=notes, language_model=model)

        result = await orchestrator.process_query("Explain event sourcing")

        assert result.answer == "Event sourcing records changes as events."
        assert [citation.note_id for citation in result.citations] == ["note-1", "note-2"]
        assert [note.id for note in result.related_notes] == ["note-9"]
        assert notes.related_calls == ["note-1"]
        assert result.profile is None
        assert result.external_sources is None
        assert model.calls[0]["max_tokens"] == 1024

    async def test_profile_query_includes_profile(self, make_orchestrator, sample_profile):
        model = FakeLanguageModel()
        orchestrator = make_orchestrator(
            profiles=FakeProfiles(sample_profile), language_model=model
        )

        result = await orchestrator.process_query("What is my profile?")

        assert result.profile == sample_profile
        assert "PROFILE INFORMATION:" in model.calls[0]["user_prompt"]
        # relevance 0.9 selects the extended profile block
        assert "Past Experience:" in model.calls[0]["user_prompt"]
        assert model.calls[0]["system_prompt"] == SystemPromptGenerator().render(
            SystemPromptVariant.PROFILE_ONLY
        )

    async def test_unrelated_query_leaves_profile_out(self, make_orchestrator, sample_profile):
        model = FakeLanguageModel()
        orchestrator = make_orchestrator(
            profiles=FakeProfiles(sample_profile), language_model=model
        )

        result = await orchestrator.process_query("Explain event sourcing")

        assert result.profile is None
        assert "PROFILE INFORMATION" not in model.calls[0]["user_prompt"]
        assert model.calls[0]["system_prompt"] == SystemPromptGenerator().render(
            SystemPromptVariant.NOTES_ONLY
        )

    async def test_profile_loaded_once(self, make_orchestrator, sample_profile):
        profiles = FakeProfiles(sample_profile)
        orchestrator = make_orchestrator(profiles=profiles, language_model=FakeLanguageModel())

        await orchestrator.process_query("What is my profile?")
        await orchestrator.process_query("What is my profile?")

        assert profiles.calls == 1

    async def test_profile_load_retried_after_failure(self, make_orchestrator, sample_profile):
        profiles = FakeProfiles(sample_profile, failures=1)
        orchestrator = make_orchestrator(profiles=profiles, language_model=FakeLanguageModel())

        first = await orchestrator.process_query("What is my profile?")
        second = await orchestrator.process_query("What is my profile?")

        assert first.profile is None
        assert second.profile == sample_profile
        assert profiles.calls == 2

    async def test_history_reaches_next_prompt(self, make_orchestrator):
        model = FakeLanguageModel(text="A pattern.")
        orchestrator = make_orchestrator(language_model=model)

        first = await orchestrator.process_query("What is event sourcing?", room_id="room-7")
        second = await orchestrator.process_query("And CQRS?", room_id="room-7")

        assert first.conversation_id == second.conversation_id
        assert "Recent Conversation History:\nUser: What is event sourcing?\nAssistant: A pattern." in (
            model.calls[1]["user_prompt"]
        )

    async def test_user_name_recorded(self, make_orchestrator, store):
        orchestrator = make_orchestrator(language_model=FakeLanguageModel())

        result = await orchestrator.process_query("Hello", user_id="@alex:matrix.org", user_name="Alex")

        turn = (await store.get_turns(result.conversation_id))[0]
        assert turn.user_id == "@alex:matrix.org"
        assert turn.user_name == "Alex"

    async def test_unknown_conversation_is_fatal(self, make_orchestrator):
        orchestrator = make_orchestrator(language_model=FakeLanguageModel())

        with pytest.raises(ConversationNotFoundError):
            await orchestrator.process_query("Hello", conversation_id="missing")

    async def test_explicit_conversation(self, make_orchestrator):
        orchestrator = make_orchestrator(language_model=FakeLanguageModel())
        conversation_id = await orchestrator.create_conversation("room-2", InterfaceType.MATRIX)

        result = await orchestrator.process_query("Hello", conversation_id=conversation_id)

        assert result.conversation_id == conversation_id
        assert len(await orchestrator.get_turns(conversation_id)) == 1


@pytest.mark.asyncio
class TestDegradation:
    """Test that collaborator failures degrade instead of aborting."""

    async def test_note_search_failure(self, make_orchestrator):
        orchestrator = make_orchestrator(notes=FakeNotes(fail=True), language_model=FakeLanguageModel())

        result = await orchestrator.process_query("Explain event sourcing")

        assert result.answer == "Here is your answer."
        assert result.citations == []
        assert result.related_notes == []

    async def test_language_model_failure(self, make_orchestrator, store):
        orchestrator = make_orchestrator(language_model=FakeLanguageModel(error=LanguageModelError("down")))

        result = await orchestrator.process_query("Explain event sourcing")

        assert result.answer == APOLOGY_ANSWER
        turns = await store.get_turns(result.conversation_id)
        assert turns[0].response == APOLOGY_ANSWER

    async def test_no_language_model(self, make_orchestrator):
        result = await make_orchestrator().process_query("Explain event sourcing")

        assert result.answer == APOLOGY_ANSWER

    async def test_history_failure(self, make_orchestrator, monkeypatch):
        model = FakeLanguageModel()
        orchestrator = make_orchestrator(language_model=model)

        async def broken(*args, **kwargs):
            raise RuntimeError("history unavailable")

        monkeypatch.setattr(orchestrator.memory, "format_history_for_prompt", broken)

        result = await orchestrator.process_query("Explain event sourcing")

        assert result.answer == "Here is your answer."
        assert "Recent Conversation History" not in model.calls[0]["user_prompt"]


@pytest.mark.asyncio
class TestExternalSources:
    """Test gap-filling with external sources."""

    async def test_external_results_used_when_notes_leave_gap(
        self, make_orchestrator, external_settings, wikipedia_result
    ):
        external = FakeExternalSearch([wikipedia_result])
        model = FakeLanguageModel()
        orchestrator = make_orchestrator(
            language_model=model, external_search=external, config=external_settings
        )

        result = await orchestrator.process_query("How does garbage collection work")

        assert external.queries == ["How does garbage collection work"]
        assert [source.title for source in result.external_sources] == ["Garbage collection"]
        assert "EXTERNAL SOURCE [1]:" in model.calls[0]["user_prompt"]
        assert model.calls[0]["system_prompt"] == SystemPromptGenerator().render(
            SystemPromptVariant.NOTES_WITH_EXTERNAL, True
        )

    async def test_disabled_by_settings(self, make_orchestrator, wikipedia_result):
        external = FakeExternalSearch([wikipedia_result])
        orchestrator = make_orchestrator(language_model=FakeLanguageModel(), external_search=external)

        result = await orchestrator.process_query("How does garbage collection work")

        assert external.queries == []
        assert result.external_sources is None

    async def test_profile_query_skips_external(
        self, make_orchestrator, external_settings, wikipedia_result
    ):
        external = FakeExternalSearch([wikipedia_result])
        orchestrator = make_orchestrator(
            language_model=FakeLanguageModel(), external_search=external, config=external_settings
        )

        await orchestrator.process_query("What is my profile?")

        assert external.queries == []

    async def test_covered_query_skips_external(
        self, make_orchestrator, external_settings, wikipedia_result
    ):
        notes = FakeNotes([Note(id="n1", title="GC", content="Garbage collection internals explained.")])
        external = FakeExternalSearch([wikipedia_result])
        orchestrator = make_orchestrator(
            notes=notes,
            language_model=FakeLanguageModel(),
            external_search=external,
            config=external_settings,
        )

        await orchestrator.process_query("garbage collection")

        assert external.queries == []

    async def test_external_failure(self, make_orchestrator, external_settings):
        orchestrator = make_orchestrator(
            language_model=FakeLanguageModel(),
            external_search=FakeExternalSearch(fail=True),
            config=external_settings,
        )

        result = await orchestrator.process_query("How does garbage collection work")

        assert result.answer == "Here is your answer."
        assert result.external_sources is None


@pytest.mark.asyncio
class TestConversationSurface:
    """Test the conversation operations exposed to adapters."""

    async def test_get_or_create_reuses_room(self, make_orchestrator):
        orchestrator = make_orchestrator()

        first = await orchestrator.get_or_create_conversation("room-1", InterfaceType.CLI)
        second = await orchestrator.get_or_create_conversation("room-1", InterfaceType.CLI)

        assert first == second
        assert await orchestrator.get_conversation_by_room("room-1") == first

    async def test_add_turn_and_history(self, make_orchestrator):
        orchestrator = make_orchestrator()
        conversation_id = await orchestrator.create_conversation("room-1", InterfaceType.CLI)

        await orchestrator.add_turn(conversation_id, "Hi", "Hello", user_name="Alex")

        assert await orchestrator.get_conversation_history(conversation_id) == "Alex: Hi\nAssistant: Hello"

    async def test_force_summarize(self, make_orchestrator):
        orchestrator = make_orchestrator()
        conversation_id = await orchestrator.create_conversation("room-1", InterfaceType.CLI)
        for index in range(3):
            await orchestrator.add_turn(conversation_id, f"Question {index}", f"Answer {index}")

        assert await orchestrator.force_summarize(conversation_id) is True

        tiered = await orchestrator.get_tiered_history(conversation_id)
        assert len(tiered.summaries) == 1
        assert tiered.active_turns == []
        assert len(tiered.archived_turns) == 3

    async def test_find_and_delete(self, make_orchestrator):
        orchestrator = make_orchestrator()
        conversation_id = await orchestrator.create_conversation("room-1", InterfaceType.CLI)
        await orchestrator.add_turn(conversation_id, "Tell me about Kafka")

        found = await orchestrator.find_conversations(SearchCriteria(query="kafka"))
        assert [info.id for info in found] == [conversation_id]

        assert await orchestrator.update_metadata(conversation_id, {"pinned": True}) is True
        assert (await orchestrator.get_conversation(conversation_id)).metadata == {"pinned": True}

        assert await orchestrator.delete_conversation(conversation_id) is True
        assert await orchestrator.get_recent_conversations() == []

    async def test_missing_conversation_reads(self, make_orchestrator):
        orchestrator = make_orchestrator()

        with pytest.raises(ConversationNotFoundError):
            await orchestrator.get_turns("missing")
        with pytest.raises(ConversationNotFoundError):
            await orchestrator.get_conversation_history("missing")

    async def test_context_manager_closes_clients(self, make_orchestrator):
        model = FakeLanguageModel()
        external = FakeExternalSearch()
        embeddings = FakeEmbeddingService()

        async with make_orchestrator(
            language_model=model,
            external_search=external,
            embedding_service=embeddings,
        ) as orchestrator:
            await orchestrator.process_query("Hello")

        assert model.closed is True
        assert external.closed is True
        assert embeddings.closed is True
