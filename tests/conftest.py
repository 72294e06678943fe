"""Shared fixtures for the brain protocol test suite."""

from datetime import date

import pytest

from brain_protocol.core.config import Settings
from brain_protocol.core.domain.knowledge import (
    Education,
    Experience,
    Language,
    Note,
    Profile,
    Project,
)
from brain_protocol.core.embeddings.base import EmbeddingService
from brain_protocol.core.llm.base import LanguageModel
from brain_protocol.governor.context.assembler import ContextAssembler
from brain_protocol.governor.context.system_prompts import SystemPromptGenerator
from brain_protocol.governor.orchestrator import Orchestrator
from brain_protocol.governor.relevance import RelevanceScorer, RelevanceThresholds
from brain_protocol.memory.services.summarizer import LLMSummarizer, Summarizer
from brain_protocol.memory.storage.in_memory import InMemoryConversationStore
from brain_protocol.memory.tiered import TieredMemoryConfig, TieredMemoryManager
from brain_protocol.retrieval.base import ExternalSearch, NoteRetrieval, ProfileRetrieval
from fakes import FakeNotes


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(_env_file=None, openai_api_key="", external_sources_enabled=False)


@pytest.fixture
def store() -> InMemoryConversationStore:
    return InMemoryConversationStore()


@pytest.fixture
def memory(store) -> TieredMemoryManager:
    return TieredMemoryManager(store, LLMSummarizer(None), TieredMemoryConfig())


@pytest.fixture
def sample_notes() -> list[Note]:
    return [
        Note(
            id="note-1",
            title="Event Sourcing",
            content="Event sourcing stores every change as an immutable event.",
            tags=["architecture", "patterns"],
        ),
        Note(
            id="note-2",
            title="CQRS",
            content="Command query responsibility segregation splits reads from writes.",
        ),
    ]


@pytest.fixture
def sample_profile() -> Profile:
    return Profile(
        full_name="Alex Morgan",
        headline="Staff Engineer",
        occupation="Software Engineer",
        city="Lisbon",
        country="Portugal",
        summary="Builds distributed systems.",
        experiences=[
            Experience(
                title="Staff Engineer",
                organization="Acme",
                description="Leads the platform team.\nOwns the event bus.",
                start_date=date(2021, 1, 1),
            ),
            Experience(
                title="Senior Engineer",
                organization="Globex",
                description="Built the billing pipeline.",
                start_date=date(2016, 3, 1),
                end_date=date(2020, 12, 31),
            ),
        ],
        education=[
            Education(
                institution="University of Porto",
                degree="MSc Computer Science",
                start_date=date(2010, 9, 1),
                end_date=date(2015, 7, 1),
            )
        ],
        projects=[Project(title="Ledger", description="Open-source event store.")],
        languages=[Language(name="Portuguese", proficiency="Native")],
        skills=["Python", "Kafka"],
    )


@pytest.fixture
def make_orchestrator(settings, store):
    """Factory building an Orchestrator over the in-memory store."""

    def _make(
        notes: NoteRetrieval | None = None,
        profiles: ProfileRetrieval | None = None,
        language_model: LanguageModel | None = None,
        external_search: ExternalSearch | None = None,
        embedding_service: EmbeddingService | None = None,
        summarizer: Summarizer | None = None,
        config: Settings | None = None,
    ) -> Orchestrator:
        config = config or settings
        thresholds = RelevanceThresholds.from_settings(config)
        memory = TieredMemoryManager(
            store,
            summarizer or LLMSummarizer(language_model),
            TieredMemoryConfig.from_settings(config),
        )
        return Orchestrator(
            store=store,
            memory=memory,
            scorer=RelevanceScorer(embedding_service, thresholds),
            assembler=ContextAssembler(thresholds),
            system_prompts=SystemPromptGenerator(thresholds),
            notes=notes or FakeNotes(),
            profiles=profiles,
            language_model=language_model,
            external_search=external_search,
            settings=config,
        )

    return _make
