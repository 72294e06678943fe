"""Query orchestration.

The Orchestrator runs one query as a strictly sequential pipeline:

1. Default an empty query
2. Resolve the conversation
3. Load the profile lazily
4. Classify the query and score profile relevance
5. Retrieve notes, then external results when the notes leave a gap
6. Assemble history, profile, notes and external results into a prompt
7. Select system instructions and call the language model
8. Persist the turn and package the answer

Collaborator failures degrade to a safe default. Only a missing
conversation or turn aborts the call.
"""

import logging
from typing import Any

from ..core.config import Settings
from ..core.domain.conversation import (
    Conversation,
    ConversationInfo,
    InterfaceType,
    NewConversation,
    SearchCriteria,
    Summary,
    TieredHistory,
    Turn,
)
from ..core.domain.knowledge import (
    ExternalResult,
    Note,
    Profile,
    ProfileAnalysis,
    QueryResult,
)
from ..core.exceptions import ConversationNotFoundError, NotFoundError
from ..core.llm.base import LanguageModel
from ..memory.storage.base import ConversationStore
from ..memory.tiered import TieredMemoryManager
from ..retrieval.base import ExternalSearch, NoteRetrieval, ProfileRetrieval
from .context.assembler import ContextAssembler
from .context.system_prompts import SystemPromptGenerator
from .relevance import RelevanceScorer

logger = logging.getLogger(__name__)

DEFAULT_QUERY = "What information do you have in this brain?"
APOLOGY_ANSWER = "I apologize, but I wasn't able to generate a proper response."


class Orchestrator:
    """Sequences retrieval, prompt assembly and the language model call.

    Also exposes the conversation surface used by chat and CLI adapters, so
    adapters never reach into storage directly.
    """

    def __init__(
        self,
        *,
        store: ConversationStore,
        memory: TieredMemoryManager,
        scorer: RelevanceScorer,
        assembler: ContextAssembler,
        system_prompts: SystemPromptGenerator,
        notes: NoteRetrieval,
        profiles: ProfileRetrieval | None = None,
        language_model: LanguageModel | None = None,
        external_search: ExternalSearch | None = None,
        settings: Settings,
    ):
        self.store = store
        self.memory = memory
        self.scorer = scorer
        self.assembler = assembler
        self.system_prompts = system_prompts
        self.notes = notes
        self.profiles = profiles
        self.language_model = language_model
        self.external_search = external_search
        self.settings = settings
        self._profile: Profile | None = None

    async def close(self) -> None:
        """Release owned resources."""
        if self.language_model is not None:
            await self.language_model.close()
        if self.external_search is not None:
            await self.external_search.close()
        if self.scorer.embedding_service is not None:
            await self.scorer.embedding_service.close()
        await self.store.cleanup()

    async def __aenter__(self) -> "Orchestrator":
        await self.store.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # Query pipeline

    async def process_query(
        self,
        query: str,
        *,
        conversation_id: str | None = None,
        room_id: str | None = None,
        interface_type: InterfaceType | None = None,
        user_id: str | None = None,
        user_name: str | None = None,
    ) -> QueryResult:
        """Answer a query from notes, profile, history and external sources.

        Args:
            query: The user's question; blank queries get a default question
            conversation_id: Explicit conversation, which must exist
            room_id: Room whose conversation is used (created on demand)
            interface_type: Interface of the room
            user_id: Recorded on the persisted turn
            user_name: Recorded on the persisted turn and shown in history

        Returns:
            QueryResult with answer, citations and related notes

        Raises:
            NotFoundError: If the conversation does not exist or disappears
                before the turn is saved
        """
        if not query or not query.strip():
            logger.warning("Empty query received, using default question")
            query = DEFAULT_QUERY

        logger.debug(f"Processing query: \"{query}\"")

        conversation_id = await self._resolve_conversation(conversation_id, room_id, interface_type)
        profile = await self._ensure_profile()
        analysis = await self._analyze_profile(query, profile)
        notes = await self._retrieve_notes(query)
        external_results = await self._fetch_external(query, notes, analysis)
        history = await self._conversation_history(conversation_id)

        include_profile = profile is not None and self.scorer.should_include_profile_in_prompt(analysis)
        assembled = self.assembler.format_prompt_with_context(
            query=query,
            notes=notes,
            external_results=external_results,
            include_profile=include_profile,
            profile_relevance=analysis.relevance,
            profile=profile,
            conversation_history=history,
        )

        related_notes = await self._related_notes(notes)

        system_prompt = self.system_prompts.get_system_prompt(
            is_profile_query=analysis.is_profile_query,
            profile_relevance=analysis.relevance,
            has_external_sources=bool(external_results),
        )
        answer = await self._call_model(system_prompt, assembled.prompt)

        await self._save_turn(conversation_id, query, answer, user_id, user_name)

        include_in_response = self.scorer.should_include_profile_in_response(analysis)
        return QueryResult(
            answer=answer,
            citations=assembled.citations,
            related_notes=related_notes,
            profile=profile if include_in_response else None,
            external_sources=assembled.external_citations or None,
            conversation_id=conversation_id,
        )

    async def _resolve_conversation(
        self,
        conversation_id: str | None,
        room_id: str | None,
        interface_type: InterfaceType | None,
    ) -> str:
        if conversation_id:
            if await self.store.get_conversation(conversation_id) is None:
                raise ConversationNotFoundError(conversation_id)
            return conversation_id

        return await self.get_or_create_conversation(
            room_id or self.settings.default_room_id,
            interface_type or InterfaceType(self.settings.default_interface_type),
        )

    async def _ensure_profile(self) -> Profile | None:
        """Load the profile once; a failed or empty load is retried next query."""
        if self._profile is not None or self.profiles is None:
            return self._profile

        try:
            self._profile = await self.profiles.get()
        except Exception as e:
            logger.error(f"Failed to load profile: {str(e)}")
            return None

        if self._profile is None:
            logger.debug("No profile available")
        return self._profile

    async def _analyze_profile(self, query: str, profile: Profile | None) -> ProfileAnalysis:
        try:
            return await self.scorer.analyze_profile(query, profile)
        except Exception as e:
            logger.error(f"Profile analysis failed: {str(e)}")
            return ProfileAnalysis(is_profile_query=self.scorer.is_profile_query(query))

    async def _retrieve_notes(self, query: str) -> list[Note]:
        try:
            notes = await self.notes.search(query, limit=self.settings.note_search_limit)
        except Exception as e:
            logger.error(f"Note retrieval failed: {str(e)}")
            return []

        logger.info(f"Found {len(notes)} relevant notes")
        if notes:
            logger.debug(f"Top note: \"{notes[0].title or 'Untitled Note'}\"")
        return notes

    async def _fetch_external(
        self,
        query: str,
        notes: list[Note],
        analysis: ProfileAnalysis,
    ) -> list[ExternalResult]:
        if not self.settings.external_sources_enabled or self.external_search is None:
            return []
        if analysis.is_profile_query or not self.scorer.should_query_external_sources(query, notes):
            return []

        try:
            results = await self.external_search.semantic_search(
                query, limit=self.settings.external_results_limit
            )
        except Exception as e:
            logger.error(f"External search failed: {str(e)}")
            return []

        logger.info(f"Found {len(results)} external results")
        return results

    async def _conversation_history(self, conversation_id: str) -> str:
        try:
            return await self.memory.format_history_for_prompt(conversation_id)
        except NotFoundError:
            raise
        except Exception as e:
            logger.error(f"Failed to load conversation history: {str(e)}")
            return ""

    async def _related_notes(self, notes: list[Note]) -> list[Note]:
        if not notes:
            return []

        try:
            return await self.notes.get_related(notes[0].id, limit=self.settings.related_notes_limit)
        except Exception as e:
            logger.error(f"Related note lookup failed: {str(e)}")
            return []

    async def _call_model(self, system_prompt: str, user_prompt: str) -> str:
        if self.language_model is None:
            logger.warning("No language model configured")
            return APOLOGY_ANSWER

        try:
            response = await self.language_model.complete(
                system_prompt, user_prompt, max_tokens=self.settings.llm_max_tokens
            )
        except Exception as e:
            logger.error(f"Language model call failed: {str(e)}")
            return APOLOGY_ANSWER

        return response.text or APOLOGY_ANSWER

    async def _save_turn(
        self,
        conversation_id: str,
        query: str,
        answer: str,
        user_id: str | None,
        user_name: str | None,
    ) -> None:
        turn = Turn(
            query=query,
            response=answer,
            user_id=user_id or self.settings.default_user_id,
            user_name=user_name or self.settings.default_user_name,
        )
        try:
            turn_id = await self.memory.add_turn(conversation_id, turn)
        except NotFoundError:
            raise
        except Exception as e:
            logger.warning(f"Failed to save conversation turn: {str(e)}")
            return

        logger.debug(f"Saved turn {turn_id} in conversation {conversation_id}")

    # Conversation surface

    async def create_conversation(
        self,
        room_id: str,
        interface_type: InterfaceType,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        return await self.store.create_conversation(
            NewConversation(interface_type=interface_type, room_id=room_id, metadata=metadata or {})
        )

    async def get_or_create_conversation(self, room_id: str, interface_type: InterfaceType) -> str:
        conversation_id = await self.store.get_conversation_by_room(room_id, interface_type)
        if conversation_id:
            return conversation_id
        return await self.create_conversation(room_id, interface_type)

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        return await self.store.get_conversation(conversation_id)

    async def get_conversation_by_room(
        self,
        room_id: str,
        interface_type: InterfaceType | None = None,
    ) -> str | None:
        return await self.store.get_conversation_by_room(room_id, interface_type)

    async def _require(self, conversation_id: str) -> None:
        if await self.store.get_conversation(conversation_id) is None:
            raise ConversationNotFoundError(conversation_id)

    async def add_turn(
        self,
        conversation_id: str,
        query: str,
        response: str = "",
        user_id: str | None = None,
        user_name: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Append a turn and run the summarization check."""
        turn = Turn(
            query=query,
            response=response,
            user_id=user_id,
            user_name=user_name,
            metadata=metadata or {},
        )
        return await self.memory.add_turn(conversation_id, turn)

    async def get_turns(
        self,
        conversation_id: str,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[Turn]:
        await self._require(conversation_id)
        return await self.store.get_turns(conversation_id, limit=limit, offset=offset)

    async def get_summaries(self, conversation_id: str) -> list[Summary]:
        await self._require(conversation_id)
        return await self.store.get_summaries(conversation_id)

    async def get_conversation_history(
        self,
        conversation_id: str,
        max_tokens: int | None = None,
    ) -> str:
        """Prompt-ready history bounded by ``max_tokens``."""
        await self._require(conversation_id)
        return await self.memory.format_history_for_prompt(conversation_id, max_tokens)

    async def get_tiered_history(self, conversation_id: str) -> TieredHistory:
        await self._require(conversation_id)
        return await self.memory.get_tiered_history(conversation_id)

    async def force_summarize(self, conversation_id: str) -> bool:
        return await self.memory.force_summarize(conversation_id)

    async def find_conversations(self, criteria: SearchCriteria) -> list[ConversationInfo]:
        return await self.store.find_conversations(criteria)

    async def get_recent_conversations(
        self,
        limit: int = 10,
        interface_type: InterfaceType | None = None,
    ) -> list[ConversationInfo]:
        return await self.store.get_recent_conversations(limit, interface_type)

    async def update_metadata(self, conversation_id: str, metadata: dict[str, Any]) -> bool:
        return await self.store.update_metadata(conversation_id, metadata)

    async def delete_conversation(self, conversation_id: str) -> bool:
        return await self.store.delete_conversation(conversation_id)
