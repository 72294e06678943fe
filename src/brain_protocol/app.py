"""Application wiring: logging setup and construction of the engine.

One Orchestrator is built at process start and passed to adapters by
handle. Tests build their own instances with fakes.
"""

import logging

from .action_plane.conversation_resources import register_conversation_resources
from .action_plane.registry import ResourceRegistry
from .core.config import Settings, settings as default_settings
from .core.embeddings.base import EmbeddingService
from .core.embeddings.provider_factory import create_embedding_service
from .core.exceptions import EmbeddingError
from .core.llm.base import LanguageModel
from .core.llm.openai_model import OpenAILanguageModel
from .core.utils.tokens import TokenCounter
from .governor.context.assembler import ContextAssembler
from .governor.context.system_prompts import SystemPromptGenerator
from .governor.orchestrator import Orchestrator
from .governor.relevance import RelevanceScorer, RelevanceThresholds
from .memory.services.summarizer import LLMSummarizer, Summarizer
from .memory.storage.base import ConversationStore
from .memory.storage.in_memory import InMemoryConversationStore
from .memory.storage.redis_store import RedisConversationStore
from .memory.tiered import TieredMemoryConfig, TieredMemoryManager
from .retrieval.base import ExternalSearch, NoteRetrieval, ProfileRetrieval
from .retrieval.external.aggregator import ExternalSourceAggregator
from .retrieval.external.news import NewsApiSearch
from .retrieval.external.wikipedia import WikipediaSearch

logger = logging.getLogger(__name__)


def configure_logging(settings: Settings | None = None) -> None:
    """Configure root logging from settings."""
    settings = settings or default_settings
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_store(settings: Settings) -> ConversationStore:
    match settings.storage_backend:
        case "redis":
            return RedisConversationStore(
                redis_url=settings.redis_url,
                room_lookup_precedence=settings.room_lookup_precedence,
            )
        case "memory":
            return InMemoryConversationStore(
                room_lookup_precedence=settings.room_lookup_precedence,
            )


def build_language_model(settings: Settings) -> LanguageModel | None:
    if not settings.openai_api_key:
        logger.warning("OpenAI API key not configured, answers will use the fallback text")
        return None
    return OpenAILanguageModel(
        api_key=settings.openai_api_key,
        model=settings.llm_model,
        base_url=settings.openai_base_url,
    )


def build_embedding_service(settings: Settings) -> EmbeddingService | None:
    try:
        return create_embedding_service(settings)
    except EmbeddingError as e:
        logger.warning(f"Embeddings unavailable, relevance falls back to keywords: {str(e)}")
        return None


def build_external_search(
    settings: Settings,
    embedding_service: EmbeddingService | None = None,
) -> ExternalSourceAggregator:
    """Aggregate the enabled external sources in configured order."""
    sources: list[ExternalSearch] = []
    for name in settings.external_sources:
        if name == "wikipedia":
            sources.append(WikipediaSearch())
        elif name == "newsapi":
            if not settings.news_api_key:
                logger.info("NewsAPI key not configured, skipping NewsAPI source")
                continue
            sources.append(NewsApiSearch(
                settings.news_api_key,
                max_age_hours=settings.news_max_age_hours,
            ))

    if not sources:
        logger.warning("No external sources enabled")
    return ExternalSourceAggregator(
        sources,
        embedding_service,
        cache_ttl=settings.external_cache_ttl,
    )


def build_orchestrator(
    notes: NoteRetrieval,
    profiles: ProfileRetrieval | None = None,
    settings: Settings | None = None,
    *,
    store: ConversationStore | None = None,
    language_model: LanguageModel | None = None,
    embedding_service: EmbeddingService | None = None,
    external_search: ExternalSearch | None = None,
    summarizer: Summarizer | None = None,
    counter: TokenCounter | None = None,
) -> Orchestrator:
    """Construct the full engine.

    Collaborators that are not passed in are built from settings.

    Args:
        notes: Note search collaborator
        profiles: Profile collaborator
        settings: Settings to build from, the module settings by default
        store: Conversation store, chosen by ``storage_backend`` otherwise
        language_model: Model used for answers and summaries
        embedding_service: Embeddings used for profile relevance
        external_search: Gap-filling external source
        summarizer: Summarizer used by tiered memory
        counter: Token counter used for history budgets

    Returns:
        A ready Orchestrator
    """
    settings = settings or default_settings

    store = store or build_store(settings)
    if language_model is None:
        language_model = build_language_model(settings)
    if embedding_service is None:
        embedding_service = build_embedding_service(settings)
    if external_search is None and settings.external_sources_enabled:
        external_search = build_external_search(settings, embedding_service)

    summarizer = summarizer or LLMSummarizer(
        language_model,
        max_tokens=settings.summarizer_max_tokens,
        counter=counter,
    )
    memory = TieredMemoryManager(
        store,
        summarizer,
        config=TieredMemoryConfig.from_settings(settings),
        counter=counter,
    )
    thresholds = RelevanceThresholds.from_settings(settings)

    logger.info(f"Built orchestrator with {type(store).__name__} storage")
    return Orchestrator(
        store=store,
        memory=memory,
        scorer=RelevanceScorer(embedding_service, thresholds),
        assembler=ContextAssembler(thresholds),
        system_prompts=SystemPromptGenerator(thresholds),
        notes=notes,
        profiles=profiles,
        language_model=language_model,
        external_search=external_search,
        settings=settings,
    )


def build_registry(orchestrator: Orchestrator) -> ResourceRegistry:
    """Registry holding the conversation resources and tools."""
    return register_conversation_resources(ResourceRegistry(), orchestrator)
