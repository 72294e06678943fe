"""Factory for creating embedding services."""

from enum import Enum

from ..config import Settings
from .base import EmbeddingError, EmbeddingService
from .local_provider import LocalEmbeddingService
from .openai_provider import OpenAIEmbeddingService


class ProviderType(str, Enum):
    """Supported embedding provider types."""

    OPENAI = "openai"
    LOCAL = "local"


def create_embedding_service(
    settings: Settings,
    provider_type: ProviderType | None = None,
) -> EmbeddingService:
    """Create an embedding service from settings.

    Prefers OpenAI when an API key is configured, otherwise falls back to the
    local sentence-transformers model.

    Raises:
        EmbeddingError: If the requested provider cannot be configured
    """
    if provider_type is None:
        if settings.embedding_provider:
            provider_type = ProviderType(settings.embedding_provider)
        elif settings.openai_api_key:
            provider_type = ProviderType.OPENAI
        else:
            provider_type = ProviderType.LOCAL

    if provider_type == ProviderType.OPENAI:
        if not settings.openai_api_key:
            raise EmbeddingError(
                "OpenAI API key required but not configured. "
                "Set OPENAI_API_KEY environment variable."
            )
        return OpenAIEmbeddingService(
            api_key=settings.openai_api_key,
            model=settings.embedding_model,
            base_url=settings.openai_base_url,
        )

    if provider_type == ProviderType.LOCAL:
        return LocalEmbeddingService(model_name=settings.local_embedding_model)

    raise EmbeddingError(f"Unsupported provider type: {provider_type}")
