"""Embedding services used for profile and external-source relevance."""

from .base import EmbeddingError, EmbeddingService
from .local_provider import LocalEmbeddingService
from .openai_provider import OpenAIEmbeddingService
from .provider_factory import ProviderType, create_embedding_service

__all__ = [
    "EmbeddingError",
    "EmbeddingService",
    "LocalEmbeddingService",
    "OpenAIEmbeddingService",
    "ProviderType",
    "create_embedding_service",
]
