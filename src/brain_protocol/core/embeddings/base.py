"""Base embedding service interface using strategy pattern."""

import math
from abc import ABC, abstractmethod
from typing import Any, Sequence

from ..exceptions import EmbeddingError


class EmbeddingService(ABC):
    """Abstract base class for embedding services."""

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Number of dimensions in the embedding vectors."""
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Name/identifier of the embedding model."""
        pass

    @abstractmethod
    async def embed(self, text: str) -> list[float]:
        """Generate embedding for a single text string.

        Args:
            text: The text to embed

        Returns:
            List of float values representing the embedding vector

        Raises:
            EmbeddingError: If embedding generation fails
        """
        pass

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Generate embeddings for multiple text strings."""
        return [await self.embed(text) for text in texts]

    def cosine_similarity(self, vec1: Sequence[float], vec2: Sequence[float]) -> float:
        """Calculate cosine similarity between two vectors.

        Args:
            vec1: First vector
            vec2: Second vector

        Returns:
            Cosine similarity in [-1.0, 1.0]; 0.0 for empty, zero or
            mismatched vectors
        """
        if len(vec1) != len(vec2) or not vec1 or not vec2:
            return 0.0

        dot_product = sum(a * b for a, b in zip(vec1, vec2, strict=True))
        magnitude1 = math.sqrt(sum(a * a for a in vec1))
        magnitude2 = math.sqrt(sum(b * b for b in vec2))

        if magnitude1 == 0.0 or magnitude2 == 0.0:
            return 0.0

        return max(-1.0, min(1.0, dot_product / (magnitude1 * magnitude2)))

    async def close(self) -> None:
        """Release client resources."""
        pass

    async def __aenter__(self) -> "EmbeddingService":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()


__all__ = ["EmbeddingError", "EmbeddingService"]
