"""Local sentence-transformers embedding service implementation."""

import asyncio
import logging
from typing import Any

from .base import EmbeddingError, EmbeddingService

logger = logging.getLogger(__name__)


class LocalEmbeddingService(EmbeddingService):
    """Local embedding service using sentence-transformers."""

    def __init__(self, model_name: str = "all-MiniLM-L6-v2"):
        """Initialize local embedding service.

        Args:
            model_name: Sentence-transformers model to use
        """
        self.model_name_str = model_name
        self.model: Any = None
        self._dimension_map = {
            "all-MiniLM-L6-v2": 384,
            "all-mpnet-base-v2": 768,
            "all-distilroberta-v1": 768,
        }

    @property
    def dimension(self) -> int:
        return self._dimension_map.get(self.model_name_str, 384)

    @property
    def model_name(self) -> str:
        return f"local:{self.model_name_str}"

    async def _load_model(self) -> Any:
        if self.model is not None:
            return self.model

        try:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading sentence-transformers model: {self.model_name_str}")
            # Construction can download weights
            self.model = await asyncio.to_thread(SentenceTransformer, self.model_name_str)
            logger.info("Model loaded successfully")
            return self.model
        except ImportError as e:
            raise EmbeddingError(
                "sentence-transformers not available. "
                "Install with: pip install sentence-transformers"
            ) from e
        except Exception as e:
            raise EmbeddingError(
                f"Failed to load model {self.model_name_str}: {str(e)}"
            ) from e

    async def close(self) -> None:
        # sentence-transformers models don't need explicit cleanup
        self.model = None

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            return [0.0] * self.dimension

        embeddings = await self.embed_batch([text])
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        model = await self._load_model()
        clean_texts = [text.strip() if text and text.strip() else "" for text in texts]

        try:
            # encode is CPU-bound; keep the event loop responsive
            embeddings = await asyncio.to_thread(model.encode, clean_texts)
            return [embedding.tolist() for embedding in embeddings]
        except Exception as e:
            logger.error(f"Local batch embedding failed: {str(e)}")
            raise EmbeddingError(f"Local embedding error: {str(e)}") from e
