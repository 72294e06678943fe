"""OpenAI embedding service implementation."""

import logging

from openai import AsyncOpenAI, RateLimitError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .base import EmbeddingError, EmbeddingService

logger = logging.getLogger(__name__)


class OpenAIEmbeddingService(EmbeddingService):
    """OpenAI embedding service, text-embedding-3-small by default."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        base_url: str | None = None,
    ):
        """Initialize OpenAI embedding service.

        Args:
            api_key: OpenAI API key
            model: OpenAI embedding model to use
            base_url: Optional OpenAI-compatible endpoint
        """
        if not api_key:
            raise EmbeddingError("OpenAI API key not configured")

        self.model = model
        self.client = AsyncOpenAI(api_key=api_key, base_url=base_url)
        self._dimension_map = {
            "text-embedding-3-small": 1536,
            "text-embedding-3-large": 3072,
            "text-embedding-ada-002": 1536,
        }

    @property
    def dimension(self) -> int:
        return self._dimension_map.get(self.model, 1536)

    @property
    def model_name(self) -> str:
        return f"openai:{self.model}"

    async def close(self) -> None:
        await self.client.close()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(RateLimitError),
        reraise=True
    )
    async def _call_openai_embeddings(self, texts: list[str]) -> list[list[float]]:
        """Call OpenAI embeddings API with retry logic."""
        try:
            response = await self.client.embeddings.create(input=texts, model=self.model)
        except RateLimitError:
            logger.warning("OpenAI rate limit hit, retrying...")
            raise
        except Exception as e:
            logger.error(f"OpenAI embedding API failed: {str(e)}")
            raise EmbeddingError(f"OpenAI API error: {str(e)}") from e

        return [item.embedding for item in response.data]

    async def embed(self, text: str) -> list[float]:
        if not text or not text.strip():
            return [0.0] * self.dimension

        try:
            embeddings = await self._call_openai_embeddings([text.strip()])
        except RateLimitError as e:
            raise EmbeddingError("OpenAI rate limit exceeded") from e
        return embeddings[0]

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        # OpenAI has batch size limits, chunk if necessary
        chunk_size = 100
        all_embeddings: list[list[float]] = []

        for i in range(0, len(texts), chunk_size):
            chunk = texts[i:i + chunk_size]
            non_empty = [text.strip() for text in chunk if text and text.strip()]
            try:
                embedded = await self._call_openai_embeddings(non_empty) if non_empty else []
            except RateLimitError as e:
                raise EmbeddingError("OpenAI rate limit exceeded") from e

            # Re-align with the chunk, zero vectors for empty texts
            embedded_iter = iter(embedded)
            for text in chunk:
                if text and text.strip():
                    all_embeddings.append(next(embedded_iter))
                else:
                    all_embeddings.append([0.0] * self.dimension)

        return all_embeddings
