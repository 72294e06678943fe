"""Fan-in over several external sources with optional embedding re-ranking."""

import logging
import time
from typing import Callable

from ...core.domain.knowledge import ExternalResult
from ...core.embeddings.base import EmbeddingService
from ...core.exceptions import ExternalSearchError
from ..base import ExternalSearch

logger = logging.getLogger(__name__)


class ExternalSourceAggregator(ExternalSearch):
    """Queries every configured source and merges the results.

    When an embedding service is available, results are ranked by cosine
    similarity to the query; otherwise source order is kept. Ranked results
    are cached per query and limit for ``cache_ttl`` seconds.
    """

    name = "External sources"

    def __init__(
        self,
        sources: list[ExternalSearch],
        embedding_service: EmbeddingService | None = None,
        cache_ttl: float = 0.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.sources = sources
        self.embedding_service = embedding_service
        self.cache_ttl = cache_ttl
        self.clock = clock
        self._cache: dict[tuple[str, int], tuple[float, list[ExternalResult]]] = {}

    async def close(self) -> None:
        """Close every source. The embedding service is owned by the caller."""
        for source in self.sources:
            await source.close()
        self._cache.clear()

    async def check_availability(self) -> bool:
        availability = await self.check_sources_availability()
        return any(availability.values())

    async def check_sources_availability(self) -> dict[str, bool]:
        """Availability of each source, keyed by source name."""
        availability: dict[str, bool] = {}
        for source in self.sources:
            try:
                availability[source.name] = await source.check_availability()
            except Exception as e:
                logger.error(f"Availability check for {source.name} failed: {str(e)}")
                availability[source.name] = False
        return availability

    async def search(self, query: str, limit: int = 3) -> list[ExternalResult]:
        """Collect results from all sources in source order."""
        results: list[ExternalResult] = []
        failures = 0

        for source in self.sources:
            try:
                results.extend(await source.semantic_search(query, limit))
            except ExternalSearchError as e:
                failures += 1
                logger.error(f"External source {source.name} failed: {str(e)}")

        if self.sources and failures == len(self.sources):
            raise ExternalSearchError("All external sources failed")

        return results

    async def semantic_search(self, query: str, limit: int = 3) -> list[ExternalResult]:
        cached = self._cached(query, limit)
        if cached is not None:
            logger.debug(f"Using cached external results for: \"{query}\"")
            return cached

        results = await self._rank(query, await self.search(query, limit), limit)
        if self.cache_ttl > 0:
            self._cache[(query, limit)] = (self.clock(), results)
        return list(results)

    def _cached(self, query: str, limit: int) -> list[ExternalResult] | None:
        entry = self._cache.get((query, limit))
        if entry is None:
            return None

        stored_at, results = entry
        if self.clock() - stored_at >= self.cache_ttl:
            del self._cache[(query, limit)]
            return None
        return list(results)

    async def _rank(
        self,
        query: str,
        results: list[ExternalResult],
        limit: int,
    ) -> list[ExternalResult]:
        if not results or self.embedding_service is None:
            return results[:limit]

        try:
            query_embedding = await self.embedding_service.embed(query)
            scored: list[tuple[float, int, ExternalResult]] = []
            for index, result in enumerate(results):
                embedding = result.embedding or await self.embedding_service.embed(result.content)
                similarity = self.embedding_service.cosine_similarity(query_embedding, embedding)
                scored.append((similarity, index, result.model_copy(update={"embedding": embedding})))
        except Exception as e:
            logger.warning(f"Embedding re-ranking failed, keeping source order: {str(e)}")
            return results[:limit]

        scored.sort(key=lambda item: (-item[0], item[1]))
        return [result for _, _, result in scored[:limit]]
