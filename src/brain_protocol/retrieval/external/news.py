"""NewsAPI external knowledge source.

Requires an API key from https://newsapi.org/. Without one the source
reports itself unavailable and returns no results.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ...core.domain.knowledge import ExternalResult
from ...core.exceptions import ExternalSearchError
from ..base import ExternalSearch

logger = logging.getLogger(__name__)

# NewsAPI appends "[+123 chars]" to truncated article bodies
TRUNCATION_MARKER = re.compile(r"\[\+\d+ chars\]$")


class NewsApiSearch(ExternalSearch):
    """Searches recent news articles through the NewsAPI "everything" endpoint."""

    name = "NewsAPI"
    base_url = "https://newsapi.org/v2"

    def __init__(
        self,
        api_key: str,
        max_age_hours: int = 24 * 7,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ):
        """Initialize the NewsAPI source.

        Args:
            api_key: NewsAPI key
            max_age_hours: Oldest article age considered
            client: Optional preconfigured HTTP client
            timeout: Request timeout in seconds for the default client
        """
        self.api_key = api_key
        self.max_age_hours = max_age_hours
        self.client = client or httpx.AsyncClient(timeout=timeout)

        if not self.api_key:
            logger.warning("NewsAPI source initialized without API key")

    async def close(self) -> None:
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.RequestError),
        reraise=True
    )
    async def _call_api(self, endpoint: str, params: dict[str, Any]) -> dict[str, Any]:
        """Make a NewsAPI call with retry logic."""
        try:
            response = await self.client.get(
                f"{self.base_url}/{endpoint}",
                params=params,
                headers={"X-Api-Key": self.api_key},
            )
            response.raise_for_status()
            data = response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"NewsAPI error {e.response.status_code}")
            raise ExternalSearchError(f"NewsAPI error: {e.response.status_code}") from e

        if data.get("status") != "ok":
            raise ExternalSearchError(f"NewsAPI error: {data.get('message', 'Unknown error')}")
        return data

    async def search(self, query: str, limit: int = 3) -> list[ExternalResult]:
        """Search recent articles matching ``query``, most relevant first."""
        if not self.api_key:
            logger.warning("NewsAPI key not provided, cannot search")
            return []

        logger.info(f"Searching NewsAPI for: \"{query}\"")
        since = datetime.now(timezone.utc) - timedelta(hours=self.max_age_hours)

        try:
            data = await self._call_api("everything", {
                "q": query,
                "from": since.date().isoformat(),
                "sortBy": "relevancy",
                "language": "en",
                "pageSize": str(limit),
            })
        except httpx.RequestError as e:
            raise ExternalSearchError(f"NewsAPI request failed: {str(e)}") from e

        articles = data.get("articles") or []
        if not articles:
            logger.info("No NewsAPI results found")
            return []

        results: list[ExternalResult] = []
        for article in articles[:limit]:
            publisher = (article.get("source") or {}).get("name") or "Unknown Source"
            results.append(ExternalResult(
                title=article.get("title") or "",
                source=f"{self.name} - {publisher}",
                url=article.get("url") or "",
                content=self._format_article(article),
            ))

        return results

    def _format_article(self, article: dict[str, Any]) -> str:
        lines = []
        if article.get("author"):
            lines.append(f"By {article['author']}")
        lines.append(f"Published: {article.get('publishedAt', 'unknown')}")
        lines.append("")

        if article.get("description"):
            lines.append(article["description"])
            lines.append("")
        if article.get("content"):
            lines.append(TRUNCATION_MARKER.sub("", article["content"]))

        return "\n".join(lines).strip()

    async def semantic_search(self, query: str, limit: int = 3) -> list[ExternalResult]:
        return await self.search(query, limit)

    async def check_availability(self) -> bool:
        if not self.api_key:
            return False

        try:
            await self._call_api("top-headlines", {"country": "us", "pageSize": "1"})
        except (ExternalSearchError, httpx.RequestError) as e:
            logger.error(f"NewsAPI not available: {str(e)}")
            return False
        return True
