"""Wikipedia external knowledge source."""

import logging
from typing import Any
from urllib.parse import quote

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


class WikipediaSearch(ExternalSearch):
    """Searches English Wikipedia and returns article introductions."""

    name = "Wikipedia"
    base_url = "https://en.wikipedia.org/w/api.php"
    user_agent = "PersonalBrain/1.0 (personal use)"

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 10.0):
        self.client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": self.user_agent},
        )

    async def close(self) -> None:
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(httpx.RequestError),
        reraise=True
    )
    async def _call_api(self, params: dict[str, Any]) -> dict[str, Any]:
        """Make a Wikipedia API call with retry logic."""
        try:
            response = await self.client.get(
                self.base_url,
                params={**params, "format": "json"},
            )
            response.raise_for_status()
            return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Wikipedia API error {e.response.status_code}")
            raise ExternalSearchError(
                f"Wikipedia API error: {e.response.status_code}"
            ) from e

    async def search(self, query: str, limit: int = 3) -> list[ExternalResult]:
        """Search Wikipedia and fetch the intro extract of each hit."""
        logger.info(f"Searching Wikipedia for: \"{query}\"")

        try:
            data = await self._call_api({
                "action": "query",
                "list": "search",
                "srsearch": query,
                "srlimit": str(limit),
            })
        except httpx.RequestError as e:
            raise ExternalSearchError(f"Wikipedia request failed: {str(e)}") from e

        hits = data.get("query", {}).get("search", [])
        if not hits:
            logger.info("No Wikipedia results found")
            return []

        results: list[ExternalResult] = []
        for hit in hits:
            try:
                content = await self._fetch_extract(hit["pageid"])
            except (ExternalSearchError, httpx.RequestError) as e:
                logger.error(f"Error fetching Wikipedia article {hit.get('title')}: {str(e)}")
                continue

            title = hit.get("title", "")
            results.append(ExternalResult(
                title=title,
                source=self.name,
                url=f"https://en.wikipedia.org/wiki/{quote(title.replace(' ', '_'))}",
                content=content,
            ))

        return results

    async def _fetch_extract(self, page_id: int) -> str:
        data = await self._call_api({
            "action": "query",
            "pageids": str(page_id),
            "prop": "extracts",
            "exintro": "1",
            "explaintext": "1",
        })
        page = data.get("query", {}).get("pages", {}).get(str(page_id), {})
        return page.get("extract") or "No content available."

    async def semantic_search(self, query: str, limit: int = 3) -> list[ExternalResult]:
        return await self.search(query, limit)

    async def check_availability(self) -> bool:
        try:
            data = await self._call_api({
                "action": "query",
                "meta": "siteinfo",
                "siprop": "general",
            })
        except (ExternalSearchError, httpx.RequestError) as e:
            logger.error(f"Wikipedia API not available: {str(e)}")
            return False
        return bool(data.get("query", {}).get("general"))
