import asyncio
import traceback
from typing import Optional

import httpx

from app.core.config import settings
from app.core.logging import get_logger
from app.models.schemas import CurrentInfoSnippet, Source

logger = get_logger(__name__)

MAX_SOURCES = 3


class WebSearchClient:
    """Live search used when a question asks about current events"""

    def __init__(self, base_url: Optional[str] = None, timeout_seconds: Optional[float] = None):
        self.base_url = base_url or settings.WEB_SEARCH_URL
        self.timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.WEB_SEARCH_TIMEOUT_SECONDS
        self._client: Optional[httpx.AsyncClient] = None

    def http_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._client

    async def aclose(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def search(self, query: str) -> CurrentInfoSnippet:
        """
        Query the DuckDuckGo instant answer API.
        Any failure, including a timeout, gives back an empty snippet.
        """
        try:
            return await asyncio.wait_for(self._search(query), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Web search timed out after {self.timeout_seconds}s: {query[:50]}")
        except Exception as e:
            logger.warning(f"Web search failed: {str(e)}")
            logger.debug(traceback.format_exc())
        return CurrentInfoSnippet()

    async def _search(self, query: str) -> CurrentInfoSnippet:
        params = {
            "q": query,
            "format": "json",
            "no_html": 1,
            "skip_disambig": 1,
        }
        response = await self.http_client().get(self.base_url, params=params)
        response.raise_for_status()
        data = response.json()

        return self.parse_results(data)

    @staticmethod
    def parse_results(data: dict) -> CurrentInfoSnippet:
        """Turn an instant answer payload into snippet text plus sources"""
        lines = []
        sources = []

        abstract = data.get("AbstractText") or ""
        if abstract:
            lines.append(abstract)
            sources.append(Source(
                title=data.get("Heading") or "DuckDuckGo",
                url=data.get("AbstractURL") or "https://duckduckgo.com/",
                snippet=abstract[:200],
            ))

        # Direct results rank above related topics
        entries = list(data.get("Results") or []) + list(data.get("RelatedTopics") or [])
        for topic in entries:
            if len(sources) >= MAX_SOURCES:
                break
            # Grouped topics nest their entries one level down and are skipped
            text = topic.get("Text")
            url = topic.get("FirstURL")
            if not text or not url:
                continue
            lines.append(text)
            sources.append(Source(title=text.split(" - ")[0][:80], url=url, snippet=text[:200]))

        logger.info(f"Web search returned {len(sources)} sources")
        return CurrentInfoSnippet(content="\n".join(lines), sources=sources[:MAX_SOURCES])
