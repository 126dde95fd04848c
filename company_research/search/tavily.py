"""
Tavily Web Search

SearchProvider backed by the Tavily search API. Requests go through the
shared HttpGateway, so pacing, retries and caching are handled there.

Raw page content, when requested, is appended to the result snippet
after a "--- Raw Content ---" marker so the context builder sees the
whole page text.
"""

import logging
from typing import Optional

from ..config import PROCESSING, SEARCH, ProcessingConfig, SearchConfig
from ..errors import ConfigurationError
from ..gateway import HttpGateway
from ..models import SearchHit

logger = logging.getLogger(__name__)

RAW_CONTENT_MARKER = "--- Raw Content ---"


class TavilySearchProvider:
    """
    Tavily search over the HttpGateway.

    Args:
        gateway: Shared HTTP gateway.
        api_key: Tavily API key. Required.
        config: Search settings (base URL, default result count).
        processing: Timeout and cache TTL settings.

    Raises:
        ConfigurationError: If the API key is empty.
    """

    def __init__(
        self,
        gateway: HttpGateway,
        api_key: str,
        config: SearchConfig = SEARCH,
        processing: ProcessingConfig = PROCESSING,
    ):
        if not api_key:
            raise ConfigurationError(
                "Tavily API key not set. Add to credentials/tavily_api_key.txt or TAVILY_API_KEY"
            )
        self.gateway = gateway
        self.api_key = api_key
        self.config = config
        self.processing = processing

    @property
    def search_url(self) -> str:
        return self.config.base_url.rstrip("/") + "/search"

    def search(
        self,
        query: str,
        *,
        max_results: Optional[int] = None,
        search_depth: str = "advanced",
        topic: str = "general",
        days: Optional[int] = None,
        include_answer: bool = False,
        include_raw_content: bool = False,
        include_domains: Optional[list[str]] = None,
        exclude_domains: Optional[list[str]] = None,
        cache_ttl: Optional[int] = None,
    ) -> list[SearchHit]:
        """
        Run one Tavily search.

        Args:
            query: Search query.
            max_results: Result cap (defaults to config.max_results).
            search_depth: "basic" or "advanced".
            topic: "general" or "news".
            days: Recency window for news searches.
            include_answer: Ask Tavily for its generated answer (logged only).
            include_raw_content: Append full page text to each snippet.
            include_domains: Restrict to these domains.
            exclude_domains: Skip these domains.
            cache_ttl: Response cache TTL; defaults to the long TTL.

        Returns:
            Hits in provider order. `is_official` is left False here; the
            aggregator decides it.
        """
        payload = {
            "api_key": self.api_key,
            "query": query,
            "search_depth": search_depth,
            "topic": topic,
            "max_results": max_results or self.config.max_results,
            "include_answer": include_answer,
            "include_raw_content": include_raw_content,
            "include_images": False,
        }
        if days is not None:
            payload["days"] = days
        if include_domains:
            payload["include_domains"] = include_domains
        if exclude_domains:
            payload["exclude_domains"] = exclude_domains

        data = self.gateway.post(
            self.search_url,
            json=payload,
            timeout=self.processing.search_timeout,
            cache_ttl=self.processing.cache_ttl_long if cache_ttl is None else cache_ttl,
            operation_name=f"tavily_search({query[:40]})",
        )

        hits = [self._to_hit(result) for result in (data or {}).get("results", [])]
        logger.info("Tavily: %d results for %r", len(hits), query[:80])
        return hits

    @staticmethod
    def _to_hit(result: dict) -> SearchHit:
        content = result.get("content") or ""
        raw = result.get("raw_content")
        if raw and raw.strip() and raw.strip() != content.strip():
            content = f"{content}\n\n{RAW_CONTENT_MARKER}\n{raw}" if content else raw
        return SearchHit(
            title=result.get("title") or "",
            url=result.get("url") or "",
            content=content,
            score=result.get("score", 0.0),
            published_date=result.get("published_date"),
        )

    def test_connection(self) -> bool:
        """Run a tiny search; True when Tavily answered."""
        self.search("test", max_results=1, search_depth="basic", cache_ttl=0)
        return True
