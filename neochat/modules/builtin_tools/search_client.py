"""Tavily web search client.

API:
- Search: POST {api_url} with {api_key, query, max_results, include_answer, search_depth}
  -> {answer?, results: [{title, url, content}]}
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

import httpx

from neochat.core.log_sanitizer import summarize_text_for_logging
from neochat.domain.errors import ToolError

logger = logging.getLogger(__name__)


class SearchError(ToolError):
    """Search request failed or the API answered with an error."""
    pass


@dataclass
class SearchResult:
    title: str = ""
    url: str = ""
    content: str = ""


@dataclass
class SearchResponse:
    answer: Optional[str] = None
    results: List[SearchResult] = field(default_factory=list)


def clip_snippet(content: str, limit: int) -> str:
    """Cut ``content`` to ``limit`` chars, marking the cut with '...'."""
    if len(content) <= limit:
        return content
    return content[:limit] + "..."


class TavilySearchClient:
    """Client for the Tavily search API.

    Args:
        api_key: The user's Tavily key.
        api_url: Search endpoint.
        transport: Optional httpx transport, used by tests to stub the API.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.tavily.com/search",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self._transport = transport

    async def search(
        self,
        query: str,
        max_results: int = 5,
        depth: str = "basic",
        timeout: float = 20.0,
    ) -> SearchResponse:
        """Run one search.

        Raises:
            SearchError: on network failure, timeout or a non-2xx reply.
        """
        payload = {
            "api_key": self.api_key,
            "query": query,
            "max_results": max_results,
            "include_answer": True,
            "search_depth": depth,
        }
        logger.debug("Web search (%s): %s", depth, summarize_text_for_logging(query))
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            try:
                response = await client.post(self.api_url, json=payload)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                raise SearchError(_error_detail(exc.response)) from exc
            except httpx.TimeoutException as exc:
                raise SearchError(f"Search timed out after {timeout:g}s") from exc
            except httpx.RequestError as exc:
                raise SearchError(f"Search request failed: {exc}") from exc
            except ValueError as exc:
                raise SearchError("Search API returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise SearchError("Search API returned an unexpected payload")

        results = [
            SearchResult(
                title=str(r.get("title") or ""),
                url=str(r.get("url") or ""),
                content=str(r.get("content") or ""),
            )
            for r in data.get("results") or []
            if isinstance(r, dict)
        ]
        return SearchResponse(answer=data.get("answer") or None, results=results)

    async def search_many(
        self,
        queries: Sequence[str],
        max_results: int = 6,
        depth: str = "advanced",
        timeout: float = 25.0,
    ) -> List[Union[SearchResponse, BaseException]]:
        """Run several searches concurrently; each slot holds a response or the exception it raised."""
        return await asyncio.gather(
            *(self.search(q, max_results=max_results, depth=depth, timeout=timeout) for q in queries),
            return_exceptions=True,
        )


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        if detail:
            return str(detail)
    return f"HTTP {response.status_code}"
