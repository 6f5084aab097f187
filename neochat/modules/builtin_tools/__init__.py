"""Built-in tools: memory, web search and image generation."""

from .registry import BuiltinToolRegistry, filter_facts, format_search_response
from .schemas import BUILTIN_TOOL_NAMES, BUILTIN_TOOL_SCHEMAS
from .search_client import SearchError, SearchResponse, SearchResult, TavilySearchClient, clip_snippet

__all__ = [
    "BuiltinToolRegistry",
    "BUILTIN_TOOL_NAMES",
    "BUILTIN_TOOL_SCHEMAS",
    "SearchError",
    "SearchResponse",
    "SearchResult",
    "TavilySearchClient",
    "clip_snippet",
    "filter_facts",
    "format_search_response",
]
