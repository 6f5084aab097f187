"""Built-in tool handlers.

Each handler turns a model-issued tool call into a ``ToolOutcome`` and never
raises: every failure becomes a ``TextOutcome`` describing what went wrong,
which the model reads like any other tool result.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Tuple

from neochat.core.log_sanitizer import sanitize_for_logging
from neochat.core.metrics_logger import log_metric
from neochat.domain.errors import ValidationError
from neochat.domain.tool_outcomes import ImageOutcome, TextOutcome, ToolOutcome
from neochat.modules.storage.memory_repository import MemoryRepository, SaveStatus

from .schemas import BUILTIN_TOOL_NAMES, IMAGE_QUALITIES, IMAGE_SIZES
from .search_client import SearchError, SearchResponse, TavilySearchClient, clip_snippet

logger = logging.getLogger(__name__)

SEARCH_NOT_CONFIGURED = (
    "Web search is not configured. The user needs to add a Tavily API key in Settings -> Model."
)
IMAGE_NOT_CONFIGURED = "Image generation requires an OpenAI API key set in Settings."
SNIPPET_CHARS = 400


class ImageGenerator(Protocol):
    async def generate_image(self, prompt: str, size: str, quality: str) -> Tuple[Optional[str], Optional[str]]:
        ...


def _parse_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def format_search_response(data: SearchResponse) -> str:
    lines = []
    if data.answer:
        lines.append(f"**Answer:** {data.answer}\n")
    if data.results:
        lines.append("**Sources:**")
        for i, r in enumerate(data.results, start=1):
            lines.append(f"[{i}] **{r.title}**\n{r.url}\n{clip_snippet(r.content, SNIPPET_CHARS)}")
    return "\n\n".join(lines) or "No results found."


def filter_facts(facts, query: str):
    """Facts containing any whitespace-separated query token, ignoring case."""
    terms = [t for t in query.lower().split() if t]
    if not terms:
        return list(facts)
    return [f for f in facts if any(t in f["content"].lower() for t in terms)]


class BuiltinToolRegistry:
    """Executes the four built-in tools for one user.

    Args:
        user_id: Owner of the memory store the memory tools operate on.
        memory_repo: Fact storage with dedup and cap enforcement.
        search_client: Tavily client, or None when the user has no search key.
        image_generator: Image backend, or None when the user has no provider key.
        search_timeout: Timeout for ``web_search`` requests in seconds.
    """

    def __init__(
        self,
        user_id: str,
        memory_repo: MemoryRepository,
        search_client: Optional[TavilySearchClient] = None,
        image_generator: Optional[ImageGenerator] = None,
        search_timeout: float = 20.0,
    ):
        self.user_id = user_id
        self.memory_repo = memory_repo
        self.search_client = search_client
        self.image_generator = image_generator
        self.search_timeout = search_timeout
        self._handlers: Dict[str, Callable[[Dict[str, Any]], Awaitable[ToolOutcome]]] = {
            "memory_save": self._memory_save,
            "memory_get": self._memory_get,
            "web_search": self._web_search,
            "generate_image": self._generate_image,
        }

    @staticmethod
    def has_tool(name: str) -> bool:
        return name in BUILTIN_TOOL_NAMES

    async def execute(self, name: str, args: Optional[Dict[str, Any]]) -> ToolOutcome:
        handler = self._handlers.get(name)
        if handler is None:
            return TextOutcome(f"Unknown built-in tool: {name}")
        log_metric("tool_call", self.user_id, tool_name=name, source="builtin")
        try:
            return await handler(args or {})
        except Exception as e:  # noqa: BLE001 - tool failures are reported to the model
            logger.error("Built-in tool %s failed: %s", name, e, exc_info=True)
            return TextOutcome(f"Error: {e}")

    async def _memory_save(self, args: Dict[str, Any]) -> ToolOutcome:
        fact = str(args.get("fact") or "").strip()
        if not fact:
            return TextOutcome("Error: No fact provided.")
        try:
            status, _ = self.memory_repo.add_fact(self.user_id, fact)
        except ValidationError as e:
            return TextOutcome(f"Error: {e.message}")
        if status is SaveStatus.DUPLICATE:
            return TextOutcome(f'Already remembered: "{fact}"')
        log_metric("memory_save", self.user_id, source="tool")
        return TextOutcome(f'Saved to memory: "{fact}"')

    async def _memory_get(self, args: Dict[str, Any]) -> ToolOutcome:
        query = str(args.get("query") or "").strip()
        matched = filter_facts(self.memory_repo.list_facts(self.user_id), query)
        if not matched:
            if query:
                return TextOutcome(f'No memories found matching "{query}".')
            return TextOutcome("No memories stored yet.")
        return TextOutcome("\n".join(f"- {f['content']}" for f in matched))

    async def _web_search(self, args: Dict[str, Any]) -> ToolOutcome:
        if self.search_client is None:
            return TextOutcome(SEARCH_NOT_CONFIGURED)
        query = str(args.get("query") or "").strip()
        if not query:
            return TextOutcome("Error: No query provided.")
        max_results = min(max(_parse_int(args.get("max_results")) or 5, 1), 10)
        try:
            data = await self.search_client.search(
                query, max_results=max_results, depth="basic", timeout=self.search_timeout
            )
        except SearchError as e:
            logger.warning("web_search failed: %s", sanitize_for_logging(e))
            return TextOutcome(f"Search failed: {e.message}")
        return TextOutcome(format_search_response(data))

    async def _generate_image(self, args: Dict[str, Any]) -> ToolOutcome:
        prompt = str(args.get("prompt") or "").strip()
        if not prompt:
            return TextOutcome("Error: No prompt provided.")
        if self.image_generator is None:
            return TextOutcome(IMAGE_NOT_CONFIGURED)
        size = args.get("size") if args.get("size") in IMAGE_SIZES else IMAGE_SIZES[0]
        quality = "hd" if args.get("quality") == "hd" else IMAGE_QUALITIES[0]
        try:
            b64, revised = await self.image_generator.generate_image(prompt, size, quality)
        except Exception as e:  # noqa: BLE001 - provider errors are reported to the model
            logger.warning("Image generation failed: %s", sanitize_for_logging(e))
            return TextOutcome(f"Image generation failed: {e}")
        if not b64:
            return TextOutcome("Image generation returned no data.")
        return ImageOutcome(
            data_url=f"data:image/png;base64,{b64}",
            revised_prompt=revised or prompt,
        )
