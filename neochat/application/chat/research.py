"""Deep research: two rounds of web searches driven by gap analysis.

Round 1 asks the model for a handful of search queries and runs them in
parallel. The model then reads the round-1 digest and may ask for up to two
follow-up queries; an empty answer skips round 2. The combined digest is
handed back to the orchestration loop as extra system context.
"""

import asyncio
import logging
from typing import Any, List, Optional, Sequence, Union

from neochat.core.cancellation import race_cancel
from neochat.core.log_sanitizer import summarize_text_for_logging
from neochat.interfaces.events import EventPublisher
from neochat.interfaces.llm import LLMProtocol
from neochat.modules.builtin_tools import SearchResponse, TavilySearchClient, clip_snippet

logger = logging.getLogger(__name__)

QUERY_PLANNING_PROMPT = (
    "Generate 3-4 specific web search queries to thoroughly research this question. "
    'Return JSON: {"queries": ["q1","q2","q3"]}'
)
GAP_ANALYSIS_PROMPT = (
    "Given the original question and initial research results, identify what is still missing or unclear. "
    "Generate 1-2 targeted follow-up search queries to fill the gaps. "
    "If coverage is already sufficient, return an empty list. "
    'Return JSON: {"queries": []}'
)

MAX_INITIAL_QUERIES = 4
MAX_FOLLOW_UP_QUERIES = 2
SOURCES_PER_QUERY = 4
SNIPPET_CHARS = 350
QUESTION_CHARS = 1000
GAP_DIGEST_CHARS = 3000
SECTION_SEPARATOR = "\n\n---\n\n"


def _extract_queries(parsed: Any) -> Optional[List[str]]:
    """The ``queries`` list of a JSON reply, or None when there is no list."""
    queries = parsed.get("queries") if isinstance(parsed, dict) else None
    if not isinstance(queries, list):
        return None
    return [str(q).strip() for q in queries if str(q).strip()]


def format_digest(queries: Sequence[str], outcomes: Sequence[Union[SearchResponse, BaseException]]) -> str:
    """Render one round of search outcomes as markdown sections."""
    sections = []
    for i, (query, outcome) in enumerate(zip(queries, outcomes), start=1):
        if isinstance(outcome, BaseException):
            sections.append(f"[Search {i}: failed]")
            continue
        lines = [f'### Search: "{query}"']
        if outcome.answer:
            lines.append(f"Summary: {outcome.answer}")
        for r in outcome.results[:SOURCES_PER_QUERY]:
            lines.append(f"• **{r.title}** ({r.url})\n  {clip_snippet(r.content, SNIPPET_CHARS)}")
        sections.append("\n".join(lines))
    return SECTION_SEPARATOR.join(sections)


class ResearchOrchestrator:
    """Runs deep research for one request.

    Args:
        llm: Provider adapter used for query planning and gap analysis.
        search_client: Search API client for the requesting user.
        publisher: Receives research progress events.
        model: Model used for the planning calls.
        search_timeout: Per-search timeout in seconds.
        cancel_event: The request's cancellation signal.
    """

    def __init__(
        self,
        llm: LLMProtocol,
        search_client: TavilySearchClient,
        publisher: EventPublisher,
        model: str = "gpt-5-mini",
        search_timeout: float = 25.0,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.llm = llm
        self.search_client = search_client
        self.publisher = publisher
        self.model = model
        self.search_timeout = search_timeout
        self.cancel_event = cancel_event

    async def _plan(self, system_prompt: str, user_content: str) -> Any:
        return await self.llm.complete_json(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_content},
            ],
            self.model,
            cancel_event=self.cancel_event,
        )

    async def _search_round(self, queries: List[str]) -> str:
        for q in queries:
            await self.publisher.publish_research_query(q)
        outcomes = await race_cancel(
            self.search_client.search_many(
                queries, max_results=6, depth="advanced", timeout=self.search_timeout
            ),
            self.cancel_event,
        )
        for q, outcome in zip(queries, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Research search failed for %s: %s", summarize_text_for_logging(q), outcome)
        return format_digest(queries, outcomes)

    async def run(self, question: str) -> str:
        """Research ``question`` and return the combined digest.

        Raises:
            LLMError: a planning call failed.
            OperationAborted: the request was cancelled.
        """
        await self.publisher.publish_research_start()

        parsed = await self._plan(QUERY_PLANNING_PROMPT, question[:QUESTION_CHARS])
        initial = _extract_queries(parsed)
        initial = initial[:MAX_INITIAL_QUERIES] if initial else [question]

        round1 = await self._search_round(initial)

        gap = await self._plan(
            GAP_ANALYSIS_PROMPT,
            f"Question: {question}\n\nInitial research:\n{round1[:GAP_DIGEST_CHARS]}",
        )
        follow_up = (_extract_queries(gap) or [])[:MAX_FOLLOW_UP_QUERIES]

        round2 = ""
        if follow_up:
            round2 = await self._search_round(follow_up)
        else:
            logger.info("Gap analysis found coverage sufficient; skipping second search round")

        digest = round1 + (SECTION_SEPARATOR + round2 if round2 else "")
        await self.publisher.publish_research_done(len(initial) + len(follow_up))
        return digest
