"""Background extraction of long-term facts about the user.

After a successful reply the recent conversation is sent to the auxiliary
model, which proposes new facts. Proposed facts go through the same
dedup-on-insert path as the ``memory_save`` tool. Nothing here ever raises
to the caller: any provider or parse failure yields no facts.
"""

import logging
from typing import Any, Dict, List, Mapping, Sequence

from neochat.core.metrics_logger import log_metric
from neochat.domain.errors import DomainError
from neochat.interfaces.llm import LLMProtocol
from neochat.modules.storage import MemoryRepository, SaveStatus

logger = logging.getLogger(__name__)

EXTRACTION_PROMPT = """You are a memory extraction assistant. Extract useful long-term personal facts about the USER from the conversation below.

Good to extract: name, location, occupation, company, ongoing projects, goals, preferences, hobbies, technical stack, relationships.
Do NOT extract: general knowledge, temporary info, anything the assistant said, or info already in the known facts list.

Already known (do not repeat):
{known}

Return ONLY a valid JSON object: {{"facts": ["fact 1", "fact 2", ...]}}
Return {{"facts": []}} if nothing new is worth remembering. Max {max_words} words per fact, max {max_facts} facts per turn."""


def _text_of(content: Any) -> str:
    """String content as-is; multi-part content contributes its text parts."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "\n".join(
            str(p.get("text") or "") for p in content
            if isinstance(p, dict) and p.get("type") == "text"
        )
    return ""


def format_conversation(messages: Sequence[Mapping[str, Any]], turns: int = 10) -> str:
    recent = [m for m in messages if m.get("role") in ("user", "assistant")][-turns:]
    return "\n".join(
        f"{'User' if m['role'] == 'user' else 'Assistant'}: {_text_of(m.get('content'))}"
        for m in recent
    )


def parse_facts(parsed: Any, max_facts: int = 5, max_words: int = 15) -> List[str]:
    """Accept ``{"facts": [...]}``, ``{"memories": [...]}`` or a bare list."""
    if isinstance(parsed, dict):
        candidates = parsed.get("facts") or parsed.get("memories") or []
    else:
        candidates = parsed
    if not isinstance(candidates, list):
        return []

    facts = []
    for item in candidates:
        if not isinstance(item, str) or not item.strip():
            continue
        fact = item.strip()
        if len(fact.split()) > max_words:
            logger.debug("Dropping extracted fact longer than %d words", max_words)
            continue
        facts.append(fact)
    return facts[:max_facts]


async def extract_memories(
    llm: LLMProtocol,
    messages: Sequence[Mapping[str, Any]],
    existing_facts: Sequence[Mapping[str, Any]],
    model: str = "gpt-5-mini",
    max_facts: int = 5,
    max_words: int = 15,
    history_turns: int = 10,
) -> List[str]:
    """Ask the model for new facts; returns ``[]`` on any failure."""
    conversation = format_conversation(messages, history_turns)
    if not conversation.strip():
        return []

    known = "\n".join(f"- {f['content']}" for f in existing_facts) or "(none)"
    system_prompt = EXTRACTION_PROMPT.format(known=known, max_words=max_words, max_facts=max_facts)
    try:
        parsed = await llm.complete_json(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": f"Conversation:\n{conversation}"},
            ],
            model,
        )
    except DomainError as e:
        logger.warning("Memory extraction failed: %s", e)
        return []
    return parse_facts(parsed, max_facts=max_facts, max_words=max_words)


async def run_auto_memory(
    llm: LLMProtocol,
    memory_repo: MemoryRepository,
    user_id: str,
    messages: Sequence[Mapping[str, Any]],
    existing_facts: Sequence[Mapping[str, Any]],
    model: str = "gpt-5-mini",
    max_facts: int = 5,
    max_words: int = 15,
    history_turns: int = 10,
) -> int:
    """Extract and store new facts. Returns how many rows were inserted."""
    facts = await extract_memories(
        llm, messages, existing_facts,
        model=model, max_facts=max_facts, max_words=max_words, history_turns=history_turns,
    )
    saved = 0
    for fact in facts:
        try:
            status, _ = memory_repo.add_fact(user_id, fact)
        except DomainError as e:
            logger.info("Auto-memory stopped: %s", e.message)
            break
        if status is SaveStatus.SAVED:
            saved += 1
    if saved:
        logger.info("Auto-saved %d memory fact(s)", saved)
        log_metric("memory_save", user_id, source="auto", count=saved)
    return saved


def conversation_for_extraction(
    provider_messages: Sequence[Mapping[str, Any]],
    reply: str,
) -> List[Dict[str, Any]]:
    """The messages sent to the provider plus the final reply."""
    return [dict(m) for m in provider_messages] + [{"role": "assistant", "content": reply}]
