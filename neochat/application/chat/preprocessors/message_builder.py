"""Message builder - constructs the provider message list for one chat turn."""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from neochat.modules.config import DEFAULT_SYSTEM_PROMPT

logger = logging.getLogger(__name__)

DEEP_RESEARCH_ADDENDUM = (
    "You are in Deep Research mode. Comprehensive research has already been done for you "
    "and is provided below. Synthesize all sources into a thorough, well-structured answer. "
    "Cite sources inline as [1], [2], etc."
)

TOOL_GUIDANCE = (
    "You have access to tools:\n"
    "- memory_save: Save important facts about the user. Use this proactively whenever the user shares personal information.\n"
    "- memory_get: Recall stored facts about the user.\n"
    "- web_search: Search the web (requires Tavily API key in settings).\n"
    "- generate_image: Generate an image from a text prompt using DALL-E. Use whenever the user asks you to "
    "create, draw, generate, or visualise an image."
)

RESEARCH_CONTEXT_HEADER = "## Web Research Results (use these to answer):"

# Stored roles that can be replayed without their provider-side pairing
_HISTORY_ROLES = ("system", "user", "assistant")

UserContent = Union[str, List[Dict[str, Any]]]


def build_system_prompt(
    settings: Mapping[str, str],
    memory_facts: Sequence[Mapping[str, Any]],
    mode: str,
) -> str:
    """
    Compose the system prompt.

    Order: base prompt, deep-research addendum, tool guidance, custom
    instructions, remembered facts. The facts block is included only when
    memory is enabled and at least one fact exists.
    """
    prompt = settings.get("system_prompt") or DEFAULT_SYSTEM_PROMPT

    if mode == "deep_research":
        prompt += f"\n\n{DEEP_RESEARCH_ADDENDUM}"

    prompt += f"\n\n{TOOL_GUIDANCE}"

    instructions = (settings.get("custom_instructions") or "").strip()
    if instructions:
        prompt += f"\n\n## Custom Instructions:\n{instructions}"

    if settings.get("memory_enabled") != "0" and memory_facts:
        fact_list = "\n".join(f"- {f['content']}" for f in memory_facts)
        prompt += f"\n\n## What you remember about the user:\n{fact_list}\n\nUse this naturally when relevant."

    return prompt


def build_user_content(message: str, attachments: Optional[Sequence[Mapping[str, Any]]] = None) -> UserContent:
    """
    Build the current user turn.

    Without attachments this is the trimmed text. With attachments it is a
    multi-part list: one text part (text files appended to it as fenced
    blocks) followed by one ``image_url`` part per image.
    """
    text = message.strip()
    if not attachments:
        return text

    parts: List[Dict[str, Any]] = [{"type": "text", "text": text}]
    for att in attachments:
        kind = att.get("type")
        if kind == "image":
            parts.append({"type": "image_url", "image_url": {"url": att.get("data"), "detail": "auto"}})
        elif kind == "text":
            parts[0]["text"] += f"\n\n[Attached file: {att.get('name')}]\n```\n{att.get('data')}\n```"
        else:
            logger.debug("Ignoring attachment of type %s", kind)
    return parts


def history_to_provider_messages(history: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Convert stored messages (oldest first) into provider turns."""
    return [
        {"role": m["role"], "content": m["content"]}
        for m in history
        if m.get("role") in _HISTORY_ROLES
    ]


def build_messages(
    system_prompt: str,
    history: Sequence[Mapping[str, Any]],
    user_content: UserContent,
    research_context: str = "",
) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    if research_context:
        messages.append({"role": "system", "content": f"{RESEARCH_CONTEXT_HEADER}\n\n{research_context}"})
    messages.extend(history_to_provider_messages(history))
    messages.append({"role": "user", "content": user_content})
    logger.debug("Built %d provider messages (%d from history)", len(messages), len(history))
    return messages
