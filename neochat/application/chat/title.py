"""Automatic conversation titles."""

import logging

from neochat.interfaces.llm import LLMProtocol
from neochat.modules.storage import DEFAULT_CONVERSATION_TITLE, ConversationRepository

logger = logging.getLogger(__name__)

TITLE_PROMPT = "Generate a very short title (max 6 words, no quotes, no punctuation) for the following message."
TITLE_MAX_CHARS = 80
TITLE_SOURCE_CHARS = 500


def clean_title(raw: str) -> str:
    title = " ".join((raw or "").split()).strip("\"'")
    return title[:TITLE_MAX_CHARS].strip() or DEFAULT_CONVERSATION_TITLE


async def generate_title(llm: LLMProtocol, message: str, model: str) -> str:
    reply = await llm.complete_text(
        [
            {"role": "system", "content": TITLE_PROMPT},
            {"role": "user", "content": message[:TITLE_SOURCE_CHARS]},
        ],
        model,
    )
    return clean_title(reply)


async def auto_title_conversation(
    llm: LLMProtocol,
    conversation_repo: ConversationRepository,
    conversation_id: str,
    user_id: str,
    message: str,
    model: str,
) -> bool:
    """Title a conversation from its first message unless it already has a custom title."""
    conversation = conversation_repo.get_conversation(conversation_id, user_id)
    if not conversation or conversation["title"] != DEFAULT_CONVERSATION_TITLE:
        return False
    title = await generate_title(llm, message, model)
    applied = conversation_repo.set_generated_title(conversation_id, title)
    if applied:
        logger.debug("Conversation %s titled automatically", conversation_id)
    return applied
