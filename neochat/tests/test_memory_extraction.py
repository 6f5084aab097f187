"""Tests for background memory extraction and automatic titles."""

from unittest.mock import AsyncMock

import pytest

from neochat.application.chat.memory_extraction import (
    conversation_for_extraction,
    extract_memories,
    format_conversation,
    parse_facts,
    run_auto_memory,
)
from neochat.application.chat.title import auto_title_conversation, clean_title
from neochat.domain.errors import LLMError
from neochat.modules.storage import MemoryRepository

from conftest import USER


def _llm_returning(payload):
    llm = AsyncMock()
    llm.complete_json.return_value = payload
    return llm


def test_parse_facts_accepts_known_shapes():
    assert parse_facts({"facts": ["Uses Vim"]}) == ["Uses Vim"]
    assert parse_facts({"memories": ["Uses Emacs"]}) == ["Uses Emacs"]
    assert parse_facts(["Bare list fact", 3, "  "]) == ["Bare list fact"]
    assert parse_facts({"facts": "nope"}) == []
    assert parse_facts(None) == []


def test_parse_facts_drops_long_facts_and_caps_count():
    long_fact = " ".join(["word"] * 16)
    facts = parse_facts({"facts": [long_fact] + [f"fact {i}" for i in range(8)]}, max_facts=5, max_words=15)
    assert facts == ["fact 0", "fact 1", "fact 2", "fact 3", "fact 4"]


def test_format_conversation_uses_recent_user_and_assistant_turns():
    messages = [
        {"role": "system", "content": "be nice"},
        {"role": "user", "content": "old"},
        {"role": "assistant", "content": "older reply"},
        {"role": "user", "content": [{"type": "text", "text": "look"}, {"type": "image_url", "image_url": {}}]},
        {"role": "assistant", "content": "a cat"},
    ]

    text = format_conversation(messages, turns=2)

    assert text == "User: look\nAssistant: a cat"


@pytest.mark.asyncio
async def test_extract_memories_passes_known_facts():
    llm = _llm_returning({"facts": ["Lives in Lyon"]})

    facts = await extract_memories(
        llm,
        [{"role": "user", "content": "I moved to Lyon"}],
        [{"content": "Has a dog"}],
        model="aux-model",
    )

    assert facts == ["Lives in Lyon"]
    messages, model = llm.complete_json.await_args.args
    assert model == "aux-model"
    assert "- Has a dog" in messages[0]["content"]
    assert messages[1]["content"] == "Conversation:\nUser: I moved to Lyon"


@pytest.mark.asyncio
async def test_extract_memories_swallows_provider_errors():
    llm = AsyncMock()
    llm.complete_json.side_effect = LLMError("bad json")

    assert await extract_memories(llm, [{"role": "user", "content": "hi"}], []) == []


@pytest.mark.asyncio
async def test_run_auto_memory_dedups_and_stops_at_cap(session_factory):
    repo = MemoryRepository(session_factory, fact_limit=2)
    repo.add_fact(USER, "Likes Rust")
    llm = _llm_returning({"facts": ["likes rust", "Lives in Lyon", "Has two cats"]})

    saved = await run_auto_memory(llm, repo, USER, [{"role": "user", "content": "..."}], [])

    assert saved == 1
    assert sorted(f["content"] for f in repo.list_facts(USER)) == ["Likes Rust", "Lives in Lyon"]


def test_conversation_for_extraction_appends_reply():
    provider_messages = [{"role": "user", "content": "hi"}]
    result = conversation_for_extraction(provider_messages, "hello!")
    assert result[-1] == {"role": "assistant", "content": "hello!"}
    assert len(provider_messages) == 1


def test_clean_title():
    assert clean_title('  "Trip   to\nRome"  ') == "Trip to Rome"
    assert clean_title("") == "New Chat"
    assert len(clean_title("x" * 200)) == 80


@pytest.mark.asyncio
async def test_auto_title_only_replaces_default(conversation_repo):
    llm = AsyncMock()
    llm.complete_text.return_value = "Rust Async Runtimes"
    conv = conversation_repo.create_conversation(USER)

    assert await auto_title_conversation(llm, conversation_repo, conv["id"], USER, "Which runtime?", "aux")
    assert conversation_repo.get_conversation(conv["id"], USER)["title"] == "Rust Async Runtimes"

    conversation_repo.rename_conversation(conv["id"], USER, "My title")
    assert not await auto_title_conversation(llm, conversation_repo, conv["id"], USER, "again", "aux")
    assert llm.complete_text.await_count == 1
