"""Tests for system prompt and provider message assembly."""

from neochat.application.chat.preprocessors.message_builder import (
    DEEP_RESEARCH_ADDENDUM,
    RESEARCH_CONTEXT_HEADER,
    TOOL_GUIDANCE,
    build_messages,
    build_system_prompt,
    build_user_content,
)
from neochat.modules.config import DEFAULT_SYSTEM_PROMPT, SETTING_DEFAULTS


def test_system_prompt_sections_in_order():
    settings = dict(SETTING_DEFAULTS, custom_instructions="Answer in French.")
    facts = [{"content": "Lives in Lyon"}, {"content": "Has a dog"}]

    prompt = build_system_prompt(settings, facts, "deep_research")

    assert prompt.startswith(DEFAULT_SYSTEM_PROMPT)
    positions = [
        prompt.index(DEEP_RESEARCH_ADDENDUM),
        prompt.index(TOOL_GUIDANCE),
        prompt.index("## Custom Instructions:\nAnswer in French."),
        prompt.index("## What you remember about the user:\n- Lives in Lyon\n- Has a dog"),
    ]
    assert positions == sorted(positions)


def test_memory_block_omitted_when_disabled_or_empty():
    settings = dict(SETTING_DEFAULTS, memory_enabled="0")
    assert "What you remember" not in build_system_prompt(settings, [{"content": "x"}], "normal")
    assert "What you remember" not in build_system_prompt(SETTING_DEFAULTS, [], "normal")
    assert DEEP_RESEARCH_ADDENDUM not in build_system_prompt(SETTING_DEFAULTS, [], "thinking")


def test_custom_system_prompt_replaces_default():
    settings = dict(SETTING_DEFAULTS, system_prompt="You are a pirate.")
    assert build_system_prompt(settings, [], "normal").startswith("You are a pirate.")


def test_user_content_with_attachments():
    content = build_user_content(
        "  Describe these  ",
        [
            {"type": "image", "name": "a.png", "data": "data:image/png;base64,AAA"},
            {"type": "text", "name": "notes.txt", "data": "hello"},
        ],
    )

    assert content[0] == {
        "type": "text",
        "text": "Describe these\n\n[Attached file: notes.txt]\n```\nhello\n```",
    }
    assert content[1] == {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAA", "detail": "auto"}}
    assert build_user_content("  plain  ") == "plain"


def test_build_messages_layout():
    history = [
        {"role": "user", "content": "earlier"},
        {"role": "tool", "content": "orphan tool row"},
        {"role": "assistant", "content": "reply"},
    ]

    messages = build_messages("SYS", history, "now", research_context="digest")

    assert messages == [
        {"role": "system", "content": "SYS"},
        {"role": "system", "content": f"{RESEARCH_CONTEXT_HEADER}\n\ndigest"},
        {"role": "user", "content": "earlier"},
        {"role": "assistant", "content": "reply"},
        {"role": "user", "content": "now"},
    ]
