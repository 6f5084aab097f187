"""Tests for the SSE event publisher."""

import json

import pytest

from neochat.infrastructure.events import SSEEventPublisher, format_sse


def _decode(frames):
    assert all(f.startswith("data: ") and f.endswith("\n\n") for f in frames)
    return [json.loads(f[len("data: "):]) for f in frames]


def test_format_sse_keeps_unicode():
    assert format_sse({"type": "delta", "content": "héllo"}) == 'data: {"type": "delta", "content": "héllo"}\n\n'


@pytest.mark.asyncio
async def test_stream_yields_events_until_closed():
    publisher = SSEEventPublisher(tool_result_preview_chars=5)
    await publisher.publish_conversation_id("c1")
    await publisher.publish_tool_call("web_search", {"query": "x"})
    await publisher.publish_tool_result("web_search", "0123456789")
    await publisher.publish_research_done(3)
    await publisher.publish_done()
    publisher.close()

    events = _decode([frame async for frame in publisher.stream()])

    assert events == [
        {"type": "conv_id", "conversationId": "c1"},
        {"type": "tool_call", "name": "web_search", "args": {"query": "x"}},
        {"type": "tool_result", "name": "web_search", "result": "01234"},
        {"type": "research_done", "queryCount": 3},
        {"type": "done"},
    ]


@pytest.mark.asyncio
async def test_events_after_close_are_dropped():
    publisher = SSEEventPublisher()
    await publisher.publish_error("boom")
    publisher.close()
    publisher.close()
    await publisher.publish_delta("late")

    events = _decode([frame async for frame in publisher.stream()])

    assert events == [{"type": "error", "message": "boom"}]
