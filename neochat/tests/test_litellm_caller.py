"""Tests for the streaming tool-calling loop in LiteLLMCaller."""

import asyncio

import pytest

from neochat.modules.llm import (
    LiteLLMCaller,
    StreamCompleted,
    StreamFailed,
    TextDelta,
    ToolCallFinished,
    ToolCallStarted,
    is_provider_available,
)
from neochat.modules.llm.litellm_caller import is_reasoning_model, parse_tool_arguments

from conftest import finish_chunk, text_chunk, tool_chunk


async def _collect(agen):
    return [event async for event in agen]


def _tools(*names):
    return [{"type": "function", "function": {"name": n, "parameters": {"type": "object"}}} for n in names]


@pytest.mark.asyncio
async def test_plain_text_stream(fake_provider):
    fake_provider.rounds = [[text_chunk("Hel"), text_chunk("lo"), finish_chunk("stop")]]
    llm = LiteLLMCaller(api_key="sk-test")

    events = await _collect(llm.stream_chat([{"role": "user", "content": "hi"}], "gpt-4o"))

    assert [e.content for e in events if isinstance(e, TextDelta)] == ["Hel", "lo"]
    assert events[-1] == StreamCompleted("Hello", aborted=False, rounds=1)
    call = fake_provider.stream_calls[0]
    assert call["model"] == "openai/gpt-4o"
    assert call["api_key"] == "sk-test"
    assert call["temperature"] == 0.7


@pytest.mark.asyncio
async def test_fragmented_parallel_tool_calls_execute_once_each(fake_provider):
    fake_provider.rounds = [
        [
            tool_chunk(0, name="memory_", call_id="call_a"),
            tool_chunk(1, name="web_search", call_id="call_b"),
            tool_chunk(0, name="get", arguments='{"que'),
            tool_chunk(1, arguments='{"query": "rust"}'),
            tool_chunk(0, arguments='ry": "lang"}'),
            finish_chunk("tool_calls"),
        ],
        [text_chunk("Done."), finish_chunk("stop")],
    ]
    executed = []

    async def executor(name, args):
        executed.append((name, args))
        return f"result of {name}"

    llm = LiteLLMCaller(api_key="sk-test")
    events = await _collect(llm.stream_chat(
        [{"role": "user", "content": "hi"}], "gpt-4o",
        tools=_tools("memory_get", "web_search"), tool_executor=executor,
    ))

    assert executed == [("memory_get", {"query": "lang"}), ("web_search", {"query": "rust"})]
    started = [e for e in events if isinstance(e, ToolCallStarted)]
    finished = [e for e in events if isinstance(e, ToolCallFinished)]
    assert [e.name for e in started] == ["memory_get", "web_search"]
    assert [e.result for e in finished] == ["result of memory_get", "result of web_search"]
    assert events[-1].text == "Done."
    assert events[-1].rounds == 2

    second_round = fake_provider.stream_calls[1]["messages"]
    assistant = second_round[-3]
    assert assistant["role"] == "assistant"
    assert [tc["id"] for tc in assistant["tool_calls"]] == ["call_a", "call_b"]
    assert second_round[-2] == {"role": "tool", "tool_call_id": "call_a", "content": "result of memory_get"}
    assert second_round[-1] == {"role": "tool", "tool_call_id": "call_b", "content": "result of web_search"}
    assert fake_provider.stream_calls[0]["tool_choice"] == "auto"


@pytest.mark.asyncio
async def test_round_limit_stops_the_loop(fake_provider):
    fake_provider.rounds = [
        [tool_chunk(0, name="memory_get", arguments="{}", call_id=f"c{i}"), finish_chunk("tool_calls")]
        for i in range(12)
    ]

    async def executor(name, args):
        return "nothing"

    llm = LiteLLMCaller(api_key="sk-test", max_rounds=10)
    events = await _collect(llm.stream_chat(
        [{"role": "user", "content": "loop"}], "gpt-4o",
        tools=_tools("memory_get"), tool_executor=executor,
    ))

    assert len(fake_provider.stream_calls) == 10
    assert events[-1] == StreamCompleted("", aborted=False, rounds=10)


@pytest.mark.asyncio
async def test_invalid_tool_arguments_become_empty_object(fake_provider):
    fake_provider.rounds = [
        [tool_chunk(0, name="memory_get", arguments="{not json", call_id="c1"), finish_chunk("tool_calls")],
        [finish_chunk("stop")],
    ]
    seen = []

    async def executor(name, args):
        seen.append(args)
        return "ok"

    llm = LiteLLMCaller(api_key="sk-test")
    await _collect(llm.stream_chat(
        [{"role": "user", "content": "x"}], "gpt-4o", tools=_tools("memory_get"), tool_executor=executor,
    ))

    assert seen == [{}]


@pytest.mark.asyncio
async def test_tool_exception_is_reported_to_model(fake_provider):
    fake_provider.rounds = [
        [tool_chunk(0, name="memory_get", arguments="{}", call_id="c1"), finish_chunk("tool_calls")],
        [text_chunk("sorry"), finish_chunk("stop")],
    ]

    async def executor(name, args):
        raise RuntimeError("disk on fire")

    llm = LiteLLMCaller(api_key="sk-test")
    events = await _collect(llm.stream_chat(
        [{"role": "user", "content": "x"}], "gpt-4o", tools=_tools("memory_get"), tool_executor=executor,
    ))

    finished = [e for e in events if isinstance(e, ToolCallFinished)]
    assert finished[0].result == "Error: disk on fire"
    assert events[-1].text == "sorry"


@pytest.mark.asyncio
async def test_provider_failure_yields_stream_failed(monkeypatch):
    async def broken(**kwargs):
        raise RuntimeError("RateLimitError: slow down")

    monkeypatch.setattr("neochat.modules.llm.litellm_caller.acompletion", broken)
    llm = LiteLLMCaller(api_key="sk-test")

    events = await _collect(llm.stream_chat([{"role": "user", "content": "x"}], "gpt-4o"))

    assert len(events) == 1
    assert isinstance(events[0], StreamFailed)
    assert "slow down" in str(events[0].error)


@pytest.mark.asyncio
async def test_cancel_event_aborts_mid_stream(fake_provider):
    async def hanging():
        yield text_chunk("Partial")
        await asyncio.Event().wait()

    fake_provider.rounds = [hanging]
    cancel = asyncio.Event()
    llm = LiteLLMCaller(api_key="sk-test")

    events = []
    async for event in llm.stream_chat([{"role": "user", "content": "x"}], "gpt-4o", cancel_event=cancel):
        events.append(event)
        if isinstance(event, TextDelta):
            cancel.set()

    assert events[-1] == StreamCompleted("Partial", aborted=True, rounds=1)


@pytest.mark.asyncio
async def test_reasoning_models_get_effort_instead_of_temperature(fake_provider):
    fake_provider.rounds = [[finish_chunk("stop")]]
    llm = LiteLLMCaller(api_key="sk-test")

    await _collect(llm.stream_chat(
        [{"role": "user", "content": "x"}], "gpt-5-mini", temperature="0.2", reasoning_effort="high",
    ))

    call = fake_provider.stream_calls[0]
    assert call["reasoning_effort"] == "high"
    assert "temperature" not in call


@pytest.mark.asyncio
async def test_complete_json_parses_reply(fake_provider):
    fake_provider.responder = lambda messages: '{"queries": ["a", "b"]}'
    llm = LiteLLMCaller(api_key="sk-test")

    parsed = await llm.complete_json([{"role": "user", "content": "plan"}], "gpt-4o")

    assert parsed == {"queries": ["a", "b"]}
    assert fake_provider.completion_calls[0]["response_format"] == {"type": "json_object"}


@pytest.mark.asyncio
async def test_complete_json_rejects_invalid_json(fake_provider):
    from neochat.domain.errors import LLMError

    fake_provider.responder = lambda messages: "definitely not json"
    llm = LiteLLMCaller(api_key="sk-test")

    with pytest.raises(LLMError):
        await llm.complete_json([{"role": "user", "content": "plan"}], "gpt-4o")


def test_helpers():
    assert is_provider_available("openai", "sk-x")
    assert not is_provider_available("openai", "   ")
    assert not is_provider_available("anthropic", "sk-x")
    assert is_reasoning_model("openai/o3-mini")
    assert is_reasoning_model("gpt-5")
    assert not is_reasoning_model("gpt-4o")
    assert parse_tool_arguments('["list"]') == {}
    assert parse_tool_arguments("") == {}
    assert parse_tool_arguments('{"a": 1}') == {"a": 1}
