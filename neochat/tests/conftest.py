import asyncio
import json
from typing import Any, Callable, Dict, List, Optional

import pytest

# Pre-import the adapter so litellm's import-time setup happens once, before
# any test patches names inside the module.
import neochat.modules.llm.litellm_caller  # noqa: F401
from neochat.modules.storage import (
    ConversationRepository,
    MemoryRepository,
    RemoteServerRepository,
    SettingsRepository,
    get_session_factory,
    init_database,
    reset_engine,
)

USER = "alice@example.com"
OTHER_USER = "bob@example.com"


# -- Provider stream helpers -------------------------------------------------

def text_chunk(content: str, finish_reason: Optional[str] = None) -> Dict[str, Any]:
    return {"choices": [{"delta": {"content": content}, "finish_reason": finish_reason}]}


def tool_chunk(index: int, name: str = "", arguments: str = "", call_id: Optional[str] = None) -> Dict[str, Any]:
    fragment: Dict[str, Any] = {"index": index, "function": {}}
    if call_id:
        fragment["id"] = call_id
    if name:
        fragment["function"]["name"] = name
    if arguments:
        fragment["function"]["arguments"] = arguments
    return {"choices": [{"delta": {"tool_calls": [fragment]}, "finish_reason": None}]}


def finish_chunk(reason: str = "stop") -> Dict[str, Any]:
    return {"choices": [{"delta": {}, "finish_reason": reason}]}


async def stream_of(chunks):
    for chunk in chunks:
        yield chunk


class FakeProvider:
    """Stand-in for ``litellm.acompletion``.

    Streaming calls consume ``rounds`` in order (each a list of chunks or a
    callable returning an async iterator). Non-streaming calls are answered by
    ``responder(messages)``, which returns the reply text.
    """

    def __init__(self, rounds=None, responder: Optional[Callable[[List[Dict[str, Any]]], str]] = None):
        self.rounds = list(rounds or [])
        self.responder = responder or (lambda messages: "{}")
        self.stream_calls: List[Dict[str, Any]] = []
        self.completion_calls: List[Dict[str, Any]] = []

    async def __call__(self, model, messages, stream=False, **kwargs):
        call = {"model": model, "messages": [dict(m) for m in messages], **kwargs}
        if stream:
            self.stream_calls.append(call)
            if not self.rounds:
                return stream_of([text_chunk("", "stop")])
            script = self.rounds.pop(0)
            return script() if callable(script) else stream_of(script)
        self.completion_calls.append(call)
        return {"choices": [{"message": {"content": self.responder(messages)}}]}


def system_text(messages) -> str:
    return messages[0]["content"] if messages and messages[0]["role"] == "system" else ""


def json_reply(payload: Any) -> str:
    return json.dumps(payload)


@pytest.fixture
def fake_provider(monkeypatch):
    """Patch the adapter's ``acompletion`` with a scriptable FakeProvider."""
    provider = FakeProvider()
    monkeypatch.setattr("neochat.modules.llm.litellm_caller.acompletion", provider)
    return provider


# -- Persistence -------------------------------------------------------------

@pytest.fixture
def session_factory(tmp_path):
    """A fresh SQLite database per test."""
    reset_engine()
    init_database(f"sqlite:///{tmp_path / 'neochat-test.db'}")
    yield get_session_factory()
    reset_engine()


@pytest.fixture
def conversation_repo(session_factory):
    return ConversationRepository(session_factory)


@pytest.fixture
def memory_repo(session_factory):
    return MemoryRepository(session_factory)


@pytest.fixture
def settings_repo(session_factory):
    return SettingsRepository(session_factory)


@pytest.fixture
def server_repo(session_factory):
    return RemoteServerRepository(session_factory)


# -- Misc --------------------------------------------------------------------

class CancellingPublisher:
    """Collects events and sets the cancel event on the first text delta."""

    def __init__(self, cancel_event: asyncio.Event):
        from neochat.infrastructure.events import CollectingEventPublisher

        self._inner = CollectingEventPublisher()
        self.cancel_event = cancel_event

    @property
    def events(self):
        return self._inner.events

    def types(self):
        return self._inner.types()

    async def publish_delta(self, content: str) -> None:
        await self._inner.publish_delta(content)
        self.cancel_event.set()

    def __getattr__(self, name):
        return getattr(self._inner, name)
