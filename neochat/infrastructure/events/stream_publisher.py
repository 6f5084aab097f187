"""Server-sent events implementation of EventPublisher."""

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional

logger = logging.getLogger(__name__)

_CLOSED = object()


def format_sse(event: Dict[str, Any]) -> str:
    """Encode one event as ``data: <json>`` followed by a blank line."""
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"


class SSEEventPublisher:
    """
    Queue-backed EventPublisher.

    The chat producer task publishes into an ``asyncio.Queue``; the HTTP
    response drains it with ``stream()`` until ``close()`` is called.
    Publishing after the consumer went away is harmless: frames just stay
    queued until the publisher is garbage collected.
    """

    def __init__(self, tool_result_preview_chars: int = 600):
        self.tool_result_preview_chars = tool_result_preview_chars
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    async def send_json(self, data: Dict[str, Any]) -> None:
        if self._closed:
            logger.debug("Dropping %s event published after close", data.get("type"))
            return
        await self._queue.put(format_sse(data))

    async def publish_conversation_id(self, conversation_id: str) -> None:
        await self.send_json({"type": "conv_id", "conversationId": conversation_id})

    async def publish_delta(self, content: str) -> None:
        await self.send_json({"type": "delta", "content": content})

    async def publish_tool_call(self, name: str, args: Dict[str, Any]) -> None:
        await self.send_json({"type": "tool_call", "name": name, "args": args})

    async def publish_tool_result(self, name: str, result: str) -> None:
        preview = (result or "")[: self.tool_result_preview_chars]
        await self.send_json({"type": "tool_result", "name": name, "result": preview})

    async def publish_image_generated(self, data_url: str, revised_prompt: str) -> None:
        await self.send_json({
            "type": "image_generated",
            "data_url": data_url,
            "revised_prompt": revised_prompt,
        })

    async def publish_research_start(self) -> None:
        await self.send_json({"type": "research_start"})

    async def publish_research_query(self, query: str) -> None:
        await self.send_json({"type": "research_query", "query": query})

    async def publish_research_done(self, query_count: int) -> None:
        await self.send_json({"type": "research_done", "queryCount": query_count})

    async def publish_done(self) -> None:
        await self.send_json({"type": "done"})

    async def publish_error(self, message: str) -> None:
        await self.send_json({"type": "error", "message": message})

    def close(self) -> None:
        """End the stream; ``stream()`` returns after the queued frames."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    async def stream(self) -> AsyncIterator[str]:
        while True:
            frame: Optional[Any] = await self._queue.get()
            if frame is _CLOSED:
                return
            yield frame


class CollectingEventPublisher:
    """EventPublisher that records events as dicts; used by background callers and tests."""

    def __init__(self) -> None:
        self.events = []

    async def send_json(self, data: Dict[str, Any]) -> None:
        self.events.append(data)

    async def publish_conversation_id(self, conversation_id: str) -> None:
        await self.send_json({"type": "conv_id", "conversationId": conversation_id})

    async def publish_delta(self, content: str) -> None:
        await self.send_json({"type": "delta", "content": content})

    async def publish_tool_call(self, name: str, args: Dict[str, Any]) -> None:
        await self.send_json({"type": "tool_call", "name": name, "args": args})

    async def publish_tool_result(self, name: str, result: str) -> None:
        await self.send_json({"type": "tool_result", "name": name, "result": result})

    async def publish_image_generated(self, data_url: str, revised_prompt: str) -> None:
        await self.send_json({"type": "image_generated", "data_url": data_url, "revised_prompt": revised_prompt})

    async def publish_research_start(self) -> None:
        await self.send_json({"type": "research_start"})

    async def publish_research_query(self, query: str) -> None:
        await self.send_json({"type": "research_query", "query": query})

    async def publish_research_done(self, query_count: int) -> None:
        await self.send_json({"type": "research_done", "queryCount": query_count})

    async def publish_done(self) -> None:
        await self.send_json({"type": "done"})

    async def publish_error(self, message: str) -> None:
        await self.send_json({"type": "error", "message": message})

    def types(self):
        return [e["type"] for e in self.events]
