"""Readers that extract a JSON-RPC result from an MCP HTTP response.

MCP servers answer either with a plain JSON body or with a server-sent
event stream, even for single-shot calls. Both readers unwrap the JSON-RPC
envelope the same way: an ``error`` member is always a failure.
"""

import json
import logging
from typing import Any, Dict, Protocol

import httpx

from neochat.domain.errors import RemoteToolError

logger = logging.getLogger(__name__)


def rpc_error(error: Any) -> RemoteToolError:
    if isinstance(error, dict):
        return RemoteToolError(f"MCP error [{error.get('code')}]: {error.get('message')}")
    return RemoteToolError(f"MCP error: {error}")


def unwrap_envelope(payload: Any) -> Any:
    if not isinstance(payload, dict):
        raise RemoteToolError("MCP server returned a non-object JSON-RPC response")
    if payload.get("error") is not None:
        raise rpc_error(payload["error"])
    return payload.get("result")


class ResponseReader(Protocol):
    async def read(self, response: httpx.Response) -> Any:
        """Return the ``result`` member of the JSON-RPC response."""
        ...


class JsonResponseReader:
    """Reads a single ``application/json`` body."""

    async def read(self, response: httpx.Response) -> Any:
        body = await response.aread()
        try:
            payload = json.loads(body)
        except ValueError as e:
            raise RemoteToolError(f"MCP server returned invalid JSON: {e}") from e
        return unwrap_envelope(payload)


class SseResponseReader:
    """Reads ``text/event-stream`` lines until the first data event with a result.

    Returns as soon as a result is found; the caller's ``client.stream``
    context then closes the connection without draining the rest.
    """

    async def read(self, response: httpx.Response) -> Any:
        async for line in response.aiter_lines():
            if not line.startswith("data:"):
                continue
            data = line[len("data:"):].strip()
            if not data:
                continue
            try:
                payload: Dict[str, Any] = json.loads(data)
            except ValueError:
                logger.debug("Skipping non-JSON SSE data line")
                continue
            if not isinstance(payload, dict):
                continue
            if payload.get("error") is not None:
                raise rpc_error(payload["error"])
            if "result" in payload:
                return payload["result"]
        raise RemoteToolError("MCP server closed without sending a result")


_JSON_READER = JsonResponseReader()
_SSE_READER = SseResponseReader()


def select_reader(content_type: str) -> ResponseReader:
    if "text/event-stream" in (content_type or "").lower():
        return _SSE_READER
    return _JSON_READER
