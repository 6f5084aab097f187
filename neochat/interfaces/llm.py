"""LLM interface protocols."""

import asyncio
from typing import Any, AsyncGenerator, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from neochat.modules.llm.models import StreamEvent, ToolExecutor


@runtime_checkable
class LLMProtocol(Protocol):
    """Protocol for the provider adapter."""

    def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        temperature: Any = None,
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_executor: Optional[ToolExecutor] = None,
        cancel_event: Optional[asyncio.Event] = None,
        reasoning_effort: Optional[str] = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """Stream a multi-round tool-calling response."""
        ...

    async def complete_text(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> str:
        """Single non-streaming call returning the reply text."""
        ...

    async def complete_json(
        self,
        messages: List[Dict[str, Any]],
        model: str,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> Any:
        """Single non-streaming call in JSON mode returning the parsed reply."""
        ...

    async def generate_image(self, prompt: str, size: str, quality: str) -> Tuple[Optional[str], Optional[str]]:
        """Generate one image; returns (base64 payload, revised prompt)."""
        ...
