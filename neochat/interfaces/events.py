"""Event publisher interface for transport-agnostic UI updates."""

from typing import Any, Dict, Protocol


class EventPublisher(Protocol):
    """
    Protocol for publishing chat progress to a client.

    The orchestration loop only talks to this interface; the HTTP layer
    decides how events travel (server-sent events in production, a list in
    tests).
    """

    async def publish_conversation_id(self, conversation_id: str) -> None:
        """Announce the conversation the request is writing to."""
        pass

    async def publish_delta(self, content: str) -> None:
        """Publish a chunk of assistant text."""
        pass

    async def publish_tool_call(self, name: str, args: Dict[str, Any]) -> None:
        """Publish that the model requested a tool."""
        pass

    async def publish_tool_result(self, name: str, result: str) -> None:
        """
        Publish a tool's result.

        Args:
            name: Tool name
            result: Result text; implementations may truncate it
        """
        pass

    async def publish_image_generated(self, data_url: str, revised_prompt: str) -> None:
        """Publish an image produced by the image tool."""
        pass

    async def publish_research_start(self) -> None:
        pass

    async def publish_research_query(self, query: str) -> None:
        pass

    async def publish_research_done(self, query_count: int) -> None:
        pass

    async def publish_done(self) -> None:
        """Signal that the response completed and was saved."""
        pass

    async def publish_error(self, message: str) -> None:
        """Signal a terminal, user-facing error."""
        pass
