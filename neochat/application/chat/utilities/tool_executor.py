"""
Unified tool executor.

One callable per request that the provider adapter invokes for every tool
call. Built-in tool names always win over remote tools with the same name;
anything else is routed through the remote discovery table.
"""

import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from neochat.core.log_sanitizer import sanitize_for_logging
from neochat.core.metrics_logger import log_metric
from neochat.domain.tool_outcomes import ImageOutcome
from neochat.interfaces.events import EventPublisher
from neochat.modules.builtin_tools import BuiltinToolRegistry
from neochat.modules.mcp_tools import RemoteRoute, RemoteToolGateway

logger = logging.getLogger(__name__)


def flatten_content_blocks(blocks: List[Dict[str, Any]]) -> str:
    """Join MCP content blocks into one string: text blocks verbatim, others as JSON."""
    parts = []
    for block in blocks or []:
        if isinstance(block, dict) and block.get("type") == "text":
            parts.append(str(block.get("text") or ""))
        else:
            parts.append(json.dumps(block))
    return "\n".join(parts)


class UnifiedToolExecutor:
    """Dispatches a tool call to the built-in registry or a remote server.

    Args:
        registry: Built-in tools for the requesting user.
        gateway: Remote MCP client.
        routes: Remote tool name -> route table from discovery.
        publisher: Receives ``image_generated`` events.
    """

    def __init__(
        self,
        registry: BuiltinToolRegistry,
        gateway: Optional[RemoteToolGateway] = None,
        routes: Optional[Mapping[str, RemoteRoute]] = None,
        publisher: Optional[EventPublisher] = None,
        user_id: Optional[str] = None,
    ):
        self.registry = registry
        self.gateway = gateway
        self.routes = dict(routes or {})
        self.publisher = publisher
        self.user_id = user_id

    async def __call__(self, name: str, args: Dict[str, Any]) -> str:
        if self.registry.has_tool(name):
            outcome = await self.registry.execute(name, args)
            if isinstance(outcome, ImageOutcome):
                if self.publisher is not None:
                    await self.publisher.publish_image_generated(outcome.data_url, outcome.revised_prompt)
                return outcome.model_summary()
            return outcome.text

        route = self.routes.get(name)
        if route is not None and self.gateway is not None:
            log_metric("tool_call", self.user_id, tool_name=name, source="remote")
            blocks = await self.gateway.call_tool(route.url, name, args, route.auth)
            return flatten_content_blocks(blocks)

        logger.warning("Model requested unknown tool %s", sanitize_for_logging(name))
        return f'Tool "{name}" not found'
