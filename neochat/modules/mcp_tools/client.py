"""Remote MCP tool gateway.

Talks JSON-RPC 2.0 over HTTP POST to user-configured MCP servers. Each
server is an untrusted peer: every request goes through the outbound URL
policy first, carries a bounded timeout, and never follows redirects.

Discovery fans out to all of a user's enabled servers concurrently and
merges their catalogs with first-server-wins name resolution; invocation
turns any failure into a text content block for the model.
"""

import asyncio
import itertools
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import httpx

from neochat.core.log_sanitizer import sanitize_for_logging
from neochat.core.metrics_logger import log_metric
from neochat.domain.errors import RemoteToolError, RemoteURLError
from neochat.version import VERSION

from .readers import select_reader
from .url_guard import validate_remote_url

logger = logging.getLogger(__name__)

MCP_PROTOCOL_VERSION = "2024-11-05"
SESSION_HEADER = "mcp-session-id"

# Process-lifetime JSON-RPC request ids
_request_ids = itertools.count(1)


def next_request_id() -> int:
    return next(_request_ids)


@dataclass(frozen=True)
class RemoteAuth:
    """Credential attached to requests for one server."""
    type: str = "none"
    token: Optional[str] = None

    def headers(self) -> Dict[str, str]:
        if self.type in ("token", "oauth") and self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}


NO_AUTH = RemoteAuth()


def build_auth(server: Mapping[str, Any]) -> RemoteAuth:
    """Derive request auth from a stored server row (``auth_type`` + JSON ``auth_data``)."""
    auth_type = server.get("auth_type") or "none"
    if auth_type not in ("token", "oauth"):
        return NO_AUTH
    raw = server.get("auth_data")
    token = None
    if raw:
        try:
            data = json.loads(raw) if isinstance(raw, str) else raw
        except ValueError:
            logger.warning("Ignoring malformed auth data for server %s", sanitize_for_logging(server.get("name")))
            data = {}
        if isinstance(data, dict):
            token = data.get("token") or data.get("access_token")
    return RemoteAuth(type=auth_type, token=token)


def to_openai_tool(tool: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert an MCP tool descriptor into an OpenAI function-calling schema."""
    return {
        "type": "function",
        "function": {
            "name": tool["name"],
            "description": tool.get("description") or "",
            "parameters": tool.get("inputSchema") or {"type": "object", "properties": {}},
        },
    }


@dataclass(frozen=True)
class RemoteRoute:
    """Where calls for one remote tool name are sent."""
    url: str
    auth: RemoteAuth
    server_name: str = ""


@dataclass
class RemoteToolCatalog:
    """Merged discovery result: provider-facing schemas plus name -> route table."""
    schemas: List[Dict[str, Any]] = field(default_factory=list)
    routes: Dict[str, RemoteRoute] = field(default_factory=dict)


def error_content(message: str) -> List[Dict[str, Any]]:
    return [{"type": "text", "text": f"Tool error: {message}"}]


class RemoteToolGateway:
    """Stateless client for remote MCP servers.

    Args:
        timeout: Upper bound in seconds for each JSON-RPC request.
        transport: Optional httpx transport, used by tests to stub servers.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        client_name: str = "neochat",
        client_version: str = VERSION,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.client_name = client_name
        self.client_version = client_version
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=False,
            transport=self._transport,
        )

    async def _post(
        self,
        client: httpx.AsyncClient,
        url: str,
        payload: Dict[str, Any],
        auth: RemoteAuth,
        session_id: Optional[str] = None,
        expect_result: bool = True,
    ) -> Tuple[Any, Optional[str]]:
        validate_remote_url(url)
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json, text/event-stream",
            **auth.headers(),
        }
        if session_id:
            headers[SESSION_HEADER] = session_id

        async with client.stream("POST", url, json=payload, headers=headers) as response:
            if not response.is_success:
                raise RemoteToolError(f"MCP server {url} responded {response.status_code}")
            returned_session = response.headers.get(SESSION_HEADER) or session_id
            if not expect_result:
                return None, returned_session
            reader = select_reader(response.headers.get("content-type", ""))
            result = await reader.read(response)
            return result, returned_session

    async def _rpc(
        self,
        client: httpx.AsyncClient,
        url: str,
        method: str,
        params: Dict[str, Any],
        auth: RemoteAuth,
        session_id: Optional[str] = None,
    ) -> Tuple[Any, Optional[str]]:
        payload = {"jsonrpc": "2.0", "id": next_request_id(), "method": method, "params": params}
        try:
            return await asyncio.wait_for(
                self._post(client, url, payload, auth, session_id),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise RemoteToolError(f"MCP server {url} timed out after {self.timeout:g}s") from e
        except httpx.HTTPError as e:
            raise RemoteToolError(f"MCP server {url} unreachable: {e}") from e

    async def _initialize(self, client: httpx.AsyncClient, url: str, auth: RemoteAuth) -> Optional[str]:
        """Run the initialize handshake; returns the server-assigned session id, if any."""
        _, session_id = await self._rpc(
            client,
            url,
            "initialize",
            {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {"tools": {}},
                "clientInfo": {"name": self.client_name, "version": self.client_version},
            },
            auth,
        )
        notification = {"jsonrpc": "2.0", "method": "notifications/initialized"}
        try:
            await asyncio.wait_for(
                self._post(client, url, notification, auth, session_id, expect_result=False),
                timeout=self.timeout,
            )
        except (RemoteToolError, httpx.HTTPError, asyncio.TimeoutError) as e:
            logger.debug("initialized notification not accepted by %s: %s", sanitize_for_logging(url), e)
        return session_id

    async def list_tools(self, url: str, auth: RemoteAuth = NO_AUTH) -> List[Dict[str, Any]]:
        """Return the raw MCP tool descriptors of one server.

        Raises:
            RemoteURLError: the URL fails the outbound address policy.
            RemoteToolError: the server failed, timed out or returned an error.
        """
        async with self._client() as client:
            session_id = await self._initialize(client, url, auth)
            result, _ = await self._rpc(client, url, "tools/list", {}, auth, session_id)
        tools = (result or {}).get("tools") if isinstance(result, dict) else None
        if not isinstance(tools, list):
            return []
        return [t for t in tools if isinstance(t, dict) and t.get("name")]

    async def call_tool(
        self,
        url: str,
        name: str,
        arguments: Optional[Dict[str, Any]],
        auth: RemoteAuth = NO_AUTH,
    ) -> List[Dict[str, Any]]:
        """Invoke a remote tool and return its content blocks.

        Never raises for server-side problems: failures come back as a single
        text block starting with "Tool error:".
        """
        try:
            async with self._client() as client:
                session_id = await self._initialize(client, url, auth)
                result, _ = await self._rpc(
                    client,
                    url,
                    "tools/call",
                    {"name": name, "arguments": arguments or {}},
                    auth,
                    session_id,
                )
        except (RemoteToolError, RemoteURLError, httpx.HTTPError) as e:
            logger.warning(
                "Remote tool %s on %s failed: %s",
                sanitize_for_logging(name), sanitize_for_logging(url), sanitize_for_logging(e),
            )
            return error_content(str(e))

        if isinstance(result, dict) and isinstance(result.get("content"), list):
            return result["content"]
        return [{"type": "text", "text": json.dumps(result)}]

    async def _discover(self, server: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return await self.list_tools(server["url"], build_auth(server))

    async def collect_remote_tools(
        self,
        servers: Sequence[Mapping[str, Any]],
        reserved_names: Iterable[str] = (),
        user_id: Optional[str] = None,
    ) -> RemoteToolCatalog:
        """Discover tools on every server concurrently and merge the catalogs.

        A server that fails is logged and skipped. When two servers expose the
        same tool name, the one listed first keeps it. Names in
        ``reserved_names`` (the built-in tools) are never routed remotely.
        """
        catalog = RemoteToolCatalog()
        if not servers:
            return catalog

        outcomes = await asyncio.gather(
            *(self._discover(server) for server in servers),
            return_exceptions=True,
        )

        taken = set(reserved_names)
        for server, outcome in zip(servers, outcomes):
            server_name = sanitize_for_logging(server.get("name"))
            if isinstance(outcome, BaseException):
                logger.warning("Tool discovery failed for server %s: %s", server_name, sanitize_for_logging(outcome))
                continue
            route = RemoteRoute(url=server["url"], auth=build_auth(server), server_name=server.get("name") or "")
            for tool in outcome:
                name = tool["name"]
                if name in taken:
                    logger.info("Skipping tool %s from server %s: name already taken", sanitize_for_logging(name), server_name)
                    continue
                taken.add(name)
                catalog.routes[name] = route
                catalog.schemas.append(to_openai_tool(tool))

        log_metric(
            "remote_discovery", user_id,
            server_count=len(servers),
            tool_count=len(catalog.schemas),
        )
        return catalog
