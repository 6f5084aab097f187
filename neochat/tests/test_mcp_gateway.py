"""Tests for the remote MCP tool gateway, using httpx.MockTransport servers."""

import json

import httpx
import pytest

from neochat.domain.errors import RemoteToolError, RemoteURLError
from neochat.modules.mcp_tools import RemoteAuth, RemoteToolGateway, build_auth


def _tool(name, description=""):
    return {
        "name": name,
        "description": description,
        "inputSchema": {"type": "object", "properties": {"q": {"type": "string"}}},
    }


class FakeMCPServers:
    """Routes JSON-RPC requests by host and records what each server received."""

    def __init__(self, tools_by_host, call_results=None, sse_hosts=(), failing_hosts=()):
        self.tools_by_host = tools_by_host
        self.call_results = call_results or {}
        self.sse_hosts = set(sse_hosts)
        self.failing_hosts = set(failing_hosts)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        body = json.loads(request.content)
        self.requests.append((host, body.get("method"), body, dict(request.headers)))

        if host in self.failing_hosts:
            return httpx.Response(500, text="boom")
        if "id" not in body:
            return httpx.Response(202)

        method = body["method"]
        if method == "initialize":
            result = {"protocolVersion": "2024-11-05", "capabilities": {"tools": {}}}
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result},
                                  headers={"mcp-session-id": f"session-{host}"})
        if method == "tools/list":
            result = {"tools": self.tools_by_host.get(host, [])}
        elif method == "tools/call":
            result = self.call_results.get(
                (host, body["params"]["name"]),
                {"content": [{"type": "text", "text": f"{host} ran {body['params']['name']}"}]},
            )
        else:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"],
                                             "error": {"code": -32601, "message": "Method not found"}})

        envelope = {"jsonrpc": "2.0", "id": body["id"], "result": result}
        if host in self.sse_hosts:
            stream = (
                ": keep-alive\n\n"
                "event: message\n"
                f"data: {json.dumps(envelope)}\n\n"
                'data: {"jsonrpc": "2.0", "method": "notifications/progress"}\n\n'
            )
            return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=stream.encode())
        return httpx.Response(200, json=envelope)

    def methods_for(self, host):
        return [method for h, method, _, _ in self.requests if h == host]


def _server(name, host, **extra):
    return {"name": name, "url": f"https://{host}/mcp", "auth_type": "none", "auth_data": None, **extra}


@pytest.mark.asyncio
async def test_list_tools_runs_handshake_and_returns_descriptors():
    servers = FakeMCPServers({"alpha.example.com": [_tool("lookup"), {"description": "nameless"}]})
    gateway = RemoteToolGateway(transport=httpx.MockTransport(servers))

    tools = await gateway.list_tools("https://alpha.example.com/mcp")

    assert [t["name"] for t in tools] == ["lookup"]
    assert servers.methods_for("alpha.example.com") == [
        "initialize", "notifications/initialized", "tools/list",
    ]
    # Session id from the handshake is echoed on subsequent requests
    _, _, _, headers = servers.requests[-1]
    assert headers.get("mcp-session-id") == "session-alpha.example.com"


@pytest.mark.asyncio
async def test_collect_remote_tools_first_server_wins_and_builtins_are_reserved():
    servers = FakeMCPServers({
        "alpha.example.com": [_tool("search", "alpha search"), _tool("memory_save")],
        "beta.example.com": [_tool("search", "beta search"), _tool("translate")],
    })
    gateway = RemoteToolGateway(transport=httpx.MockTransport(servers))

    catalog = await gateway.collect_remote_tools(
        [_server("Alpha", "alpha.example.com"), _server("Beta", "beta.example.com")],
        reserved_names={"memory_save"},
    )

    names = [s["function"]["name"] for s in catalog.schemas]
    assert names == ["search", "translate"]
    assert catalog.schemas[0]["function"]["description"] == "alpha search"
    assert catalog.routes["search"].url == "https://alpha.example.com/mcp"
    assert catalog.routes["translate"].url == "https://beta.example.com/mcp"
    assert "memory_save" not in catalog.routes

    blocks = await gateway.call_tool(catalog.routes["search"].url, "search", {"q": "x"})
    assert blocks == [{"type": "text", "text": "alpha.example.com ran search"}]
    assert "tools/call" not in servers.methods_for("beta.example.com")


@pytest.mark.asyncio
async def test_failing_server_is_skipped_during_discovery():
    servers = FakeMCPServers(
        {"beta.example.com": [_tool("translate")]},
        failing_hosts={"alpha.example.com"},
    )
    gateway = RemoteToolGateway(transport=httpx.MockTransport(servers))

    catalog = await gateway.collect_remote_tools(
        [_server("Alpha", "alpha.example.com"), _server("Beta", "beta.example.com")]
    )

    assert list(catalog.routes) == ["translate"]


@pytest.mark.asyncio
async def test_sse_response_returns_first_result():
    servers = FakeMCPServers({"sse.example.com": [_tool("lookup")]}, sse_hosts={"sse.example.com"})
    gateway = RemoteToolGateway(transport=httpx.MockTransport(servers))

    tools = await gateway.list_tools("https://sse.example.com/mcp")

    assert [t["name"] for t in tools] == ["lookup"]


@pytest.mark.asyncio
async def test_sse_stream_without_result_raises():
    def handler(request):
        body = json.loads(request.content)
        if "id" not in body:
            return httpx.Response(202)
        stream = 'data: {"jsonrpc": "2.0", "method": "notifications/progress"}\n\n'
        return httpx.Response(200, headers={"content-type": "text/event-stream"}, content=stream.encode())

    gateway = RemoteToolGateway(transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteToolError):
        await gateway.list_tools("https://quiet.example.com/mcp")


@pytest.mark.asyncio
async def test_private_url_is_refused_without_any_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    gateway = RemoteToolGateway(transport=httpx.MockTransport(handler))

    with pytest.raises(RemoteURLError):
        await gateway.list_tools("http://127.0.0.1:8080/mcp")

    blocks = await gateway.call_tool("http://192.168.0.4/mcp", "lookup", {})
    assert blocks[0]["text"].startswith("Tool error:")
    assert calls == []


@pytest.mark.asyncio
async def test_call_tool_turns_rpc_error_into_text_block():
    def handler(request):
        body = json.loads(request.content)
        if "id" not in body:
            return httpx.Response(202)
        if body["method"] == "initialize":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": {}})
        return httpx.Response(200, json={
            "jsonrpc": "2.0", "id": body["id"],
            "error": {"code": -32602, "message": "Invalid params"},
        })

    gateway = RemoteToolGateway(transport=httpx.MockTransport(handler))

    blocks = await gateway.call_tool("https://alpha.example.com/mcp", "lookup", {"q": 1})

    assert len(blocks) == 1
    assert blocks[0]["type"] == "text"
    assert blocks[0]["text"].startswith("Tool error:")
    assert "Invalid params" in blocks[0]["text"]


@pytest.mark.asyncio
async def test_call_tool_http_failure_becomes_text_block():
    servers = FakeMCPServers({}, failing_hosts={"alpha.example.com"})
    gateway = RemoteToolGateway(transport=httpx.MockTransport(servers))

    blocks = await gateway.call_tool("https://alpha.example.com/mcp", "lookup", {})

    assert "500" in blocks[0]["text"]


@pytest.mark.asyncio
async def test_bearer_token_is_sent():
    servers = FakeMCPServers({"alpha.example.com": [_tool("lookup")]})
    gateway = RemoteToolGateway(transport=httpx.MockTransport(servers))
    auth = build_auth({"auth_type": "token", "auth_data": json.dumps({"token": "s3cret"})})

    await gateway.list_tools("https://alpha.example.com/mcp", auth)

    assert all(headers.get("authorization") == "Bearer s3cret" for _, _, _, headers in servers.requests)


def test_build_auth_ignores_malformed_data():
    assert build_auth({"auth_type": "token", "auth_data": "{not json"}) == RemoteAuth(type="token", token=None)
    assert build_auth({"auth_type": "none", "auth_data": json.dumps({"token": "x"})}).headers() == {}
    assert build_auth({"auth_type": "oauth", "auth_data": {"access_token": "abc"}}).headers() == {
        "Authorization": "Bearer abc"
    }
