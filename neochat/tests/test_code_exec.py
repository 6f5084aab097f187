"""Tests for the code execution service client."""

import json

import httpx
import pytest

from neochat.domain.errors import ValidationError
from neochat.modules.code_exec import CodeExecutionClient, CodeExecutionError


def _client(handler, **kwargs):
    return CodeExecutionClient("https://exec.example.com/", transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_execute_relays_request_and_normalizes_reply():
    seen = []

    def handler(request):
        seen.append((str(request.url), json.loads(request.content)))
        return httpx.Response(200, json={"stdout": "4\n", "image_b64": None})

    result = await _client(handler).execute("print(2 + 2)", "py")

    assert seen == [("https://exec.example.com/execute", {"code": "print(2 + 2)", "language": "python"})]
    assert result == {"stdout": "4\n", "stderr": "", "image_b64": None}


@pytest.mark.parametrize("code, language", [
    ("", "python"),
    (None, "python"),
    ("print(1)", "ruby"),
    ("x" * 50_001, "python"),
])
@pytest.mark.asyncio
async def test_invalid_requests_never_reach_the_service(code, language):
    def handler(request):
        raise AssertionError("service must not be called")

    with pytest.raises(ValidationError):
        await _client(handler).execute(code, language)


@pytest.mark.asyncio
async def test_service_failures_raise_execution_error():
    with pytest.raises(CodeExecutionError, match="responded 500"):
        await _client(lambda request: httpx.Response(500)).execute("1", "javascript")

    def unreachable(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(CodeExecutionError, match="unreachable"):
        await _client(unreachable).execute("1", "js")

    with pytest.raises(CodeExecutionError, match="invalid JSON"):
        await _client(lambda request: httpx.Response(200, text="<html>")).execute("1", "python")
