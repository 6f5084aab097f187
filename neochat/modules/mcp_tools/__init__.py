"""Remote MCP tool servers: outbound URL policy, JSON-RPC gateway and discovery."""

from .client import (
    NO_AUTH,
    RemoteAuth,
    RemoteRoute,
    RemoteToolCatalog,
    RemoteToolGateway,
    build_auth,
    to_openai_tool,
)
from .readers import JsonResponseReader, SseResponseReader, select_reader
from .url_guard import validate_remote_url

__all__ = [
    "NO_AUTH",
    "RemoteAuth",
    "RemoteRoute",
    "RemoteToolCatalog",
    "RemoteToolGateway",
    "build_auth",
    "to_openai_tool",
    "JsonResponseReader",
    "SseResponseReader",
    "select_reader",
    "validate_remote_url",
]
