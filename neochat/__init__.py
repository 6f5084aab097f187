"""
NeoChat - self-hosted LLM chat server.

Streams model output over server-sent events, remembers facts about each
user, and lets the model call built-in tools (memory, web search, image
generation) as well as tools exposed by user-configured remote MCP servers.

Run the server (after pip install):
    neochat-server --port 8000
"""

from neochat.version import VERSION

__version__ = VERSION
__all__ = ["VERSION", "__version__"]
