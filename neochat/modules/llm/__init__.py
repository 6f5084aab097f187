"""LLM module: the per-request LiteLLM adapter and its stream event types."""

from .litellm_caller import (
    SUPPORTED_PROVIDERS,
    LiteLLMCaller,
    is_provider_available,
    is_reasoning_model,
    parse_tool_arguments,
)
from .models import (
    LoopState,
    StreamCompleted,
    StreamEvent,
    StreamFailed,
    TextDelta,
    ToolCallFinished,
    ToolCallStarted,
    ToolExecutor,
)

__all__ = [
    "LiteLLMCaller",
    "SUPPORTED_PROVIDERS",
    "is_provider_available",
    "is_reasoning_model",
    "parse_tool_arguments",
    "LoopState",
    "StreamCompleted",
    "StreamEvent",
    "StreamFailed",
    "TextDelta",
    "ToolCallFinished",
    "ToolCallStarted",
    "ToolExecutor",
]
