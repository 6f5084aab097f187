"""
Event types produced by the streaming provider adapter.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Union


@dataclass(frozen=True)
class TextDelta:
    """A piece of assistant text, in provider arrival order."""
    content: str


@dataclass(frozen=True)
class ToolCallStarted:
    """The model asked for a tool; emitted before the executor runs."""
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ToolCallFinished:
    """The executor returned (or failed) for the preceding ToolCallStarted."""
    name: str
    result: str


@dataclass(frozen=True)
class StreamCompleted:
    """Terminal success. ``aborted`` marks a cancelled request's partial text."""
    text: str
    aborted: bool = False
    rounds: int = 0


@dataclass(frozen=True)
class StreamFailed:
    """Terminal provider failure."""
    error: Exception


StreamEvent = Union[TextDelta, ToolCallStarted, ToolCallFinished, StreamCompleted, StreamFailed]

ToolExecutor = Callable[[str, Dict[str, Any]], Awaitable[str]]


class LoopState(enum.Enum):
    """State of the provider round loop."""
    ACCUMULATING = "accumulating"
    ROUND_LIMIT = "round_limit"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"
