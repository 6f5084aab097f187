"""Domain layer - pure business models and errors."""

from .errors import (
    ConfigurationError,
    DomainError,
    LLMError,
    NotFoundError,
    OperationAborted,
    RemoteToolError,
    RemoteURLError,
    ToolError,
    ValidationError,
)
from .tool_outcomes import ImageOutcome, TextOutcome, ToolOutcome

__all__ = [
    # Errors
    "DomainError",
    "ValidationError",
    "NotFoundError",
    "ConfigurationError",
    "LLMError",
    "ToolError",
    "RemoteToolError",
    "RemoteURLError",
    "OperationAborted",
    # Tool outcomes
    "ToolOutcome",
    "TextOutcome",
    "ImageOutcome",
]
