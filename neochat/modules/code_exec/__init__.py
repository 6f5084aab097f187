"""External code execution service client."""

from .client import SUPPORTED_LANGUAGES, CodeExecutionClient, CodeExecutionError

__all__ = ["CodeExecutionClient", "CodeExecutionError", "SUPPORTED_LANGUAGES"]
