"""Domain-level errors and exceptions."""

from typing import Optional


class DomainError(Exception):
    """Base domain error."""
    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(DomainError):
    """Validation error."""
    pass


class NotFoundError(DomainError):
    """Requested resource does not exist or is not owned by the caller."""
    pass


class ConfigurationError(DomainError):
    """Configuration error."""
    pass


class LLMError(DomainError):
    """LLM-related error."""
    pass


class RateLimitError(LLMError):
    """Provider rejected the request because of rate limiting."""
    pass


class LLMTimeoutError(LLMError):
    """Provider request timed out."""
    pass


class LLMAuthenticationError(LLMError):
    """Provider rejected the configured credential."""
    pass


class LLMServiceError(LLMError):
    """Generic provider failure."""
    pass


class ToolError(DomainError):
    """Tool execution error."""
    pass


class RemoteToolError(ToolError):
    """A remote MCP server failed, timed out, or answered with a JSON-RPC error."""
    pass


class RemoteURLError(ValidationError):
    """Remote server URL failed the outbound address policy."""
    pass


class OperationAborted(DomainError):
    """The request's cancellation signal fired while waiting on I/O."""
    def __init__(self, message: str = "Operation aborted"):
        super().__init__(message, code="aborted")
