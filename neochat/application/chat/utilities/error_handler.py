"""
Error handling utilities - pure functions for exception handling patterns.

This module provides stateless utility functions for turning provider
failures into messages that are safe to show in the chat stream.
"""

import logging
from typing import Tuple

from neochat.domain.errors import (
    LLMAuthenticationError,
    LLMServiceError,
    LLMTimeoutError,
    RateLimitError,
)

logger = logging.getLogger(__name__)


def classify_llm_error(error: Exception) -> Tuple[type, str, str]:
    """
    Classify LLM errors and return appropriate error type, user message, and log message.

    Returns:
        Tuple of (error_class, user_message, log_message).

    NOTE: user_message MUST NOT contain raw exception details or sensitive data.
    """
    error_str = str(error)
    error_type_name = type(error).__name__
    lowered = error_str.lower()

    # Check for rate limiting errors
    if "RateLimitError" in error_type_name or "rate limit" in lowered or "high traffic" in lowered:
        user_msg = "The AI service is experiencing high traffic. Please try again in a moment."
        log_msg = f"Rate limit error: {error_str}"
        return (RateLimitError, user_msg, log_msg)

    # Check for timeout errors
    if "Timeout" in error_type_name or "timeout" in lowered or "timed out" in lowered:
        user_msg = "The AI service request timed out. Please try again."
        log_msg = f"Timeout error: {error_str}"
        return (LLMTimeoutError, user_msg, log_msg)

    # Check for authentication/authorization errors
    if "AuthenticationError" in error_type_name or any(
        keyword in lowered for keyword in ["unauthorized", "authentication", "invalid api key", "invalid_api_key", "api key"]
    ):
        user_msg = "The AI provider rejected your API key. Check it in Settings -> Model."
        log_msg = f"Authentication error: {error_str}"
        return (LLMAuthenticationError, user_msg, log_msg)

    # Generic LLM service error (non-validation)
    user_msg = "The AI service encountered an error. Please try again or contact support if the issue persists."
    log_msg = f"LLM error: {error_str}"
    return (LLMServiceError, user_msg, log_msg)
