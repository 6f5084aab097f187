"""
Metrics logging utility for tracking user activities without capturing sensitive data.

This module provides a centralized way to log user activity metrics that:
- Use the [METRIC] prefix for easy filtering
- Include the user id for tracking
- Only log metadata (counts, sizes, types)
- NEVER log sensitive data like prompts, tool arguments, memory contents, or API keys

Usage:
    from neochat.core.metrics_logger import log_metric

    log_metric("llm_call", user_id, model="gpt-5-mini", message_count=5)
    log_metric("tool_call", user_id, tool_name="web_search", source="builtin")
    log_metric("memory_save", user_id, source="auto")
    log_metric("error", user_id, error_type="rate_limit")
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


def log_metric(
    event_type: str,
    user_id: Optional[str] = None,
    **kwargs: Any
) -> None:
    """
    Log a metric event for user activity tracking.

    This function respects the FEATURE_METRICS_LOGGING_ENABLED setting.
    When disabled, no metrics are logged.

    Args:
        event_type: Type of event (e.g., "llm_call", "tool_call", "remote_discovery", "error")
        user_id: Authenticated user id (will be sanitized)
        **kwargs: Additional metadata to log (only non-sensitive data)
    """
    # Import here to avoid circular dependencies
    from neochat.core.log_sanitizer import sanitize_for_logging
    from neochat.modules.config import config_manager

    if not config_manager.app_settings.feature_metrics_logging_enabled:
        return

    sanitized_user = sanitize_for_logging(user_id) if user_id else "unknown"

    parts = [f"[METRIC] [{sanitized_user}] {event_type}"]

    if kwargs:
        metadata_parts = [
            f"{key}={sanitize_for_logging(value)}"
            for key, value in kwargs.items()
        ]
        parts.append(" ".join(metadata_parts))

    logger.info(" ".join(parts))
