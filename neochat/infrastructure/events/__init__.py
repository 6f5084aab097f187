"""Event publisher implementations."""

from .stream_publisher import CollectingEventPublisher, SSEEventPublisher, format_sse

__all__ = ["CollectingEventPublisher", "SSEEventPublisher", "format_sse"]
