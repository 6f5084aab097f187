"""
Log-safety helpers and the current-user dependency.
"""

import logging
import re
from typing import Any

from fastapi import Request

logger = logging.getLogger(__name__)

_CONTROL_CHARS_RE = re.compile(r'[\x00-\x1f\x7f-\x9f]')
# Matches Unicode line separators (LINE SEPARATOR and PARAGRAPH SEPARATOR)
_UNICODE_NEWLINES_RE = re.compile(r'[\u2028\u2029]')
_STANDARD_NEWLINES_RE = re.compile(r'(\r\n|\r|\n)')


def sanitize_for_logging(value: Any) -> str:
    """
    Sanitize a value for safe logging by removing newlines and control characters.

    User ids, conversation titles, remote server names and URLs all end up in
    log lines; stripping CR/LF, Unicode line separators and other control
    characters keeps one log record on one line.

    Examples:
        >>> sanitize_for_logging("Hello\\nWorld")
        'HelloWorld'
        >>> sanitize_for_logging("Test\\x1b[31mRed\\x1b[0m")
        'Test[31mRed[0m'
        >>> sanitize_for_logging("a\\u2028b")
        'ab'
        >>> sanitize_for_logging(None)
        ''
        >>> sanitize_for_logging(123)
        '123'
    """
    if value is None:
        return ''
    if not isinstance(value, str):
        value = str(value)
    value = _CONTROL_CHARS_RE.sub('', value)
    value = _UNICODE_NEWLINES_RE.sub('', value)
    value = _STANDARD_NEWLINES_RE.sub('', value)
    return value


def summarize_text_for_logging(text: Any, limit: int = 80) -> str:
    """Return a short, single-line preview of user content (length + head)."""
    cleaned = sanitize_for_logging(text)
    if len(cleaned) <= limit:
        return f"len={len(cleaned)} text={cleaned!r}"
    return f"len={len(cleaned)} text={cleaned[:limit]!r}..."


async def get_current_user(request: Request) -> str:
    """Get current user from request state (set by middleware)."""
    return getattr(request.state, 'user_id', 'test@test.com')
