"""Authentication helpers.

The server sits behind a reverse proxy that authenticates the user and
forwards an opaque user id in a header. Nothing here verifies credentials.
"""

import logging
from typing import Optional

logger = logging.getLogger(__name__)

MAX_USER_ID_LENGTH = 255


def get_user_from_header(header_value: Optional[str]) -> Optional[str]:
    """Extract the user id from the authentication header value."""
    if not header_value:
        return None
    user_id = header_value.strip()
    if not user_id or len(user_id) > MAX_USER_ID_LENGTH:
        return None
    return user_id
