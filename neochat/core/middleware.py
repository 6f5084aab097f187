"""FastAPI middleware for authentication and logging."""

import logging
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from neochat.core.auth import get_user_from_header
from neochat.core.log_sanitizer import sanitize_for_logging

logger = logging.getLogger(__name__)

PUBLIC_PATHS = ("/api/health", "/api/heartbeat")


class AuthMiddleware(BaseHTTPMiddleware):
    """Trusts the reverse proxy's user header and stores it on request.state."""

    def __init__(
        self,
        app,
        debug_mode: bool = False,
        auth_header_name: str = "X-User-Id",
        test_user: Optional[str] = None,
    ):
        super().__init__(app)
        self.debug_mode = debug_mode
        self.auth_header_name = auth_header_name
        self.test_user = test_user

    def _resolve_test_user(self) -> str:
        if self.test_user:
            return self.test_user
        from neochat.infrastructure.app_factory import app_factory
        return app_factory.get_config_manager().app_settings.test_user

    async def dispatch(self, request: Request, call_next) -> Response:
        logger.debug("Request: %s %s", request.method, sanitize_for_logging(request.url.path))

        if request.url.path.startswith('/static') or request.url.path in PUBLIC_PATHS:
            return await call_next(request)

        user_id = get_user_from_header(request.headers.get(self.auth_header_name))
        if user_id is None and self.debug_mode:
            # In debug mode, honor the header if provided, otherwise use the test user
            user_id = self._resolve_test_user()

        if not user_id:
            logger.warning(
                "Missing %s for endpoint: %s",
                self.auth_header_name,
                sanitize_for_logging(request.url.path),
            )
            return JSONResponse(status_code=401, content={"detail": "Unauthorized"})

        request.state.user_id = user_id
        return await call_next(request)
