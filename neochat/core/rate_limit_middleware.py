"""Simple in-memory rate limit middleware.

Fixed-window counter per authenticated user (falling back to client IP) for a
set of throttled path prefixes. Suitable for single-process deployments and
tests; other paths pass through untouched.

Configuration is sourced from ConfigManager (AppSettings):
    - app_settings.exec_rate_limit_rpm            (env: EXEC_RATE_LIMIT_RPM, default: 30)
    - app_settings.exec_rate_limit_window_seconds (env: EXEC_RATE_LIMIT_WINDOW_SECONDS, default: 60)
"""

import logging
import time
import typing as t

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

from neochat.core.log_sanitizer import sanitize_for_logging
from neochat.core.metrics_logger import log_metric
from neochat.modules.config import config_manager

logger = logging.getLogger(__name__)

THROTTLED_PATHS = ("/api/ai/exec",)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Must sit inside AuthMiddleware so ``request.state.user_id`` is set."""

    def __init__(
        self,
        app,
        paths: t.Sequence[str] = THROTTLED_PATHS,
        max_requests: t.Optional[int] = None,
        window_seconds: t.Optional[int] = None,
    ) -> None:
        super().__init__(app)
        settings = config_manager.app_settings
        self.paths = tuple(paths)
        self.max_requests = int(max_requests if max_requests is not None else settings.exec_rate_limit_rpm)
        self.window_seconds = int(
            window_seconds if window_seconds is not None else settings.exec_rate_limit_window_seconds
        )
        # state: key -> (window_start_epoch, count)
        self._buckets: dict[str, t.Tuple[int, int]] = {}

    def _throttled(self, path: str) -> bool:
        return any(path.startswith(p) for p in self.paths)

    def _key_for(self, request: Request) -> str:
        user_id = getattr(request.state, "user_id", None)
        if user_id:
            who = f"user:{user_id}"
        else:
            who = f"ip:{request.client.host if request.client else 'unknown'}"
        return f"{who}:{request.url.path}"

    async def dispatch(self, request: Request, call_next) -> Response:
        if not self._throttled(request.url.path):
            return await call_next(request)

        now = int(time.time())
        key = self._key_for(request)
        win = self.window_seconds
        start, count = self._buckets.get(key, (now, 0))

        # Move window if expired
        if now - start >= win:
            start, count = now, 0

        count += 1
        self._buckets[key] = (start, count)

        if count > self.max_requests:
            retry_after = max(1, win - (now - start))
            user_id = getattr(request.state, "user_id", None)
            logger.warning(
                "Rate limit exceeded for %s on %s",
                sanitize_for_logging(user_id or "anonymous"),
                sanitize_for_logging(request.url.path),
            )
            log_metric("error", user_id, error_type="rate_limit")
            return JSONResponse(
                status_code=429,
                content={
                    "detail": "Too many execution requests. Please slow down.",
                    "limit": self.max_requests,
                    "window_seconds": self.window_seconds,
                },
                headers={"Retry-After": str(retry_after)},
            )

        return await call_next(request)
