"""Security headers middleware with ConfigManager-based toggles.

Sets common security headers:
 - Content-Security-Policy (CSP)
 - X-Frame-Options (XFO)
 - X-Content-Type-Options: nosniff
 - Referrer-Policy

Each header is individually togglable via AppSettings. HSTS is intentionally omitted.
Event-stream responses skip CSP since they are never rendered as documents.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from neochat.modules.config import config_manager


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp) -> None:
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        response: Response = await call_next(request)
        settings = config_manager.app_settings

        if settings.security_nosniff_enabled:
            response.headers.setdefault("X-Content-Type-Options", "nosniff")

        if settings.security_xfo_enabled:
            response.headers.setdefault("X-Frame-Options", settings.security_xfo_value)

        if settings.security_referrer_policy_enabled:
            response.headers.setdefault("Referrer-Policy", settings.security_referrer_policy_value)

        content_type = response.headers.get("content-type", "")
        if (
            settings.security_csp_enabled
            and settings.security_csp_value
            and not content_type.startswith("text/event-stream")
        ):
            response.headers.setdefault("Content-Security-Policy", settings.security_csp_value)

        return response
