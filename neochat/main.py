"""
NeoChat backend: FastAPI application wiring.
"""

# Suppress LiteLLM verbose logging BEFORE any transitive import of litellm.
# litellm._logging reads LITELLM_LOG at import time and defaults to DEBUG.
import os
from pathlib import Path as _Path

from dotenv import dotenv_values as _dotenv_values

_env_path = _Path(__file__).parent.parent / ".env"
_env_values = _dotenv_values(_env_path) if _env_path.exists() else {}

# Check feature flag: FEATURE_SUPPRESS_LITELLM_LOGGING (default: true)
_suppress_litellm = _env_values.get("FEATURE_SUPPRESS_LITELLM_LOGGING", "true").lower() in ("true", "1", "yes")

if _suppress_litellm and "LITELLM_LOG" not in os.environ:
    os.environ["LITELLM_LOG"] = "ERROR"

del _Path, _dotenv_values, _env_path, _env_values, _suppress_litellm

# Standard imports follow - must come after LiteLLM logging suppression above
# ruff: noqa: E402
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from neochat.core.middleware import AuthMiddleware
from neochat.core.otel_config import setup_opentelemetry
from neochat.core.rate_limit_middleware import RateLimitMiddleware
from neochat.core.security_headers_middleware import SecurityHeadersMiddleware
from neochat.infrastructure.app_factory import app_factory
from neochat.modules.storage import init_database
from neochat.routes.chat_routes import router as chat_router
from neochat.routes.conversation_routes import router as conversation_router
from neochat.routes.health_routes import router as health_router
from neochat.routes.mcp_routes import router as mcp_router
from neochat.routes.memory_routes import router as memory_router
from neochat.routes.settings_routes import router as settings_router
from neochat.version import VERSION

load_dotenv()

# Setup OpenTelemetry logging
otel_config = setup_opentelemetry("neochat", VERSION)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting NeoChat backend")
    config = app_factory.get_config_manager()

    init_database(config.app_settings.database_url)
    status = config.validate_config()
    logger.info("Configuration status: %s", status)
    if not config.app_settings.code_executor_url:
        logger.info("CODE_EXECUTOR_URL not set; /api/ai/exec is disabled")

    yield

    logger.info("Shutting down NeoChat backend")
    # Give in-flight titling and auto-memory a chance to land
    await app_factory.background.drain()


app = FastAPI(
    title="NeoChat",
    description="Self-hosted LLM chat with memory, web research and remote tools",
    version=VERSION,
    lifespan=lifespan,
)

config = app_factory.get_config_manager()

# Last added runs first: Auth sets request.state.user_id before the
# per-user limiter sees the request.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    AuthMiddleware,
    debug_mode=config.app_settings.debug_mode,
    auth_header_name=config.app_settings.auth_user_header,
    test_user=config.app_settings.test_user,
)

app.include_router(health_router)
app.include_router(chat_router)
app.include_router(conversation_router)
app.include_router(settings_router)
app.include_router(memory_router)
app.include_router(mcp_router)

otel_config.instrument_fastapi(app)
otel_config.instrument_httpx()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=config.app_settings.port)
