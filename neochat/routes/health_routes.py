"""Health check routes for service monitoring and load balancing.

Provides simple health check endpoints for monitoring tools, orchestrators,
and load balancers to verify service availability. Both bypass
authentication.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter

from neochat.version import VERSION

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/heartbeat")
async def heartbeat() -> Dict[str, str]:
    """Lightweight heartbeat endpoint for uptime monitoring."""
    return {"status": "ok"}


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """Health check endpoint for service monitoring.

    Returns:
        Dictionary containing:
        - status: Service health status ("healthy")
        - service: Service name
        - version: Service version
        - timestamp: Current UTC timestamp in ISO-8601 format
    """
    return {
        "status": "healthy",
        "service": "neochat",
        "version": VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
