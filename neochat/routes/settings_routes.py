"""REST API routes for per-user settings and the model catalog."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from neochat.core.log_sanitizer import get_current_user
from neochat.modules.config import mask_settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])


def _get_factory():
    from neochat.infrastructure.app_factory import app_factory
    return app_factory


@router.get("")
async def get_settings(current_user: str = Depends(get_current_user)):
    """Effective settings with secrets replaced by ``<key>_set`` flags."""
    repo = _get_factory().settings_repository
    return mask_settings(repo.get_effective(current_user))


@router.patch("")
async def update_settings(
    updates: Any = Body(default=None),
    current_user: str = Depends(get_current_user),
):
    """Store known keys; unknown keys and over-long values are ignored."""
    if not isinstance(updates, dict):
        raise HTTPException(status_code=400, detail="Invalid body")
    repo = _get_factory().settings_repository
    written = repo.update(current_user, updates)
    logger.info("Updated %d setting(s)", len(written))
    return mask_settings(repo.get_effective(current_user))


@router.get("/models")
async def list_models() -> Dict[str, Any]:
    return _get_factory().get_config_manager().model_catalog.as_response()
