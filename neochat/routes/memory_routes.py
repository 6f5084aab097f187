"""REST API routes for manual memory management."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from neochat.core.log_sanitizer import get_current_user
from neochat.core.metrics_logger import log_metric
from neochat.domain.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/memory", tags=["memory"])


class MemoryFactRequest(BaseModel):
    content: Optional[str] = None


def _get_repo():
    from neochat.infrastructure.app_factory import app_factory
    return app_factory.memory_repository


@router.get("")
async def list_memory(current_user: str = Depends(get_current_user)):
    return _get_repo().list_facts(current_user)


@router.post("")
async def add_memory(body: MemoryFactRequest, current_user: str = Depends(get_current_user)):
    """Add a fact. Adding a fact that already exists returns the stored row."""
    try:
        _, fact = _get_repo().add_fact(current_user, body.content)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    log_metric("memory_save", current_user, source="manual")
    return fact


@router.patch("/{fact_id}")
async def update_memory(
    fact_id: str,
    body: MemoryFactRequest,
    current_user: str = Depends(get_current_user),
):
    try:
        updated = _get_repo().update_fact(current_user, fact_id, body.content)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    if not updated:
        raise HTTPException(status_code=404, detail="Not found")
    return {"ok": True}


@router.delete("/{fact_id}")
async def delete_memory(fact_id: str, current_user: str = Depends(get_current_user)):
    if not _get_repo().delete_fact(current_user, fact_id):
        raise HTTPException(status_code=404, detail="Not found")
    return {"ok": True}


@router.delete("")
async def clear_memory(current_user: str = Depends(get_current_user)):
    _get_repo().clear_facts(current_user)
    return {"ok": True}
