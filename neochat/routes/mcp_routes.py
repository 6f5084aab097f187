"""REST API routes for user-configured remote MCP servers."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from neochat.core.log_sanitizer import get_current_user, sanitize_for_logging
from neochat.domain.errors import DomainError, ValidationError
from neochat.modules.mcp_tools import build_auth, validate_remote_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mcp", tags=["mcp"])


class CreateServerRequest(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    auth_type: str = "none"
    auth_token: Optional[str] = None


class UpdateServerRequest(BaseModel):
    name: Optional[str] = None
    url: Optional[str] = None
    enabled: Optional[bool] = None
    auth_type: Optional[str] = None
    auth_token: Optional[str] = None


def _get_factory():
    from neochat.infrastructure.app_factory import app_factory
    return app_factory


def _checked_url(url: str) -> str:
    try:
        return validate_remote_url(url.strip())
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.get("")
async def list_servers(current_user: str = Depends(get_current_user)):
    """List the user's servers in creation order."""
    return _get_factory().server_repository.list_servers(current_user)


@router.post("", status_code=201)
async def create_server(body: CreateServerRequest, current_user: str = Depends(get_current_user)):
    if not (body.name or "").strip():
        raise HTTPException(status_code=400, detail="name is required")
    if not (body.url or "").strip():
        raise HTTPException(status_code=400, detail="url is required")
    url = _checked_url(body.url)
    try:
        return _get_factory().server_repository.create_server(
            current_user, body.name, url, auth_type=body.auth_type, auth_token=body.auth_token
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.patch("/{server_id}")
async def update_server(
    server_id: str,
    body: UpdateServerRequest,
    current_user: str = Depends(get_current_user),
):
    repo = _get_factory().server_repository
    if repo.get_server(server_id, current_user) is None:
        raise HTTPException(status_code=404, detail="Not found")

    changes = body.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=400, detail="Nothing to update")
    if "url" in changes:
        changes["url"] = _checked_url(changes["url"])
    try:
        updated = repo.update_server(server_id, current_user, **changes)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    if updated is None:
        raise HTTPException(status_code=404, detail="Not found")
    return updated


@router.delete("/{server_id}")
async def delete_server(server_id: str, current_user: str = Depends(get_current_user)):
    if not _get_factory().server_repository.delete_server(server_id, current_user):
        raise HTTPException(status_code=404, detail="Not found")
    return {"ok": True}


@router.get("/{server_id}/tools")
async def test_server(server_id: str, current_user: str = Depends(get_current_user)):
    """Test the connection by listing the server's tools."""
    factory = _get_factory()
    server = factory.server_repository.get_server(server_id, current_user, include_auth=True)
    if server is None:
        raise HTTPException(status_code=404, detail="Not found")
    try:
        tools = await factory.gateway.list_tools(server["url"], build_auth(server))
    except DomainError as e:
        logger.info("Connection test failed for server %s: %s", sanitize_for_logging(server["name"]), e.message)
        return JSONResponse(status_code=502, content={"ok": False, "error": e.message})
    return {"ok": True, "toolCount": len(tools), "tools": tools}
