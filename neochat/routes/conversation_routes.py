"""REST API routes for conversations and their messages."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from neochat.core.log_sanitizer import get_current_user
from neochat.domain.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chats", tags=["chats"])


class CreateConversationRequest(BaseModel):
    title: Optional[str] = None


class UpdateTitleRequest(BaseModel):
    title: Optional[str] = None


class EditMessageRequest(BaseModel):
    content: Optional[str] = None


def _get_repo():
    """Get the conversation repository from the app factory."""
    from neochat.infrastructure.app_factory import app_factory
    return app_factory.conversation_repository


@router.get("")
async def list_conversations(current_user: str = Depends(get_current_user)):
    """List the user's conversations, most recently updated first."""
    return _get_repo().list_conversations(current_user, limit=200)


@router.post("")
async def create_conversation(
    body: Optional[CreateConversationRequest] = None,
    current_user: str = Depends(get_current_user),
):
    return _get_repo().create_conversation(current_user, title=body.title if body else None)


@router.get("/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    current_user: str = Depends(get_current_user),
):
    """Get a conversation with all its messages."""
    repo = _get_repo()
    conversation = repo.get_conversation(conversation_id, current_user)
    if not conversation:
        raise HTTPException(status_code=404, detail="Not found")
    conversation["messages"] = repo.list_messages(conversation_id, current_user)
    return conversation


@router.patch("/{conversation_id}")
async def rename_conversation(
    conversation_id: str,
    body: UpdateTitleRequest,
    current_user: str = Depends(get_current_user),
):
    try:
        renamed = _get_repo().rename_conversation(conversation_id, current_user, body.title or "")
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    if not renamed:
        raise HTTPException(status_code=404, detail="Not found")
    return {"ok": True}


@router.delete("/{conversation_id}")
async def delete_conversation(
    conversation_id: str,
    current_user: str = Depends(get_current_user),
):
    if not _get_repo().delete_conversation(conversation_id, current_user):
        raise HTTPException(status_code=404, detail="Not found")
    return {"ok": True}


@router.get("/{conversation_id}/messages")
async def list_messages(
    conversation_id: str,
    current_user: str = Depends(get_current_user),
):
    try:
        return _get_repo().list_messages(conversation_id, current_user)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Not found")


@router.patch("/{conversation_id}/messages/{message_id}")
async def edit_message(
    conversation_id: str,
    message_id: str,
    body: EditMessageRequest,
    current_user: str = Depends(get_current_user),
):
    """Delete a user message and everything after it.

    The client re-sends the edited text through the chat endpoint.
    """
    if not (body.content or "").strip():
        raise HTTPException(status_code=400, detail="Content required")
    try:
        deleted = _get_repo().truncate_from_message(conversation_id, current_user, message_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    logger.info("Truncated conversation %s (%d messages removed)", conversation_id, deleted)
    return {"ok": True, "deleted": deleted}
