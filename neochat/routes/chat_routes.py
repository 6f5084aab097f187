"""Chat streaming, provider status, PDF text extraction and code execution routes."""

import asyncio
import logging
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field, field_validator

from neochat.core.log_sanitizer import get_current_user, sanitize_for_logging
from neochat.domain.errors import ConfigurationError, NotFoundError, ValidationError
from neochat.infrastructure.events import SSEEventPublisher
from neochat.modules.attachments import PDFParseError, decode_pdf_payload, extract_pdf_text
from neochat.modules.code_exec import CodeExecutionError
from neochat.modules.config import config_manager
from neochat.modules.llm import is_provider_available

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class Attachment(BaseModel):
    type: Literal["image", "text"]
    name: Optional[str] = None
    data: str

    @field_validator("data")
    @classmethod
    def validate_size(cls, v: str) -> str:
        limit = config_manager.app_settings.chat_attachment_max_bytes
        if len(v) > limit:
            raise ValueError(f"Attachment too large (max {limit // (1024 * 1024)} MB)")
        return v


class ChatRequest(BaseModel):
    conversation_id: Optional[str] = Field(default=None, alias="conversationId")
    message: str
    mode: Optional[Literal["normal", "thinking", "deep_research"]] = None
    attachments: List[Attachment] = Field(default_factory=list)

    model_config = {"populate_by_name": True}

    @field_validator("message")
    @classmethod
    def validate_message(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message required")
        limit = config_manager.app_settings.chat_message_max_chars
        if len(v) > limit:
            raise ValueError(f"Message too long (max {limit} chars)")
        return v

    @field_validator("attachments")
    @classmethod
    def validate_attachment_count(cls, v: List[Attachment]) -> List[Attachment]:
        limit = config_manager.app_settings.chat_max_attachments
        if len(v) > limit:
            raise ValueError(f"Too many attachments (max {limit})")
        return v


class ExecRequest(BaseModel):
    code: Optional[str] = None
    language: Optional[str] = None


class ParsePDFRequest(BaseModel):
    data: Optional[str] = None  # base64-encoded PDF


def _get_factory():
    from neochat.infrastructure.app_factory import app_factory
    return app_factory


@router.post("/chat")
async def chat(body: ChatRequest, current_user: str = Depends(get_current_user)):
    """Stream one assistant reply as server-sent events.

    Ownership and credential problems are answered with a plain HTTP error
    before the stream opens. Once streaming, the reply runs in a producer
    task; if the client goes away the request's cancel event is set so the
    provider stream and any research searches stop.
    """
    factory = _get_factory()
    service = factory.create_chat_service()
    try:
        turn = service.prepare_chat(
            current_user,
            body.message,
            conversation_id=body.conversation_id,
            mode=body.mode,
            attachments=[a.model_dump() for a in body.attachments],
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message)

    publisher = SSEEventPublisher(factory.config_manager.app_settings.tool_result_preview_chars)
    cancel_event = asyncio.Event()

    async def produce() -> None:
        try:
            await service.run_chat(turn, publisher, cancel_event)
        except Exception as e:  # noqa: BLE001 - request boundary; the client gets a terminal error
            logger.error("Chat request failed: %s", sanitize_for_logging(e), exc_info=True)
            if not cancel_event.is_set():
                await publisher.publish_error("An unexpected error occurred. Please try again.")
        finally:
            publisher.close()

    async def event_stream():
        factory.background.spawn(produce(), name="chat_stream")
        try:
            async for frame in publisher.stream():
                yield frame
        finally:
            # Set on disconnect as well as normal completion; a finished producer ignores it
            cancel_event.set()

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=SSE_HEADERS)


@router.get("/status")
async def provider_status(current_user: str = Depends(get_current_user)):
    """Which capabilities the user's stored credentials enable."""
    settings = _get_factory().settings_repository.get_effective(current_user)
    return {
        "openai": is_provider_available("openai", settings.get("openai_api_key")),
        "web_search": bool((settings.get("tavily_api_key") or "").strip()),
    }


@router.post("/parse-pdf")
def parse_pdf(body: ParsePDFRequest, current_user: str = Depends(get_current_user)):
    """Extract the text of a base64-encoded PDF for use as a chat attachment."""
    settings = _get_factory().config_manager.app_settings
    try:
        raw = decode_pdf_payload(body.data, settings.pdf_max_bytes)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    try:
        result = extract_pdf_text(raw, settings.pdf_text_max_chars)
    except PDFParseError as e:
        logger.warning("PDF parsing failed for %s: %s", sanitize_for_logging(current_user), sanitize_for_logging(e))
        raise HTTPException(status_code=500, detail=f"PDF parsing failed: {e}")
    return {"text": result.text, "pages": result.pages}


@router.post("/exec")
async def execute_code(body: ExecRequest, current_user: str = Depends(get_current_user)):
    """Relay a snippet to the external code execution service."""
    executor = _get_factory().create_code_executor()
    if executor is None:
        raise HTTPException(status_code=503, detail="Code execution is not configured")
    language = (body.language or "").strip().lower()
    try:
        return await executor.execute(body.code, language)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except CodeExecutionError as e:
        logger.warning("Code execution failed: %s", sanitize_for_logging(e))
        raise HTTPException(status_code=502, detail=e.message)
