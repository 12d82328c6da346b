"""Chat endpoints - ask, read the ordered log, follow it over SSE."""

import json
import logging
import uuid
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from docchat.api.auth import get_current_context
from docchat.api.errors import to_http_exception
from docchat.db.context import RequestContext
from docchat.models.chat import ChatMessage
from docchat.models.documents import Document
from docchat.models.outcomes import Asked
from docchat.services import Services, get_services

router = APIRouter(prefix="/documents/{document_id}/chat", tags=["chat"])
logger = logging.getLogger(__name__)


class AskRequest(BaseModel):
    """Request body for POST /documents/{id}/chat."""

    question: str = Field(..., min_length=1, max_length=4000)


class AnswerFailure(BaseModel):
    upstream: str
    timed_out: bool = False


class AskResponse(BaseModel):
    """Response for POST /documents/{id}/chat.

    ``ai_message`` holds the answer, or the apology recorded when generation
    failed; ``answer_failure`` is set in the latter case.
    """

    human_message: ChatMessage
    ai_message: ChatMessage | None
    answered: bool
    answer_failure: AnswerFailure | None = None


class ChatLogResponse(BaseModel):
    document_id: uuid.UUID
    messages: list[ChatMessage]


async def _require_document(
    services: Services, ctx: RequestContext, document_id: uuid.UUID
) -> Document:
    result = await services.lifecycle.get_document(ctx, document_id)
    if not isinstance(result, Document):
        raise to_http_exception(result)
    return result


@router.post("", response_model=AskResponse, status_code=status.HTTP_201_CREATED)
async def ask_question(
    document_id: uuid.UUID,
    request: AskRequest,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: Annotated[Services, Depends(get_services)],
) -> AskResponse:
    """Ask a question about a document.

    The question is recorded before generation starts, so it stays in the log
    even when the answer cannot be produced.

    Raises:
        HTTPException: 403 when the plan's question limit is reached,
            404 if the document doesn't exist, 503/504 if a store is down
            before the question could be recorded
    """
    result = await services.pipeline.ask(ctx, document_id, request.question)

    if not isinstance(result, Asked):
        raise to_http_exception(result)

    failure = None
    if result.answer_failure is not None:
        failure = AnswerFailure(
            upstream=result.answer_failure.which.value,
            timed_out=result.answer_failure.timed_out,
        )

    return AskResponse(
        human_message=result.human_message,
        ai_message=result.ai_message,
        answered=result.answered,
        answer_failure=failure,
    )


@router.get("", response_model=ChatLogResponse)
async def read_chat(
    document_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: Annotated[Services, Depends(get_services)],
) -> ChatLogResponse:
    """Read a document's chat log in conversation order."""
    result = await services.pipeline.read_chat(ctx, document_id)
    if not isinstance(result, list):
        raise to_http_exception(result)
    return ChatLogResponse(document_id=document_id, messages=result)


@router.get("/stream")
async def stream_chat(
    document_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: Annotated[Services, Depends(get_services)],
) -> StreamingResponse:
    """Stream chat log snapshots via Server-Sent Events.

    Emits one ``snapshot`` event with the full ordered log on connect and
    another whenever a message is appended. If the log becomes unreachable
    an ``error`` event is emitted and the stream ends; clients keep the
    last snapshot they received.
    """
    await _require_document(services, ctx, document_id)

    async def event_generator() -> AsyncGenerator[str, None]:
        """Generate SSE events."""
        snapshots = services.messages.subscribe(document_id, ctx)
        try:
            async for snapshot in snapshots:
                payload = ChatLogResponse(document_id=document_id, messages=snapshot)
                yield "event: snapshot\n"
                yield f"data: {payload.model_dump_json()}\n\n"
        except Exception as e:
            logger.error(f"Chat stream for {document_id} failed: {e}", exc_info=True)
            yield "event: error\n"
            yield f"data: {json.dumps({'upstream': 'log', 'detail': type(e).__name__})}\n\n"
        finally:
            await snapshots.aclose()  # type: ignore[attr-defined]

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
    )
