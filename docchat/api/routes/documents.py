"""Document endpoints - upload, list, get, re-index, delete."""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from docchat.api.auth import get_current_context
from docchat.api.errors import is_failure, to_http_exception
from docchat.config import Settings, get_settings
from docchat.db.context import RequestContext
from docchat.documents.lifecycle import IncomingFile
from docchat.models.common import DeletionStep, DocumentStatus
from docchat.models.documents import Document, StatusEvent
from docchat.models.outcomes import PartialDeletion, UpstreamUnavailable
from docchat.services import Services, get_services

router = APIRouter(prefix="/documents", tags=["documents"])
logger = logging.getLogger(__name__)


class UploadResponse(BaseModel):
    """Response for POST /documents."""

    document_id: uuid.UUID
    status: DocumentStatus
    document: Document | None = None
    events: list[StatusEvent]
    indexing_error: str | None = None


class DocumentListResponse(BaseModel):
    """Response for GET /documents."""

    documents: list[Document]


class DeleteResponse(BaseModel):
    """Response for DELETE /documents/{document_id}."""

    document_id: uuid.UUID
    completed_steps: list[DeletionStep]
    failed_steps: list[DeletionStep] = []


@router.post("", response_model=UploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: Annotated[Services, Depends(get_services)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> UploadResponse | JSONResponse:
    """Upload a file, persist its metadata and index it.

    Returns:
        201 with the ready document; 202 when the document was saved but
        indexing failed (retry with POST /documents/{id}/index)

    Raises:
        HTTPException: 413 if the file is too large, 503 if upload or save failed
    """
    data = await file.read()
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.max_upload_bytes} bytes",
        )

    incoming = IncomingFile(
        name=file.filename or "untitled",
        mime_type=file.content_type or "application/octet-stream",
        data=data,
    )

    events: list[StatusEvent] = []
    result = await services.lifecycle.upload(ctx, incoming, on_event=events.append)

    if isinstance(result, Document):
        logger.info(f"[POST /documents] document_id={result.id} ready ({result.byte_size} bytes)")
        return UploadResponse(
            document_id=result.id, status=result.status, document=result, events=events
        )

    reached_generating = any(e.status == DocumentStatus.generating for e in events)
    if isinstance(result, UpstreamUnavailable) and reached_generating:
        document_id = events[-1].document_id
        logger.warning(f"[POST /documents] document_id={document_id} saved, indexing failed")
        body = UploadResponse(
            document_id=document_id,
            status=DocumentStatus.failed,
            events=events,
            indexing_error=result.which.value,
        )
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED, content=body.model_dump(mode="json")
        )

    raise to_http_exception(result)


@router.get("", response_model=DocumentListResponse)
async def list_documents(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: Annotated[Services, Depends(get_services)],
) -> DocumentListResponse:
    """List the current owner's documents, newest first."""
    result = await services.lifecycle.list_documents(ctx)
    if is_failure(result):
        raise to_http_exception(result)  # type: ignore[arg-type]
    return DocumentListResponse(documents=result)  # type: ignore[arg-type]


@router.get("/{document_id}", response_model=Document)
async def get_document(
    document_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: Annotated[Services, Depends(get_services)],
) -> Document:
    """Get one document's metadata and status."""
    result = await services.lifecycle.get_document(ctx, document_id)
    if not isinstance(result, Document):
        raise to_http_exception(result)
    return result


@router.post("/{document_id}/index", response_model=Document)
async def index_document(
    document_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: Annotated[Services, Depends(get_services)],
) -> Document:
    """(Re-)index a document; used to retry after a failed indexing run."""
    result = await services.lifecycle.index_document(ctx, document_id)
    if not isinstance(result, Document):
        raise to_http_exception(result)
    return result


@router.delete("/{document_id}", response_model=DeleteResponse)
async def delete_document(
    document_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    services: Annotated[Services, Depends(get_services)],
    step: Annotated[list[DeletionStep] | None, Query()] = None,
) -> DeleteResponse | JSONResponse:
    """Delete a document's record, blob and vector namespace.

    Pass ``step`` (repeatable) to retry only the steps that failed before.

    Returns:
        200 when every requested step succeeded, 207 with the failed steps otherwise
    """
    result = await services.lifecycle.delete_document(ctx, document_id, steps=step)

    if isinstance(result, PartialDeletion):
        body = DeleteResponse(
            document_id=document_id,
            completed_steps=list(result.completed_steps),
            failed_steps=list(result.failed_steps),
        )
        return JSONResponse(
            status_code=status.HTTP_207_MULTI_STATUS, content=body.model_dump(mode="json")
        )

    if is_failure(result):
        raise to_http_exception(result)  # type: ignore[arg-type]

    return DeleteResponse(document_id=document_id, completed_steps=list(result.completed_steps))  # type: ignore[union-attr]
