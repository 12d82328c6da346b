"""Ownership-safe query helpers."""

from uuid import UUID

from sqlalchemy import Select, select

from docchat.db.context import RequestContext
from docchat.db.models import ChatMessage, Document


def select_documents(ctx: RequestContext) -> Select[tuple[Document]]:
    """Select document rows with owner scoping enforced.

    Args:
        ctx: Request context with owner_id

    Returns:
        Select filtered by owner_id
    """
    return select(Document).where(Document.owner_id == ctx.owner_id)


def select_chat_log(document_id: UUID, ctx: RequestContext) -> Select[tuple[ChatMessage]]:
    """Select a document's chat messages in log order with owner scoping enforced.

    Args:
        document_id: Document ID
        ctx: Request context with owner_id

    Returns:
        Select ordered by created_at, then insertion sequence
    """
    return (
        select(ChatMessage)
        .where(ChatMessage.document_id == document_id, ChatMessage.owner_id == ctx.owner_id)
        .order_by(ChatMessage.created_at, ChatMessage.seq)
    )
