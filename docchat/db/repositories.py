"""Repository protocol interfaces for data access."""

from collections.abc import AsyncIterator
from typing import Protocol
from uuid import UUID

from docchat.db.context import RequestContext
from docchat.models.chat import ChatMessage
from docchat.models.common import DocumentStatus, Role
from docchat.models.documents import Document
from docchat.models.plans import Plan


class PlaceholderNotPersistableError(ValueError):
    """Raised when a client-only placeholder message is appended to a log."""


class DocumentRepository(Protocol):
    """Repository for document metadata."""

    async def create(self, document: Document) -> Document:
        """Persist a new document record.

        Args:
            document: Fully populated document (id minted by the caller)

        Returns:
            The stored document
        """
        ...

    async def get(self, document_id: UUID, ctx: RequestContext) -> Document | None:
        """Get document by ID.

        Args:
            document_id: Document ID
            ctx: Request context (enforces ownership)

        Returns:
            Document or None if not found
        """
        ...

    async def list_for_owner(self, ctx: RequestContext) -> list[Document]:
        """List the owner's documents, newest first."""
        ...

    async def set_status(
        self, document_id: UUID, ctx: RequestContext, status: DocumentStatus
    ) -> Document | None:
        """Update the lifecycle status of a document.

        Returns:
            Updated document or None if not found
        """
        ...

    async def delete(self, document_id: UUID, ctx: RequestContext) -> bool:
        """Delete the document record.

        Idempotent: deleting a missing record is not an error.

        Returns:
            True if a record was removed
        """
        ...


class MessageLog(Protocol):
    """Append-only, per-document ordered chat log."""

    async def append(self, message: ChatMessage) -> ChatMessage:
        """Append a message and return it with ``id`` and ``seq`` assigned.

        Raises:
            PlaceholderNotPersistableError: If ``message.role`` is placeholder
        """
        ...

    async def read_ordered(self, document_id: UUID, ctx: RequestContext) -> list[ChatMessage]:
        """Read the log ordered by ``created_at`` then ``seq``."""
        ...

    async def count_by_role(self, document_id: UUID, ctx: RequestContext, role: Role) -> int:
        """Count persisted messages of a role for a document."""
        ...

    def subscribe(
        self, document_id: UUID, ctx: RequestContext
    ) -> AsyncIterator[list[ChatMessage]]:
        """Yield the current snapshot, then a fresh snapshot after every append."""
        ...

    async def delete_for_document(self, document_id: UUID, ctx: RequestContext) -> int:
        """Bulk remove a document's messages.

        Returns:
            Number of removed messages
        """
        ...


class PlanRepository(Protocol):
    """Read-only access to the billing collaborator's plan flag."""

    async def get_plan(self, owner_id: str) -> Plan:
        """Get plan for owner (no record -> no active membership)."""
        ...


def ensure_persistable(message: ChatMessage) -> None:
    """Reject roles that must never reach a persisted log."""
    if message.role == Role.placeholder:
        raise PlaceholderNotPersistableError("placeholder messages are client-only")
