"""In-memory implementations of repository interfaces."""

import asyncio
import uuid
from collections.abc import AsyncIterator

from docchat.db.context import RequestContext
from docchat.db.repositories import ensure_persistable
from docchat.models.chat import ChatMessage
from docchat.models.common import DocumentStatus, Role
from docchat.models.documents import Document
from docchat.models.plans import Plan


def _log_order(message: ChatMessage) -> tuple:
    return (message.created_at, message.seq or 0)


class InMemoryDocumentRepository:
    """In-memory implementation of DocumentRepository."""

    def __init__(self) -> None:
        self._documents: dict[uuid.UUID, Document] = {}

    async def create(self, document: Document) -> Document:
        """Persist a new document record."""
        self._documents[document.id] = document
        return document

    async def get(self, document_id: uuid.UUID, ctx: RequestContext) -> Document | None:
        """Get document by ID."""
        document = self._documents.get(document_id)

        if document is None:
            return None

        # Enforce ownership
        if document.owner_id != ctx.owner_id:
            return None

        return document

    async def list_for_owner(self, ctx: RequestContext) -> list[Document]:
        """List the owner's documents, newest first."""
        results = [d for d in self._documents.values() if d.owner_id == ctx.owner_id]
        results.sort(key=lambda d: d.created_at, reverse=True)
        return results

    async def set_status(
        self, document_id: uuid.UUID, ctx: RequestContext, status: DocumentStatus
    ) -> Document | None:
        """Update the lifecycle status of a document."""
        document = await self.get(document_id, ctx)

        if document is None:
            return None

        updated = document.model_copy(update={"status": status})
        self._documents[document_id] = updated
        return updated

    async def delete(self, document_id: uuid.UUID, ctx: RequestContext) -> bool:
        """Delete the document record."""
        if await self.get(document_id, ctx) is None:
            return False

        del self._documents[document_id]
        return True


class InMemoryMessageLog:
    """In-memory implementation of MessageLog with push subscriptions."""

    def __init__(self) -> None:
        self._messages: dict[uuid.UUID, list[ChatMessage]] = {}
        self._next_seq = 1
        self._subscribers: dict[uuid.UUID, list[asyncio.Queue[None]]] = {}

    async def append(self, message: ChatMessage) -> ChatMessage:
        """Append a message and notify subscribers."""
        ensure_persistable(message)

        stored = message.model_copy(update={"id": uuid.uuid4(), "seq": self._next_seq})
        self._next_seq += 1

        log = self._messages.setdefault(message.document_id, [])
        log.append(stored)
        # Stable sort keeps insertion order for equal timestamps
        log.sort(key=_log_order)

        for queue in self._subscribers.get(message.document_id, []):
            queue.put_nowait(None)

        return stored

    async def read_ordered(
        self, document_id: uuid.UUID, ctx: RequestContext
    ) -> list[ChatMessage]:
        """Read the log in creation order."""
        return [
            m for m in self._messages.get(document_id, []) if m.owner_id == ctx.owner_id
        ]

    async def count_by_role(
        self, document_id: uuid.UUID, ctx: RequestContext, role: Role
    ) -> int:
        """Count persisted messages of a role."""
        return sum(1 for m in await self.read_ordered(document_id, ctx) if m.role == role)

    async def subscribe(
        self, document_id: uuid.UUID, ctx: RequestContext
    ) -> AsyncIterator[list[ChatMessage]]:
        """Yield the current snapshot, then one per append."""
        queue: asyncio.Queue[None] = asyncio.Queue()
        self._subscribers.setdefault(document_id, []).append(queue)

        try:
            yield await self.read_ordered(document_id, ctx)
            while True:
                await queue.get()
                yield await self.read_ordered(document_id, ctx)
        finally:
            self._subscribers[document_id].remove(queue)

    async def delete_for_document(self, document_id: uuid.UUID, ctx: RequestContext) -> int:
        """Bulk remove the owner's messages for a document."""
        log = self._messages.get(document_id, [])
        kept = [m for m in log if m.owner_id != ctx.owner_id]
        removed = len(log) - len(kept)

        if kept:
            self._messages[document_id] = kept
        else:
            self._messages.pop(document_id, None)

        return removed


class InMemoryPlanRepository:
    """In-memory implementation of PlanRepository."""

    def __init__(self, memberships: dict[str, bool] | None = None) -> None:
        self._memberships: dict[str, bool] = dict(memberships or {})

    def set_membership(self, owner_id: str, active: bool) -> None:
        """Mirror a billing change (test and seeding helper)."""
        self._memberships[owner_id] = active

    async def get_plan(self, owner_id: str) -> Plan:
        """Get plan for owner."""
        return Plan(
            owner_id=owner_id,
            has_active_membership=self._memberships.get(owner_id, False),
        )
