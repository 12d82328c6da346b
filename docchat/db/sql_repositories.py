"""SQL implementations of repository interfaces."""

import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docchat.db.context import RequestContext
from docchat.db.models import ChatMessage as ChatMessageDB
from docchat.db.models import Document as DocumentDB
from docchat.db.models import Membership
from docchat.db.notify import ChatNotifier, ChatSubscription, PollingSubscription
from docchat.db.queries import select_chat_log, select_documents
from docchat.db.repositories import ensure_persistable
from docchat.models.chat import ChatMessage
from docchat.models.common import DocumentStatus, Role
from docchat.models.documents import Document
from docchat.models.plans import Plan


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on round trip
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_document(row: DocumentDB) -> Document:
    return Document(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        byte_size=row.byte_size,
        mime_type=row.mime_type,
        blob_ref=row.blob_ref,
        download_url=row.download_url,
        status=DocumentStatus(row.status),
        created_at=_aware(row.created_at),
    )


def _to_message(row: ChatMessageDB) -> ChatMessage:
    return ChatMessage(
        id=row.id,
        document_id=row.document_id,
        owner_id=row.owner_id,
        role=Role(row.role),
        text=row.text,
        created_at=_aware(row.created_at),
        seq=row.seq,
    )


class SqlDocumentRepository:
    """SQL implementation of DocumentRepository."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, document: Document) -> Document:
        """Persist a new document record."""
        row = DocumentDB(
            id=document.id,
            owner_id=document.owner_id,
            name=document.name,
            byte_size=document.byte_size,
            mime_type=document.mime_type,
            blob_ref=document.blob_ref,
            download_url=document.download_url,
            status=document.status.value,
            created_at=document.created_at,
        )

        async with self._session_factory() as session:
            session.add(row)
            await session.commit()

        return document

    async def get(self, document_id: uuid.UUID, ctx: RequestContext) -> Document | None:
        """Get document by ID."""
        async with self._session_factory() as session:
            result = await session.execute(
                select_documents(ctx).where(DocumentDB.id == document_id)
            )
            row = result.scalar_one_or_none()

        if row is None:
            return None

        return _to_document(row)

    async def list_for_owner(self, ctx: RequestContext) -> list[Document]:
        """List the owner's documents, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select_documents(ctx).order_by(DocumentDB.created_at.desc())
            )
            rows = result.scalars().all()

        return [_to_document(row) for row in rows]

    async def set_status(
        self, document_id: uuid.UUID, ctx: RequestContext, status: DocumentStatus
    ) -> Document | None:
        """Update the lifecycle status of a document."""
        async with self._session_factory() as session:
            result = await session.execute(
                select_documents(ctx).where(DocumentDB.id == document_id)
            )
            row = result.scalar_one_or_none()

            if row is None:
                return None

            row.status = status.value
            updated = _to_document(row)
            await session.commit()

        return updated

    async def delete(self, document_id: uuid.UUID, ctx: RequestContext) -> bool:
        """Delete the document record."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(DocumentDB).where(
                    DocumentDB.id == document_id, DocumentDB.owner_id == ctx.owner_id
                )
            )
            await session.commit()

        return result.rowcount > 0


class SqlMessageLog:
    """SQL implementation of MessageLog.

    Subscribers wake on notifier signals when a notifier is configured,
    otherwise they poll every ``poll_interval_ms``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        notifier: ChatNotifier | None = None,
        poll_interval_ms: int = 500,
    ) -> None:
        self._session_factory = session_factory
        self._notifier = notifier
        self._poll_interval = poll_interval_ms / 1000

    async def append(self, message: ChatMessage) -> ChatMessage:
        """Append a message and signal subscribers."""
        ensure_persistable(message)

        row = ChatMessageDB(
            id=uuid.uuid4(),
            document_id=message.document_id,
            owner_id=message.owner_id,
            role=message.role.value,
            text=message.text,
            created_at=message.created_at,
        )

        async with self._session_factory() as session:
            session.add(row)
            await session.flush()
            stored = message.model_copy(update={"id": row.id, "seq": row.seq})
            await session.commit()

        if self._notifier is not None:
            await self._notifier.publish(message.document_id)

        return stored

    async def read_ordered(
        self, document_id: uuid.UUID, ctx: RequestContext
    ) -> list[ChatMessage]:
        """Read the log in creation order."""
        async with self._session_factory() as session:
            result = await session.execute(select_chat_log(document_id, ctx))
            rows = result.scalars().all()

        return [_to_message(row) for row in rows]

    async def count_by_role(
        self, document_id: uuid.UUID, ctx: RequestContext, role: Role
    ) -> int:
        """Count persisted messages of a role."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(ChatMessageDB)
                .where(
                    ChatMessageDB.document_id == document_id,
                    ChatMessageDB.owner_id == ctx.owner_id,
                    ChatMessageDB.role == role.value,
                )
            )
            return int(result.scalar_one())

    async def subscribe(
        self, document_id: uuid.UUID, ctx: RequestContext
    ) -> AsyncIterator[list[ChatMessage]]:
        """Yield the current snapshot, then each changed snapshot.

        The wakeup source is opened before the first read, so an append that
        lands while the first snapshot is in flight still wakes this subscriber.
        """
        wakeups = await self._open_wakeups(document_id)
        try:
            snapshot = await self.read_ordered(document_id, ctx)
            last_seen = [m.seq for m in snapshot]
            yield snapshot

            async for _ in wakeups:
                snapshot = await self.read_ordered(document_id, ctx)
                seqs = [m.seq for m in snapshot]
                if seqs != last_seen:
                    last_seen = seqs
                    yield snapshot
        finally:
            await wakeups.aclose()

    async def _open_wakeups(self, document_id: uuid.UUID) -> ChatSubscription:
        if self._notifier is not None:
            return await self._notifier.subscribe(document_id)
        return PollingSubscription(self._poll_interval)

    async def delete_for_document(self, document_id: uuid.UUID, ctx: RequestContext) -> int:
        """Bulk remove the owner's messages for a document."""
        async with self._session_factory() as session:
            result = await session.execute(
                delete(ChatMessageDB).where(
                    ChatMessageDB.document_id == document_id,
                    ChatMessageDB.owner_id == ctx.owner_id,
                )
            )
            await session.commit()

        return result.rowcount


class SqlPlanRepository:
    """SQL implementation of PlanRepository backed by the membership table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_plan(self, owner_id: str) -> Plan:
        """Get plan for owner."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(Membership).where(Membership.owner_id == owner_id)
            )
            row = result.scalar_one_or_none()

        return Plan(
            owner_id=owner_id,
            has_active_membership=bool(row and row.has_active_membership),
        )
