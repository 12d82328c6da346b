"""Document lifecycle - upload, persist, index, delete.

Drives a document through ``uploading → uploaded → saving → generating →
ready`` (``failed`` on any unrecoverable collaborator error) and removes it
from the metadata, blob and vector stores on deletion. The three stores share
no transaction: each deletion step runs independently and failures are
reported per step, never rolled back.
"""

import inspect
import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from docchat.db.context import RequestContext
from docchat.db.repositories import DocumentRepository, MessageLog
from docchat.docs.indexer import DocumentIndexer, IndexingError
from docchat.docs.vector_index import VectorIndex
from docchat.documents.states import advance
from docchat.models.common import DeletionStep, DocumentStatus, Store
from docchat.models.documents import Document, StatusEvent
from docchat.models.outcomes import (
    Deleted,
    NotFound,
    PartialDeletion,
    Unauthenticated,
    UpstreamUnavailable,
)
from docchat.storage.blobs import BlobStore, blob_key
from docchat.utils.logging import StructuredEventLogger
from docchat.utils.metrics import PrometheusChatMetrics

logger = logging.getLogger(__name__)

StatusCallback = Callable[[StatusEvent], Awaitable[None] | None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class IncomingFile:
    """File bytes and metadata received from the owner."""

    name: str
    mime_type: str
    data: bytes

    @property
    def byte_size(self) -> int:
        return len(self.data)


@dataclass
class UploadSession:
    """In-flight upload; becomes a persisted Document at ``saving``."""

    document_id: uuid.UUID
    owner_id: str
    file: IncomingFile
    blob_key: str
    created_at: datetime
    status: DocumentStatus = DocumentStatus.uploading
    progress: float = 0.0
    events: list[StatusEvent] = field(default_factory=list)


class DocumentLifecycleManager:
    """Owns every status change of a document."""

    def __init__(
        self,
        documents: DocumentRepository,
        messages: MessageLog,
        blobs: BlobStore,
        vectors: VectorIndex,
        *,
        clock: Callable[[], datetime] = _utcnow,
        event_logger: StructuredEventLogger | None = None,
        metrics: PrometheusChatMetrics | None = None,
    ) -> None:
        self._documents = documents
        self._messages = messages
        self._blobs = blobs
        self._vectors = vectors
        self._indexer = DocumentIndexer(blobs, vectors)
        self._clock = clock
        self._events = event_logger or StructuredEventLogger()
        self._metrics = metrics or PrometheusChatMetrics()

    # --- status bookkeeping -------------------------------------------------

    async def _report(
        self,
        session: UploadSession,
        on_event: StatusCallback | None,
        progress: float | None = None,
        *,
        log: bool = True,
    ) -> None:
        event = StatusEvent(
            document_id=session.document_id, status=session.status, progress=progress
        )
        session.events.append(event)
        if log:
            self._events.log_transition(
                str(session.document_id), session.owner_id, session.status.value, progress
            )

        if on_event is not None:
            result = on_event(event)
            if inspect.isawaitable(result):
                await result

    async def _move(
        self,
        session: UploadSession,
        target: DocumentStatus,
        on_event: StatusCallback | None,
    ) -> None:
        session.status = advance(session.status, target)
        self._metrics.inc_transition(target.value)
        await self._report(session, on_event)

    def _upstream(self, which: Store, error: Exception) -> UpstreamUnavailable:
        self._metrics.inc_upstream_error(which.value)
        return UpstreamUnavailable(which=which, detail=f"{type(error).__name__}: {error}")

    async def _fail_document(self, document: Document, ctx: RequestContext) -> None:
        """Best-effort ``failed`` mark; the original error is what gets reported."""
        try:
            await self._documents.set_status(
                document.id, ctx, advance(document.status, DocumentStatus.failed)
            )
            self._metrics.inc_transition(DocumentStatus.failed.value)
            self._events.log_transition(str(document.id), ctx.owner_id, "failed")
        except Exception as e:
            logger.error(f"Could not mark document {document.id} as failed: {e}", exc_info=True)

    async def _set_status(
        self, document: Document, ctx: RequestContext, target: DocumentStatus
    ) -> Document:
        status = advance(document.status, target)
        updated = await self._documents.set_status(document.id, ctx, status)
        if updated is None:
            raise LookupError(f"document {document.id} disappeared during {status.value}")
        self._metrics.inc_transition(status.value)
        self._events.log_transition(str(document.id), ctx.owner_id, status.value)
        return updated

    # --- ingestion ----------------------------------------------------------

    async def begin_upload(
        self,
        ctx: RequestContext | None,
        file: IncomingFile,
        on_event: StatusCallback | None = None,
    ) -> UploadSession | Unauthenticated | UpstreamUnavailable:
        """Mint a document ID and stream the file to blob storage.

        Progress fractions in [0, 1] are reported through ``on_event`` while
        the status is ``uploading``.
        """
        if ctx is None:
            return Unauthenticated()

        document_id = uuid.uuid4()
        session = UploadSession(
            document_id=document_id,
            owner_id=ctx.owner_id,
            file=file,
            blob_key=blob_key(ctx.owner_id, document_id),
            created_at=self._clock(),
        )
        self._metrics.inc_transition(DocumentStatus.uploading.value)

        try:
            async for progress in self._blobs.put(session.blob_key, file.data):
                session.progress = max(session.progress, progress.fraction)
                await self._report(session, on_event, progress=session.progress)
        except Exception as e:
            logger.error(f"Blob upload failed for {document_id}: {e}", exc_info=True)
            await self._move(session, DocumentStatus.failed, on_event)
            return self._upstream(Store.blob, e)

        if session.progress < 1.0:
            logger.error(f"Blob upload for {document_id} ended at {session.progress:.0%}")
            await self._move(session, DocumentStatus.failed, on_event)
            return UpstreamUnavailable(which=Store.blob, detail="upload incomplete")

        return session

    async def on_upload_complete(
        self,
        session: UploadSession,
        on_event: StatusCallback | None = None,
    ) -> Document | UpstreamUnavailable:
        """Resolve the download reference and persist the document record.

        Ends in ``generating``: the record exists and indexing may start.
        """
        ctx = RequestContext(owner_id=session.owner_id)
        await self._move(session, DocumentStatus.uploaded, on_event)

        try:
            ref = await self._blobs.resolve(session.blob_key)
        except Exception as e:
            logger.error(f"Resolving blob for {session.document_id} failed: {e}", exc_info=True)
            await self._move(session, DocumentStatus.failed, on_event)
            return self._upstream(Store.blob, e)

        await self._move(session, DocumentStatus.saving, on_event)

        document = Document(
            id=session.document_id,
            owner_id=session.owner_id,
            name=session.file.name,
            byte_size=session.file.byte_size,
            mime_type=session.file.mime_type,
            blob_ref=ref.key,
            download_url=ref.download_url,
            status=DocumentStatus.saving,
            created_at=session.created_at,
        )

        try:
            await self._documents.create(document)
        except Exception as e:
            logger.error(f"Saving document {session.document_id} failed: {e}", exc_info=True)
            await self._move(session, DocumentStatus.failed, on_event)
            return self._upstream(Store.metadata, e)

        try:
            document = await self._set_status(document, ctx, DocumentStatus.generating)
        except Exception as e:
            logger.error(f"Marking {session.document_id} generating failed: {e}", exc_info=True)
            await self._move(session, DocumentStatus.failed, on_event)
            await self._fail_document(document, ctx)
            return self._upstream(Store.metadata, e)

        session.status = DocumentStatus.generating
        await self._report(session, on_event, log=False)
        return document

    async def index_document(
        self,
        ctx: RequestContext | None,
        document_id: uuid.UUID,
    ) -> Document | Unauthenticated | NotFound | UpstreamUnavailable:
        """Populate the document's vector namespace and mark it ready.

        A ``failed`` document re-enters ``generating`` first; there is no
        internal retry, the caller decides when to call again.
        """
        if ctx is None:
            return Unauthenticated()

        try:
            document = await self._documents.get(document_id, ctx)
        except Exception as e:
            logger.error(f"Loading document {document_id} failed: {e}", exc_info=True)
            return self._upstream(Store.metadata, e)

        if document is None:
            return NotFound(document_id=str(document_id))

        if document.status == DocumentStatus.ready:
            return document

        try:
            if document.status != DocumentStatus.generating:
                document = await self._set_status(document, ctx, DocumentStatus.generating)
        except Exception as e:
            logger.error(f"Re-entering generating for {document_id} failed: {e}", exc_info=True)
            return self._upstream(Store.metadata, e)

        try:
            await self._indexer.index(document)
        except IndexingError as e:
            logger.error(f"Indexing document {document_id} failed: {e}", exc_info=True)
            await self._fail_document(document, ctx)
            self._metrics.inc_upstream_error(e.which.value)
            return UpstreamUnavailable(which=e.which, detail=e.detail)

        try:
            return await self._set_status(document, ctx, DocumentStatus.ready)
        except Exception as e:
            logger.error(f"Marking {document_id} ready failed: {e}", exc_info=True)
            await self._fail_document(document, ctx)
            return self._upstream(Store.metadata, e)

    async def upload(
        self,
        ctx: RequestContext | None,
        file: IncomingFile,
        on_event: StatusCallback | None = None,
    ) -> Document | Unauthenticated | NotFound | UpstreamUnavailable:
        """Run the whole ingestion path: upload, persist, index."""
        session = await self.begin_upload(ctx, file, on_event)
        if not isinstance(session, UploadSession):
            return session

        document = await self.on_upload_complete(session, on_event)
        if not isinstance(document, Document):
            return document

        indexed = await self.index_document(ctx, document.id)

        # index_document logs its own transitions; only mirror them to the session
        if isinstance(indexed, Document):
            session.status = indexed.status
            await self._report(session, on_event, log=False)
        elif isinstance(indexed, UpstreamUnavailable):
            session.status = DocumentStatus.failed
            await self._report(session, on_event, log=False)
        return indexed

    # --- reads --------------------------------------------------------------

    async def get_document(
        self, ctx: RequestContext | None, document_id: uuid.UUID
    ) -> Document | Unauthenticated | NotFound | UpstreamUnavailable:
        """Get one of the owner's documents."""
        if ctx is None:
            return Unauthenticated()

        try:
            document = await self._documents.get(document_id, ctx)
        except Exception as e:
            logger.error(f"Loading document {document_id} failed: {e}", exc_info=True)
            return self._upstream(Store.metadata, e)

        if document is None:
            return NotFound(document_id=str(document_id))
        return document

    async def list_documents(
        self, ctx: RequestContext | None
    ) -> list[Document] | Unauthenticated | UpstreamUnavailable:
        """List the owner's documents, newest first."""
        if ctx is None:
            return Unauthenticated()

        try:
            return await self._documents.list_for_owner(ctx)
        except Exception as e:
            logger.error(f"Listing documents for {ctx.owner_id} failed: {e}", exc_info=True)
            return self._upstream(Store.metadata, e)

    # --- deletion -----------------------------------------------------------

    async def delete_document(
        self,
        ctx: RequestContext | None,
        document_id: uuid.UUID,
        steps: Iterable[DeletionStep] | None = None,
    ) -> Deleted | Unauthenticated | NotFound | PartialDeletion:
        """Remove a document's record, blob and vector namespace.

        Every requested step is attempted even if an earlier one fails, and
        completed steps are not rolled back. Pass ``steps`` to retry only the
        steps a previous call reported as failed; every step is idempotent and
        scoped to the owner.
        """
        if ctx is None:
            return Unauthenticated()

        wanted = set(DeletionStep) if steps is None else set(steps)
        requested = [step for step in DeletionStep if step in wanted]

        if DeletionStep.metadata in requested:
            try:
                existing = await self._documents.get(document_id, ctx)
            except Exception as e:
                # The metadata step below will surface the outage
                logger.warning(f"Ownership lookup for {document_id} failed: {e}")
            else:
                if existing is None:
                    return NotFound(document_id=str(document_id))

        completed: list[DeletionStep] = []
        failed: list[DeletionStep] = []

        for step in requested:
            try:
                await self._run_deletion_step(step, ctx, document_id)
            except Exception as e:
                failed.append(step)
                self._metrics.inc_deletion_failure(step.value)
                self._events.log_deletion_step(
                    str(document_id), ctx.owner_id, step.value, False, f"{type(e).__name__}: {e}"
                )
                logger.error(f"Deletion step {step.value} for {document_id} failed", exc_info=True)
            else:
                completed.append(step)
                self._events.log_deletion_step(str(document_id), ctx.owner_id, step.value, True)

        if failed:
            return PartialDeletion(failed_steps=tuple(failed), completed_steps=tuple(completed))
        return Deleted(document_id=str(document_id), completed_steps=tuple(completed))

    async def _run_deletion_step(
        self, step: DeletionStep, ctx: RequestContext, document_id: uuid.UUID
    ) -> None:
        if step == DeletionStep.metadata:
            await self._messages.delete_for_document(document_id, ctx)
            await self._documents.delete(document_id, ctx)
        elif step == DeletionStep.blob:
            await self._blobs.delete(blob_key(ctx.owner_id, document_id))
        elif step == DeletionStep.vector:
            await self._vectors.delete_namespace(document_id, ctx.owner_id)
