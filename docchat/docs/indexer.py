"""Document indexing - blob → text → vector namespace."""

import logging

from docchat.docs.extract import extract_text
from docchat.docs.vector_index import VectorIndex
from docchat.models.common import Store
from docchat.models.documents import Document
from docchat.storage.blobs import BlobStore

logger = logging.getLogger(__name__)


class IndexingError(Exception):
    """Indexing failed in one collaborator."""

    def __init__(self, which: Store, detail: str) -> None:
        super().__init__(f"{which.value}: {detail}")
        self.which = which
        self.detail = detail


class DocumentIndexer:
    """Reads a document's blob and populates its vector namespace."""

    def __init__(self, blobs: BlobStore, vectors: VectorIndex) -> None:
        self._blobs = blobs
        self._vectors = vectors

    async def index(self, document: Document) -> int:
        """Index a persisted document.

        Args:
            document: Document whose blob has been uploaded

        Returns:
            Number of chunks stored

        Raises:
            IndexingError: If reading the blob or writing vectors fails
        """
        try:
            data = await self._blobs.get(document.blob_ref)
        except Exception as e:
            raise IndexingError(Store.blob, f"{type(e).__name__}: {e}") from e

        try:
            text = extract_text(data, document.mime_type)
        except Exception as e:
            # Unreadable content is reported against the indexing step
            raise IndexingError(Store.vector, f"text extraction failed: {e}") from e

        try:
            chunk_count = await self._vectors.index(document.id, document.owner_id, text)
        except Exception as e:
            raise IndexingError(Store.vector, f"{type(e).__name__}: {e}") from e

        logger.info(f"Indexed document {document.id}: {chunk_count} chunks")
        return chunk_count
