"""Per-document vector namespaces for retrieval.

A namespace is the set of chunk vectors tagged with one document ID. All
namespaces share a single Qdrant collection and are separated by payload
filters.
"""

import asyncio
import logging
import math
import uuid
from dataclasses import dataclass
from typing import Protocol

from qdrant_client import AsyncQdrantClient, models

from docchat.docs.chunker import chunk_text
from docchat.llm.embeddings import Embedder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChunkMatch:
    """Retrieved chunk with similarity score."""

    order: int
    text: str
    score: float


class VectorIndex(Protocol):
    """Vector index collaborator."""

    async def index(self, document_id: uuid.UUID, owner_id: str, text: str) -> int:
        """Replace the document's namespace with chunks of ``text``.

        Returns:
            Number of chunks stored
        """
        ...

    async def search(
        self, document_id: uuid.UUID, query: str, limit: int = 4
    ) -> list[ChunkMatch]:
        """Return the best matching chunks within the document's namespace."""
        ...

    async def count(self, document_id: uuid.UUID) -> int:
        """Number of chunks stored in the document's namespace."""
        ...

    async def delete_namespace(self, document_id: uuid.UUID, owner_id: str) -> None:
        """Remove the owner's chunks for a document. Idempotent."""
        ...


def point_id(document_id: uuid.UUID, order: int) -> str:
    """Stable point ID so re-indexing overwrites instead of duplicating."""
    return str(uuid.uuid5(document_id, str(order)))


def _cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


@dataclass
class _StoredChunk:
    owner_id: str
    order: int
    text: str
    vector: list[float]


class InMemoryVectorIndex:
    """In-memory implementation of VectorIndex."""

    def __init__(
        self, embedder: Embedder, *, max_chars: int = 1000, overlap_chars: int = 200
    ) -> None:
        self._embedder = embedder
        self._max_chars = max_chars
        self._overlap_chars = overlap_chars
        self._namespaces: dict[uuid.UUID, list[_StoredChunk]] = {}

    async def index(self, document_id: uuid.UUID, owner_id: str, text: str) -> int:
        """Chunk, embed and store text."""
        chunks = chunk_text(text, max_chars=self._max_chars, overlap_chars=self._overlap_chars)
        vectors = await self._embedder.embed(chunks)

        self._namespaces[document_id] = [
            _StoredChunk(owner_id=owner_id, order=order, text=chunk, vector=vector)
            for order, (chunk, vector) in enumerate(zip(chunks, vectors))
        ]
        return len(chunks)

    async def search(
        self, document_id: uuid.UUID, query: str, limit: int = 4
    ) -> list[ChunkMatch]:
        """Rank chunks by cosine similarity."""
        stored = self._namespaces.get(document_id, [])
        if not stored:
            return []

        [query_vector] = await self._embedder.embed([query])
        matches = [
            ChunkMatch(order=c.order, text=c.text, score=_cosine(query_vector, c.vector))
            for c in stored
        ]
        matches.sort(key=lambda m: (-m.score, m.order))
        return matches[:limit]

    async def count(self, document_id: uuid.UUID) -> int:
        """Number of stored chunks."""
        return len(self._namespaces.get(document_id, []))

    async def delete_namespace(self, document_id: uuid.UUID, owner_id: str) -> None:
        """Remove the owner's chunks."""
        kept = [c for c in self._namespaces.get(document_id, []) if c.owner_id != owner_id]
        if kept:
            self._namespaces[document_id] = kept
        else:
            self._namespaces.pop(document_id, None)


class QdrantVectorIndex:
    """Qdrant implementation of VectorIndex."""

    def __init__(
        self,
        client: AsyncQdrantClient,
        collection_name: str,
        embedder: Embedder,
        *,
        max_chars: int = 1000,
        overlap_chars: int = 200,
    ) -> None:
        """Initialize index.

        Args:
            client: Shared async Qdrant client
            collection_name: Collection holding every namespace
            embedder: Embedder whose dimension matches the collection
            max_chars: Chunk size
            overlap_chars: Chunk overlap
        """
        self._client = client
        self._collection_name = collection_name
        self._embedder = embedder
        self._max_chars = max_chars
        self._overlap_chars = overlap_chars
        self._ready = False
        self._ready_lock = asyncio.Lock()

    @property
    def collection_name(self) -> str:
        return self._collection_name

    async def ensure_collection(self) -> None:
        """Create the collection on first use."""
        if self._ready:
            return

        async with self._ready_lock:
            if self._ready:
                return

            if not await self._client.collection_exists(self._collection_name):
                logger.info(f"Creating Qdrant collection '{self._collection_name}'")
                await self._client.create_collection(
                    collection_name=self._collection_name,
                    vectors_config=models.VectorParams(
                        size=self._embedder.dimension,
                        distance=models.Distance.COSINE,
                    ),
                )
                await self._client.create_payload_index(
                    collection_name=self._collection_name,
                    field_name="namespace",
                    field_schema=models.PayloadSchemaType.KEYWORD,
                )

            self._ready = True

    @staticmethod
    def _namespace_filter(document_id: uuid.UUID, owner_id: str | None = None) -> models.Filter:
        conditions = [
            models.FieldCondition(
                key="namespace", match=models.MatchValue(value=str(document_id))
            )
        ]
        if owner_id is not None:
            conditions.append(
                models.FieldCondition(key="owner_id", match=models.MatchValue(value=owner_id))
            )
        return models.Filter(must=conditions)

    async def index(self, document_id: uuid.UUID, owner_id: str, text: str) -> int:
        """Chunk, embed and upsert text, replacing the previous namespace."""
        await self.ensure_collection()

        chunks = chunk_text(text, max_chars=self._max_chars, overlap_chars=self._overlap_chars)
        vectors = await self._embedder.embed(chunks)

        await self.delete_namespace(document_id, owner_id)

        if not chunks:
            logger.warning(f"Document {document_id} produced no text chunks")
            return 0

        points = [
            models.PointStruct(
                id=point_id(document_id, order),
                vector=vector,
                payload={
                    "namespace": str(document_id),
                    "owner_id": owner_id,
                    "order": order,
                    "text": chunk,
                },
            )
            for order, (chunk, vector) in enumerate(zip(chunks, vectors))
        ]
        await self._client.upsert(
            collection_name=self._collection_name, points=points, wait=True
        )
        return len(points)

    async def search(
        self, document_id: uuid.UUID, query: str, limit: int = 4
    ) -> list[ChunkMatch]:
        """Query the namespace by vector similarity."""
        await self.ensure_collection()

        [query_vector] = await self._embedder.embed([query])
        response = await self._client.query_points(
            collection_name=self._collection_name,
            query=query_vector,
            query_filter=self._namespace_filter(document_id),
            limit=limit,
            with_payload=True,
        )

        matches: list[ChunkMatch] = []
        for point in response.points:
            payload = point.payload or {}
            matches.append(
                ChunkMatch(
                    order=int(payload.get("order", 0)),
                    text=str(payload.get("text", "")),
                    score=point.score,
                )
            )
        return matches

    async def count(self, document_id: uuid.UUID) -> int:
        """Exact number of points in the namespace."""
        await self.ensure_collection()

        result = await self._client.count(
            collection_name=self._collection_name,
            count_filter=self._namespace_filter(document_id),
            exact=True,
        )
        return result.count

    async def delete_namespace(self, document_id: uuid.UUID, owner_id: str) -> None:
        """Delete the owner's points for a document."""
        await self.ensure_collection()

        await self._client.delete(
            collection_name=self._collection_name,
            points_selector=models.FilterSelector(
                filter=self._namespace_filter(document_id, owner_id)
            ),
            wait=True,
        )
