"""Integration tests for the Qdrant vector index (local in-memory Qdrant)."""

import uuid
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from qdrant_client import AsyncQdrantClient

from docchat.docs.vector_index import QdrantVectorIndex
from docchat.llm.embeddings import HashingEmbedder

TEXT = (
    "Revenue grew twelve percent in the third quarter.\n\n"
    "Headcount stayed flat while hiring focused on engineering.\n\n"
    "The board approved a new office in Lisbon."
)


@pytest_asyncio.fixture
async def qdrant() -> AsyncGenerator[AsyncQdrantClient, None]:
    client = AsyncQdrantClient(location=":memory:")
    yield client
    await client.close()


@pytest.fixture
def index(qdrant: AsyncQdrantClient) -> QdrantVectorIndex:
    return QdrantVectorIndex(
        qdrant, "test_chunks", HashingEmbedder(dimension=64), max_chars=60, overlap_chars=0
    )


@pytest.mark.asyncio
async def test_collection_is_created_once(qdrant: AsyncQdrantClient, index: QdrantVectorIndex) -> None:
    await index.ensure_collection()
    await index.ensure_collection()

    assert await qdrant.collection_exists("test_chunks")


@pytest.mark.asyncio
async def test_index_count_and_search(index: QdrantVectorIndex) -> None:
    document_id = uuid.uuid4()

    stored = await index.index(document_id, "user_alice", TEXT)
    matches = await index.search(document_id, "Lisbon office", limit=1)

    assert stored == 3
    assert await index.count(document_id) == 3
    assert "Lisbon" in matches[0].text


@pytest.mark.asyncio
async def test_namespaces_are_isolated(index: QdrantVectorIndex) -> None:
    first, second = uuid.uuid4(), uuid.uuid4()
    await index.index(first, "user_alice", TEXT)
    await index.index(second, "user_alice", "A single sentence about Lisbon.")

    matches = await index.search(second, "Revenue quarter", limit=5)

    assert await index.count(first) == 3
    assert await index.count(second) == 1
    assert [m.text for m in matches] == ["A single sentence about Lisbon."]


@pytest.mark.asyncio
async def test_reindex_replaces_previous_points(index: QdrantVectorIndex) -> None:
    document_id = uuid.uuid4()
    await index.index(document_id, "user_alice", TEXT)

    await index.index(document_id, "user_alice", "Short replacement.")

    assert await index.count(document_id) == 1


@pytest.mark.asyncio
async def test_delete_namespace_is_idempotent_and_owner_scoped(index: QdrantVectorIndex) -> None:
    document_id = uuid.uuid4()
    await index.index(document_id, "user_alice", TEXT)

    await index.delete_namespace(document_id, "user_mallory")
    assert await index.count(document_id) == 3

    await index.delete_namespace(document_id, "user_alice")
    await index.delete_namespace(document_id, "user_alice")

    assert await index.count(document_id) == 0
    assert await index.search(document_id, "Lisbon") == []
