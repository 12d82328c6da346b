"""Unit tests for blob stores."""

import uuid
from pathlib import Path

import pytest

from docchat.models.documents import UploadProgress
from docchat.storage.blobs import BlobNotFoundError, InMemoryBlobStore, LocalBlobStore, blob_key


async def _drain(store: InMemoryBlobStore | LocalBlobStore, key: str, data: bytes) -> list[UploadProgress]:
    return [p async for p in store.put(key, data)]


def test_blob_key_is_owner_namespaced() -> None:
    document_id = uuid.UUID("12345678-1234-5678-1234-567812345678")

    assert blob_key("user_alice", document_id) == f"users/user_alice/files/{document_id}"


@pytest.mark.asyncio
async def test_in_memory_put_reports_progress_to_completion() -> None:
    store = InMemoryBlobStore(chunk_bytes=256)

    progress = await _drain(store, "users/a/files/1", b"x" * 1024)

    fractions = [p.fraction for p in progress]
    assert fractions[0] == 0.0
    assert fractions[-1] == 1.0
    assert fractions == sorted(fractions)
    assert len(progress) == 5
    assert "users/a/files/1" in store


@pytest.mark.asyncio
async def test_in_memory_resolve_get_delete() -> None:
    store = InMemoryBlobStore()
    await _drain(store, "k", b"payload")

    ref = await store.resolve("k")

    assert ref.download_url == "memory://k"
    assert await store.get("k") == b"payload"

    await store.delete("k")
    await store.delete("k")

    with pytest.raises(BlobNotFoundError):
        await store.resolve("k")
    with pytest.raises(BlobNotFoundError):
        await store.get("k")


@pytest.mark.asyncio
async def test_local_store_round_trip(tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path, chunk_bytes=100)
    key = "users/user_alice/files/doc"

    progress = await _drain(store, key, b"y" * 250)
    ref = await store.resolve(key)

    assert progress[-1].bytes_transferred == 250
    assert await store.get(key) == b"y" * 250
    assert ref.download_url.startswith("file://")
    assert not list(tmp_path.rglob("*.part"))


@pytest.mark.asyncio
async def test_local_store_public_url(tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path, public_base_url="https://files.example.com/")
    await _drain(store, "users/u/files/d", b"z")

    ref = await store.resolve("users/u/files/d")

    assert ref.download_url == "https://files.example.com/users/u/files/d"


@pytest.mark.asyncio
async def test_local_store_delete_is_idempotent(tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path)
    await _drain(store, "users/u/files/d", b"z")

    await store.delete("users/u/files/d")
    await store.delete("users/u/files/d")

    with pytest.raises(BlobNotFoundError):
        await store.get("users/u/files/d")


@pytest.mark.asyncio
async def test_local_store_rejects_path_traversal(tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path / "blobs")

    with pytest.raises(ValueError):
        await _drain(store, "../escape", b"nope")
