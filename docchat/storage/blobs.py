"""Blob storage for uploaded document bytes."""

import asyncio
import logging
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Protocol
from uuid import UUID

from docchat.models.documents import BlobRef, UploadProgress

logger = logging.getLogger(__name__)


class BlobNotFoundError(LookupError):
    """No blob stored under the requested key."""


def blob_key(owner_id: str, document_id: UUID) -> str:
    """Storage key for a document, namespaced by owner."""
    return f"users/{owner_id}/files/{document_id}"


def _chunks(data: bytes, chunk_bytes: int) -> list[bytes]:
    if not data:
        return []
    return [data[i : i + chunk_bytes] for i in range(0, len(data), chunk_bytes)]


class BlobStore(Protocol):
    """Blob storage collaborator."""

    def put(self, key: str, data: bytes) -> AsyncIterator[UploadProgress]:
        """Stream bytes to storage, yielding progress after each chunk.

        The final progress item always reports ``bytes_transferred == total_bytes``.
        """
        ...

    async def resolve(self, key: str) -> BlobRef:
        """Return the durable reference (download URL) for a stored blob.

        Raises:
            BlobNotFoundError: If nothing is stored under ``key``
        """
        ...

    async def get(self, key: str) -> bytes:
        """Read a stored blob.

        Raises:
            BlobNotFoundError: If nothing is stored under ``key``
        """
        ...

    async def delete(self, key: str) -> None:
        """Delete a blob. Deleting a missing blob is not an error."""
        ...


class InMemoryBlobStore:
    """In-memory implementation of BlobStore."""

    def __init__(self, chunk_bytes: int = 64 * 1024) -> None:
        self._chunk_bytes = chunk_bytes
        self._blobs: dict[str, bytes] = {}

    async def put(self, key: str, data: bytes) -> AsyncIterator[UploadProgress]:
        """Store bytes chunk by chunk."""
        total = len(data)
        buffer = bytearray()

        yield UploadProgress(bytes_transferred=0, total_bytes=total)

        for chunk in _chunks(data, self._chunk_bytes):
            buffer.extend(chunk)
            await asyncio.sleep(0)
            if len(buffer) < total:
                yield UploadProgress(bytes_transferred=len(buffer), total_bytes=total)

        self._blobs[key] = bytes(buffer)
        yield UploadProgress(bytes_transferred=total, total_bytes=total)

    async def resolve(self, key: str) -> BlobRef:
        """Return an in-process reference."""
        if key not in self._blobs:
            raise BlobNotFoundError(key)
        return BlobRef(key=key, download_url=f"memory://{key}")

    async def get(self, key: str) -> bytes:
        """Read a stored blob."""
        try:
            return self._blobs[key]
        except KeyError as e:
            raise BlobNotFoundError(key) from e

    async def delete(self, key: str) -> None:
        """Delete a blob if present."""
        self._blobs.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._blobs


class LocalBlobStore:
    """Filesystem implementation of BlobStore.

    Bytes are written to a ``.part`` file and renamed into place once complete,
    so readers never observe a partial blob.
    """

    def __init__(
        self,
        root: Path,
        *,
        chunk_bytes: int = 64 * 1024,
        public_base_url: str | None = None,
    ) -> None:
        """Initialize store.

        Args:
            root: Directory holding all blobs
            chunk_bytes: Write size between progress reports
            public_base_url: Base URL serving ``root``; file URIs are used when unset
        """
        self._root = root.resolve()
        self._chunk_bytes = chunk_bytes
        self._public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root):
            raise ValueError(f"blob key escapes storage root: {key!r}")
        return path

    async def put(self, key: str, data: bytes) -> AsyncIterator[UploadProgress]:
        """Write bytes to disk chunk by chunk."""
        path = self._path(key)
        partial = path.with_name(path.name + ".part")
        total = len(data)

        await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
        await asyncio.to_thread(partial.write_bytes, b"")

        yield UploadProgress(bytes_transferred=0, total_bytes=total)

        written = 0
        for chunk in _chunks(data, self._chunk_bytes):
            await asyncio.to_thread(_append_bytes, partial, chunk)
            written += len(chunk)
            if written < total:
                yield UploadProgress(bytes_transferred=written, total_bytes=total)

        await asyncio.to_thread(partial.replace, path)
        logger.debug(f"Stored blob {key} ({total} bytes)")
        yield UploadProgress(bytes_transferred=total, total_bytes=total)

    async def resolve(self, key: str) -> BlobRef:
        """Return a download URL for a stored blob."""
        path = self._path(key)
        if not await asyncio.to_thread(path.is_file):
            raise BlobNotFoundError(key)

        if self._public_base_url:
            return BlobRef(key=key, download_url=f"{self._public_base_url}/{key}")
        return BlobRef(key=key, download_url=path.as_uri())

    async def get(self, key: str) -> bytes:
        """Read a stored blob."""
        path = self._path(key)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as e:
            raise BlobNotFoundError(key) from e

    async def delete(self, key: str) -> None:
        """Delete a blob if present."""
        await asyncio.to_thread(self._path(key).unlink, missing_ok=True)


def _append_bytes(path: Path, chunk: bytes) -> None:
    with open(path, "ab") as f:
        f.write(chunk)
