"""Text embedding clients for the vector index.

Provides a deterministic hashing fallback when no API key is configured.
"""

import hashlib
import math
import re
from typing import Protocol

from openai import AsyncOpenAI

_TOKEN = re.compile(r"\w+")


class Embedder(Protocol):
    """Protocol for embedding implementations."""

    @property
    def dimension(self) -> int:
        """Length of every returned vector."""
        ...

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts, one vector per input, in input order."""
        ...


class HashingEmbedder:
    """Deterministic bag-of-words embedder for tests and offline use."""

    def __init__(self, dimension: int = 256) -> None:
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    def _embed_one(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for token in _TOKEN.findall(text.lower()):
            digest = hashlib.sha256(token.encode("utf-8")).digest()
            bucket = int.from_bytes(digest[:4], "big") % self._dimension
            vector[bucket] += 1.0

        norm = math.sqrt(sum(v * v for v in vector))
        if norm == 0:
            return vector
        return [v / norm for v in vector]

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts by hashing their tokens."""
        return [self._embed_one(text) for text in texts]


class OpenAIEmbedder:
    """OpenAI-backed embedder."""

    def __init__(self, client: AsyncOpenAI, model: str, dimension: int) -> None:
        """Initialize embedder.

        Args:
            client: Shared AsyncOpenAI client
            model: Embedding model name
            dimension: Vector size produced by the model
        """
        self._client = client
        self._model = model
        self._dimension = dimension

    @property
    def dimension(self) -> int:
        return self._dimension

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts with the OpenAI embeddings API."""
        if not texts:
            return []

        response = await self._client.embeddings.create(model=self._model, input=texts)
        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]
