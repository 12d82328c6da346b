"""Retrieval-augmented completion service with OpenAI integration.

Security: Reads API key from settings only, never hardcoded.
Provides a deterministic stub when no key is present for testing.
"""

import logging
from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from openai import AsyncOpenAI

from docchat.docs.vector_index import ChunkMatch, VectorIndex
from docchat.models.chat import ChatMessage
from docchat.models.common import Role

logger = logging.getLogger(__name__)

MAX_ANSWER_CHARS = 10000
MAX_HISTORY_MESSAGES = 10


class CompletionService(Protocol):
    """Protocol for completion service implementations."""

    async def complete(
        self,
        document_id: UUID,
        question: str,
        *,
        history: Sequence[ChatMessage] = (),
    ) -> str:
        """Answer a question about a document.

        Args:
            document_id: Document whose vector namespace provides context
            question: User question
            history: Earlier messages of the conversation, oldest first

        Returns:
            Generated answer text
        """
        ...


class DeterministicStubCompletionService:
    """Deterministic stub (no API key required) that quotes the best chunk."""

    def __init__(self, vectors: VectorIndex, *, top_k: int = 1) -> None:
        self._vectors = vectors
        self._top_k = top_k

    async def complete(
        self,
        document_id: UUID,
        question: str,
        *,
        history: Sequence[ChatMessage] = (),
    ) -> str:
        """Generate a stub answer from retrieved context."""
        matches = await self._vectors.search(document_id, question, limit=self._top_k)

        if not matches:
            return "I couldn't find anything in this document related to your question."

        best = matches[0].text
        preview = best if len(best) <= 300 else best[:297] + "..."
        return f"Based on the document: {preview}"


class OpenAICompletionService:
    """OpenAI-backed completion service."""

    def __init__(
        self,
        client: AsyncOpenAI,
        vectors: VectorIndex,
        *,
        model: str = "gpt-4o-mini",
        top_k: int = 4,
    ) -> None:
        """Initialize completion service.

        Args:
            client: Shared AsyncOpenAI client
            vectors: Vector index used for retrieval
            model: Chat model name
            top_k: Number of chunks retrieved per question
        """
        self.client = client
        self.vectors = vectors
        self.model = model
        self.top_k = top_k

    async def complete(
        self,
        document_id: UUID,
        question: str,
        *,
        history: Sequence[ChatMessage] = (),
    ) -> str:
        """Generate an answer using retrieved chunks and chat history."""
        matches = await self.vectors.search(document_id, question, limit=self.top_k)

        messages: list[dict[str, str]] = [
            {"role": "system", "content": self._build_system_prompt(matches)}
        ]
        messages.extend(self._history_messages(history))
        messages.append({"role": "user", "content": question})

        response = await self.client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore[arg-type]
            temperature=0.2,
            max_tokens=1000,
        )

        answer = response.choices[0].message.content or ""

        # Validation: Check for empty response
        if not answer.strip():
            raise ValueError("OpenAI returned an empty answer")

        # Validation: Check for unreasonably long response
        if len(answer) > MAX_ANSWER_CHARS:
            logger.warning(
                f"OpenAI answer unexpectedly large ({len(answer)} chars), "
                f"truncating to {MAX_ANSWER_CHARS}"
            )
            answer = answer[:MAX_ANSWER_CHARS] + "\n\n[Truncated]"

        return answer

    def _build_system_prompt(self, matches: list[ChunkMatch]) -> str:
        """Build system prompt with retrieved context."""
        lines = [
            "Answer the user's questions based only on the document context below.",
            "If the context does not contain the answer, say that you don't know.",
            "",
            "## Document context",
        ]
        if matches:
            for match in matches:
                lines.append(f"- {match.text}")
        else:
            lines.append("- (no relevant passages found)")
        return "\n".join(lines)

    def _history_messages(self, history: Sequence[ChatMessage]) -> list[dict[str, str]]:
        """Map persisted chat history to OpenAI chat roles."""
        mapped: list[dict[str, str]] = []
        for message in list(history)[-MAX_HISTORY_MESSAGES:]:
            if message.role == Role.human:
                mapped.append({"role": "user", "content": message.text})
            elif message.role == Role.ai:
                mapped.append({"role": "assistant", "content": message.text})
        return mapped
