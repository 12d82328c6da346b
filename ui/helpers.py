"""HTTP client for the docchat API, used by chat views."""

import json
import uuid
from collections.abc import AsyncIterator, Iterable
from typing import Any

import httpx

from docchat.models.chat import ChatMessage
from docchat.models.documents import Document


class ChatStreamError(RuntimeError):
    """The server reported that the chat log stream broke."""


def get_auth_header(owner_id: str) -> dict[str, str]:
    """Get auth header for API calls.

    The identity provider in front of the API resolves sessions to owner IDs;
    this client is handed the resolved owner ID.
    """
    return {"Authorization": f"Bearer {owner_id}"}


class DocchatClient:
    """Async client for document and chat endpoints.

    Args:
        backend_url: Backend base URL (e.g. http://localhost:8000)
        owner_id: Authenticated owner
        client: Optional preconfigured httpx client (tests pass a MockTransport)
    """

    def __init__(
        self,
        backend_url: str,
        owner_id: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=backend_url, timeout=timeout)
        self._headers = get_auth_header(owner_id)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def upload(self, name: str, data: bytes, mime_type: str) -> dict[str, Any]:
        """Upload a file.

        Returns:
            UploadResponse dict; ``status`` is ``failed`` (HTTP 202) when the
            document was saved but indexing needs a retry

        Raises:
            httpx.HTTPStatusError: If request fails
        """
        response = await self._client.post(
            "/documents",
            files={"file": (name, data, mime_type)},
            headers=self._headers,
        )
        response.raise_for_status()
        result: dict[str, Any] = response.json()
        return result

    async def list_documents(self) -> list[Document]:
        response = await self._client.get("/documents", headers=self._headers)
        response.raise_for_status()
        return [Document.model_validate(d) for d in response.json()["documents"]]

    async def retry_indexing(self, document_id: uuid.UUID) -> Document:
        response = await self._client.post(
            f"/documents/{document_id}/index", headers=self._headers
        )
        response.raise_for_status()
        return Document.model_validate(response.json())

    async def delete_document(
        self, document_id: uuid.UUID, steps: Iterable[str] | None = None
    ) -> dict[str, Any]:
        """Delete a document, optionally retrying only some steps.

        Returns:
            DeleteResponse dict; ``failed_steps`` is non-empty on HTTP 207
        """
        params = [("step", s) for s in steps] if steps is not None else None
        response = await self._client.delete(
            f"/documents/{document_id}", params=params, headers=self._headers
        )
        response.raise_for_status()
        result: dict[str, Any] = response.json()
        return result

    async def ask(self, document_id: uuid.UUID, question: str) -> dict[str, Any]:
        """Ask a question.

        Raises:
            httpx.HTTPStatusError: 403 with ``{reason, upgrade_available}``
                detail when the plan's limit is reached
        """
        response = await self._client.post(
            f"/documents/{document_id}/chat",
            json={"question": question},
            headers=self._headers,
        )
        response.raise_for_status()
        result: dict[str, Any] = response.json()
        return result

    async def read_chat(self, document_id: uuid.UUID) -> list[ChatMessage]:
        response = await self._client.get(f"/documents/{document_id}/chat", headers=self._headers)
        response.raise_for_status()
        return [ChatMessage.model_validate(m) for m in response.json()["messages"]]

    async def stream_chat(self, document_id: uuid.UUID) -> AsyncIterator[list[ChatMessage]]:
        """Yield ordered chat log snapshots from the SSE stream.

        Raises:
            ChatStreamError: When the server emits an ``error`` event
            httpx.HTTPStatusError: If the stream cannot be opened
        """
        async with self._client.stream(
            "GET", f"/documents/{document_id}/chat/stream", headers=self._headers
        ) as response:
            response.raise_for_status()

            event = "message"
            data: list[str] = []
            async for line in response.aiter_lines():
                if line.startswith("event:"):
                    event = line[len("event:") :].strip()
                elif line.startswith("data:"):
                    data.append(line[len("data:") :].strip())
                elif line == "" and data:
                    payload = json.loads("\n".join(data))
                    if event == "error":
                        raise ChatStreamError(payload.get("detail", "chat stream failed"))
                    if event == "snapshot":
                        yield [ChatMessage.model_validate(m) for m in payload["messages"]]
                    event, data = "message", []


def quota_reason(error: httpx.HTTPStatusError) -> str | None:
    """Extract the denial reason from a 403 response, if that's what it is."""
    if error.response.status_code != 403:
        return None
    try:
        body = error.response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None

    detail = body.get("detail")
    if isinstance(detail, dict):
        return str(detail.get("reason", ""))
    return str(detail)
