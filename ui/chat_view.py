"""Per-document chat view state."""

import logging
import uuid
from collections.abc import AsyncIterator

import httpx

from docchat.models.chat import ChatMessage
from ui.helpers import DocchatClient, quota_reason
from ui.reconcile import add_optimistic, fail_pending, reconcile

logger = logging.getLogger(__name__)

SEND_FAILED_TEXT = "Whoops... your question could not be sent. Please try again."


class ChatView:
    """Displayed message list for one open chat.

    Snapshots from the log stream are folded in with ``reconcile``; stream
    errors are kept in ``error`` while the last displayed list stays put.
    """

    def __init__(self, document_id: uuid.UUID, owner_id: str) -> None:
        self.document_id = document_id
        self.owner_id = owner_id
        self.messages: list[ChatMessage] = []
        self.error: str | None = None

    def submit(self, question: str) -> None:
        self.messages = add_optimistic(
            self.messages, question, document_id=self.document_id, owner_id=self.owner_id
        )

    def fail_pending(self, reason: str) -> None:
        self.messages = fail_pending(self.messages, reason)

    def apply_snapshot(self, snapshot: list[ChatMessage]) -> None:
        self.messages = reconcile(self.messages, snapshot)
        self.error = None

    async def follow(self, snapshots: AsyncIterator[list[ChatMessage]]) -> None:
        """Consume a snapshot stream until it ends or breaks."""
        try:
            async for snapshot in snapshots:
                self.apply_snapshot(snapshot)
        except Exception as e:
            logger.warning(f"Chat stream for {self.document_id} broke: {e}")
            self.error = str(e) or type(e).__name__

    async def ask(self, client: DocchatClient, question: str) -> None:
        """Show the question immediately, then send it.

        The answer itself arrives through the followed stream.
        """
        self.submit(question)
        try:
            await client.ask(self.document_id, question)
        except httpx.HTTPStatusError as e:
            reason = quota_reason(e)
            self.fail_pending(reason if reason is not None else SEND_FAILED_TEXT)
        except httpx.HTTPError as e:
            logger.warning(f"Sending question for {self.document_id} failed: {e}")
            self.fail_pending(SEND_FAILED_TEXT)
