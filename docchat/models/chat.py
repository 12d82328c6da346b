"""Chat message models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from docchat.models.common import Role


class ChatMessage(BaseModel):
    """A single entry in a document's ordered chat log.

    ``id`` and ``seq`` are assigned by the log on append; optimistic client
    entries carry ``None`` for both.
    """

    id: UUID | None = None
    document_id: UUID
    owner_id: str
    role: Role
    text: str
    created_at: datetime
    seq: int | None = None

    @property
    def persisted(self) -> bool:
        return self.id is not None
