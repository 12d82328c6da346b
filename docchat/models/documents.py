"""Document domain models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from docchat.models.common import DocumentStatus


class Document(BaseModel):
    """Uploaded document metadata."""

    id: UUID
    owner_id: str
    name: str
    byte_size: int = Field(..., ge=0)
    mime_type: str
    blob_ref: str
    download_url: str
    status: DocumentStatus
    created_at: datetime


class BlobRef(BaseModel):
    """Durable reference to a stored blob."""

    key: str
    download_url: str


class UploadProgress(BaseModel):
    """Byte progress of a blob upload."""

    bytes_transferred: int = Field(..., ge=0)
    total_bytes: int = Field(..., ge=0)

    @property
    def fraction(self) -> float:
        """Progress as a fraction in [0, 1]."""
        if self.total_bytes == 0:
            return 1.0
        return min(1.0, self.bytes_transferred / self.total_bytes)


class StatusEvent(BaseModel):
    """A lifecycle status change reported to upload observers."""

    document_id: UUID
    status: DocumentStatus
    progress: float | None = Field(None, ge=0.0, le=1.0)
