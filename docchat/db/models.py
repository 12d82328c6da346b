"""SQLAlchemy ORM models for documents, chat log and memberships."""

import uuid
from datetime import datetime

from sqlalchemy import BigInteger, Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class Document(Base):
    """Document table - metadata of an uploaded file."""

    __tablename__ = "document"
    __table_args__ = (Index("idx_document_owner_created", "owner_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    byte_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(Text, nullable=False)
    blob_ref: Mapped[str] = mapped_column(Text, nullable=False)
    download_url: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    # Relationships
    messages: Mapped[list["ChatMessage"]] = relationship(
        "ChatMessage", back_populates="document", cascade="all, delete-orphan"
    )


class ChatMessage(Base):
    """Chat message table - append-only per-document log.

    ``seq`` is the log-assigned insertion order used to break ``created_at`` ties.
    """

    __tablename__ = "chat_message"
    __table_args__ = (
        Index("idx_chat_document_order", "document_id", "created_at", "seq"),
        Index("idx_chat_document_role", "document_id", "role"),
        CheckConstraint("role IN ('human', 'ai')", name="ck_chat_message_persisted_role"),
    )

    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[uuid.UUID] = mapped_column(Uuid, unique=True, nullable=False, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("document.id", ondelete="CASCADE"), nullable=False
    )
    owner_id: Mapped[str] = mapped_column(Text, nullable=False)
    role: Mapped[str] = mapped_column(Text, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Relationships
    document: Mapped["Document"] = relationship("Document", back_populates="messages")


class Membership(Base):
    """Membership table - plan flag mirrored from the billing provider."""

    __tablename__ = "membership"

    owner_id: Mapped[str] = mapped_column(Text, primary_key=True)
    has_active_membership: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
