"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19

Creates:
- document
- chat_message (append-only log, seq breaks created_at ties)
- membership
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    op.create_table(
        "document",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("byte_size", sa.BigInteger(), nullable=False),
        sa.Column("mime_type", sa.Text(), nullable=False),
        sa.Column("blob_ref", sa.Text(), nullable=False),
        sa.Column("download_url", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_document_owner_created", "document", ["owner_id", "created_at"])

    op.create_table(
        "chat_message",
        sa.Column("seq", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("document_id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["document.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("id", name="uq_chat_message_id"),
        sa.CheckConstraint("role IN ('human', 'ai')", name="ck_chat_message_persisted_role"),
    )
    op.create_index("idx_chat_document_order", "chat_message", ["document_id", "created_at", "seq"])
    op.create_index("idx_chat_document_role", "chat_message", ["document_id", "role"])

    op.create_table(
        "membership",
        sa.Column("owner_id", sa.Text(), primary_key=True),
        sa.Column("has_active_membership", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("membership")
    op.drop_index("idx_chat_document_role", table_name="chat_message")
    op.drop_index("idx_chat_document_order", table_name="chat_message")
    op.drop_table("chat_message")
    op.drop_index("idx_document_owner_created", table_name="document")
    op.drop_table("document")
