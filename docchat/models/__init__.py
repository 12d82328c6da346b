"""Models package - re-exports for convenience."""

from docchat.models.chat import ChatMessage
from docchat.models.common import DeletionStep, DocumentStatus, Role, Store, Tier
from docchat.models.documents import BlobRef, Document, StatusEvent, UploadProgress
from docchat.models.outcomes import (
    Allow,
    Asked,
    Deleted,
    Deny,
    NotFound,
    PartialDeletion,
    QuotaExceeded,
    Unauthenticated,
    UpstreamUnavailable,
)
from docchat.models.plans import Plan, QuotaPolicy

__all__ = [
    # Common
    "Role",
    "DocumentStatus",
    "Store",
    "DeletionStep",
    "Tier",
    # Documents
    "Document",
    "BlobRef",
    "UploadProgress",
    "StatusEvent",
    # Chat
    "ChatMessage",
    # Plans
    "Plan",
    "QuotaPolicy",
    # Outcomes
    "Unauthenticated",
    "NotFound",
    "QuotaExceeded",
    "UpstreamUnavailable",
    "PartialDeletion",
    "Deleted",
    "Allow",
    "Deny",
    "Asked",
]
