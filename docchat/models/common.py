"""Common enums shared across all models."""

from enum import Enum


class Role(str, Enum):
    """Chat message author.

    ``placeholder`` exists only in client-side views and is never persisted.
    """

    human = "human"
    ai = "ai"
    placeholder = "placeholder"


class DocumentStatus(str, Enum):
    """Ingestion state of a document."""

    uploading = "uploading"
    uploaded = "uploaded"
    saving = "saving"
    generating = "generating"
    ready = "ready"
    failed = "failed"


class Store(str, Enum):
    """External collaborator names used in failure reporting."""

    blob = "blob"
    log = "log"
    metadata = "metadata"
    vector = "vector"
    completion = "completion"
    plan = "plan"


class DeletionStep(str, Enum):
    """Independent removal steps of a document deletion, in execution order."""

    metadata = "metadata"
    blob = "blob"
    vector = "vector"


class Tier(str, Enum):
    """Plan tier used by the quota policy."""

    free = "free"
    pro = "pro"
