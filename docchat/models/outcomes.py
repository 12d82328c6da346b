"""Typed outcomes returned by core operations.

Expected failures (missing identity, quota, upstream outages, partial
deletion) are returned as values rather than raised, so callers can render
them without crashing the request.
"""

from dataclasses import dataclass, field

from docchat.models.chat import ChatMessage
from docchat.models.common import DeletionStep, Store


@dataclass(frozen=True)
class Unauthenticated:
    """No resolved owner for the request."""

    reason: str = "authentication required"


@dataclass(frozen=True)
class NotFound:
    """Document missing or owned by someone else."""

    document_id: str


@dataclass(frozen=True)
class QuotaExceeded:
    """Question rejected by the quota gate before any write."""

    reason: str
    upgrade_available: bool


@dataclass(frozen=True)
class UpstreamUnavailable:
    """An external collaborator failed or timed out."""

    which: Store
    detail: str = ""
    timed_out: bool = False


@dataclass(frozen=True)
class PartialDeletion:
    """Some deletion steps failed; completed steps are not rolled back."""

    failed_steps: tuple[DeletionStep, ...]
    completed_steps: tuple[DeletionStep, ...] = ()

    @property
    def failed_step(self) -> DeletionStep:
        """First step that failed (steps run in a fixed order)."""
        return self.failed_steps[0]


@dataclass(frozen=True)
class Deleted:
    """Every requested deletion step succeeded."""

    document_id: str
    completed_steps: tuple[DeletionStep, ...] = ()


@dataclass(frozen=True)
class Allow:
    """Quota gate admitted the question."""

    count: int
    limit: int


@dataclass(frozen=True)
class Deny:
    """Quota gate rejected the question."""

    reason: str
    upgrade_available: bool
    count: int = 0
    limit: int = 0


@dataclass(frozen=True)
class Asked:
    """Question recorded; ``answer_failure`` is set when generation failed."""

    human_message: ChatMessage
    ai_message: ChatMessage | None
    answer_failure: UpstreamUnavailable | None = field(default=None)

    @property
    def answered(self) -> bool:
        return self.answer_failure is None
