"""Document lifecycle state machine."""

from docchat.models.common import DocumentStatus

ALLOWED_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.uploading: frozenset({DocumentStatus.uploaded, DocumentStatus.failed}),
    DocumentStatus.uploaded: frozenset({DocumentStatus.saving, DocumentStatus.failed}),
    DocumentStatus.saving: frozenset({DocumentStatus.generating, DocumentStatus.failed}),
    DocumentStatus.generating: frozenset({DocumentStatus.ready, DocumentStatus.failed}),
    DocumentStatus.ready: frozenset(),
    # Indexing retry re-enters generating
    DocumentStatus.failed: frozenset({DocumentStatus.generating}),
}

TERMINAL_STATUSES = frozenset({DocumentStatus.ready, DocumentStatus.failed})


class InvalidTransitionError(RuntimeError):
    """Raised on a transition the lifecycle does not allow."""

    def __init__(self, current: DocumentStatus, target: DocumentStatus) -> None:
        super().__init__(f"illegal document transition {current.value} -> {target.value}")
        self.current = current
        self.target = target


def can_transition(current: DocumentStatus, target: DocumentStatus) -> bool:
    """Check whether ``current -> target`` is a legal transition."""
    return target in ALLOWED_TRANSITIONS[current]


def advance(current: DocumentStatus, target: DocumentStatus) -> DocumentStatus:
    """Validate and return the new status.

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    return target
