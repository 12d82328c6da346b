"""Merge an optimistic local chat list with authoritative log snapshots.

A local list holds at most one trailing optimistic pair: the human message
the owner just submitted (not yet persisted) and a placeholder shown while the
answer is pending. Snapshots pushed from the server replace the local list,
except while a placeholder is pending and the snapshot does not yet contain
the answer; then the local list is kept so the view never shrinks.
"""

import uuid
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from docchat.models.chat import ChatMessage
from docchat.models.common import Role

PLACEHOLDER_TEXT = "Thinking..."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _persisted_humans(messages: Sequence[ChatMessage]) -> int:
    return sum(1 for m in messages if m.persisted and m.role == Role.human)


def _answer_arrived(snapshot: Sequence[ChatMessage], human_index: int) -> bool:
    """Check whether the ``human_index``-th human (0-based) is followed by an AI message."""
    seen = -1
    for position, message in enumerate(snapshot):
        if message.role != Role.human:
            continue
        seen += 1
        if seen == human_index:
            return any(m.role == Role.ai for m in snapshot[position + 1 :])
    return False


def reconcile(
    local: Sequence[ChatMessage], snapshot: Sequence[ChatMessage]
) -> list[ChatMessage]:
    """Compute the list to display after a snapshot arrives.

    Args:
        local: Currently displayed list, possibly ending in a placeholder
        snapshot: Full ordered log as pushed by the server

    Returns:
        The snapshot once it covers the pending question, otherwise ``local``
    """
    if not local or local[-1].role != Role.placeholder:
        return list(snapshot)

    pending_index = _persisted_humans(local)
    if _answer_arrived(snapshot, pending_index):
        return list(snapshot)
    return list(local)


def add_optimistic(
    local: Sequence[ChatMessage],
    question: str,
    *,
    document_id: uuid.UUID,
    owner_id: str,
    clock: Callable[[], datetime] = _utcnow,
) -> list[ChatMessage]:
    """Append the submitted question and a pending placeholder.

    Unpersisted leftovers from an earlier submission (e.g. a denial notice)
    are dropped first so the list never holds more than one optimistic pair.
    """
    now = clock()
    kept = [m for m in local if m.persisted]
    return [
        *kept,
        ChatMessage(
            document_id=document_id, owner_id=owner_id, role=Role.human, text=question, created_at=now
        ),
        ChatMessage(
            document_id=document_id,
            owner_id=owner_id,
            role=Role.placeholder,
            text=PLACEHOLDER_TEXT,
            created_at=now,
        ),
    ]


def fail_pending(local: Sequence[ChatMessage], reason: str) -> list[ChatMessage]:
    """Replace the trailing placeholder with a client-only notice."""
    if not local or local[-1].role != Role.placeholder:
        return list(local)

    pending = local[-1]
    notice = pending.model_copy(update={"text": reason})
    return [*local[:-1], notice]
