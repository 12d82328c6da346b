"""Unit tests for optimistic chat reconciliation."""

import uuid
from datetime import datetime, timedelta, timezone

from docchat.models.chat import ChatMessage
from docchat.models.common import Role
from ui.reconcile import PLACEHOLDER_TEXT, add_optimistic, fail_pending, reconcile

DOCUMENT_ID = uuid.UUID("00000000-0000-0000-0000-0000000000d1")
OWNER_ID = "user_alice"
T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def persisted(role: Role, text: str, seq: int) -> ChatMessage:
    return ChatMessage(
        id=uuid.uuid5(DOCUMENT_ID, str(seq)),
        document_id=DOCUMENT_ID,
        owner_id=OWNER_ID,
        role=role,
        text=text,
        created_at=T0 + timedelta(seconds=seq),
        seq=seq,
    )


def clock() -> datetime:
    return T0 + timedelta(hours=1)


def optimistic(local: list[ChatMessage], question: str) -> list[ChatMessage]:
    return add_optimistic(local, question, document_id=DOCUMENT_ID, owner_id=OWNER_ID, clock=clock)


HISTORY = [persisted(Role.human, "q1", 1), persisted(Role.ai, "a1", 2)]


def test_without_placeholder_snapshot_wins() -> None:
    snapshot = [*HISTORY, persisted(Role.human, "from another tab", 3)]

    assert reconcile(HISTORY, snapshot) == snapshot
    assert reconcile([], snapshot) == snapshot


def test_add_optimistic_appends_human_and_placeholder() -> None:
    local = optimistic(HISTORY, "q2")

    assert local[:2] == HISTORY
    assert [(m.role, m.text, m.persisted) for m in local[2:]] == [
        (Role.human, "q2", False),
        (Role.placeholder, PLACEHOLDER_TEXT, False),
    ]


def test_add_optimistic_drops_unpersisted_leftovers() -> None:
    denied = fail_pending(optimistic(HISTORY, "q2"), "limit reached")

    local = optimistic(denied, "q3")

    assert [m.text for m in local] == ["q1", "a1", "q3", PLACEHOLDER_TEXT]


def test_pending_placeholder_survives_snapshot_without_answer() -> None:
    local = optimistic(HISTORY, "q2")

    # The old log, then the log with the question but no answer yet
    assert reconcile(local, HISTORY) == local
    assert reconcile(local, [*HISTORY, persisted(Role.human, "q2", 3)]) == local


def test_snapshot_with_answer_replaces_local_exactly() -> None:
    local = optimistic(HISTORY, "q2")
    snapshot = [*HISTORY, persisted(Role.human, "q2", 3), persisted(Role.ai, "a2", 4)]

    displayed = reconcile(local, snapshot)

    assert displayed == snapshot
    assert all(m.role != Role.placeholder for m in displayed)


def test_failure_notice_from_server_resolves_placeholder() -> None:
    local = optimistic(HISTORY, "q2")
    snapshot = [*HISTORY, persisted(Role.human, "q2", 3), persisted(Role.ai, "Whoops...", 4)]

    assert reconcile(local, snapshot) == snapshot


def test_first_question_on_empty_log() -> None:
    local = optimistic([], "hello")

    assert reconcile(local, []) == local
    assert reconcile(local, [persisted(Role.human, "hello", 1)]) == local

    snapshot = [persisted(Role.human, "hello", 1), persisted(Role.ai, "hi", 2)]
    assert reconcile(local, snapshot) == snapshot


def test_reconcile_is_pure() -> None:
    local = optimistic(HISTORY, "q2")
    snapshot = [*HISTORY, persisted(Role.human, "q2", 3), persisted(Role.ai, "a2", 4)]
    local_before, snapshot_before = list(local), list(snapshot)

    first = reconcile(local, snapshot)
    second = reconcile(local, snapshot)

    assert first == second
    assert local == local_before
    assert snapshot == snapshot_before
    assert first is not snapshot


def test_fail_pending_keeps_client_only_notice() -> None:
    local = optimistic(HISTORY, "q2")

    failed = fail_pending(local, "You've reached the limit")

    assert failed[-1].role == Role.placeholder
    assert failed[-1].text == "You've reached the limit"
    assert failed[:-1] == local[:-1]


def test_fail_pending_without_placeholder_is_a_no_op() -> None:
    assert fail_pending(HISTORY, "anything") == HISTORY
