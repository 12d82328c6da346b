"""Integration tests for the SQL repositories (SQLite in-memory)."""

import asyncio
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from docchat.db.context import RequestContext
from docchat.db.engine import create_session_factory
from docchat.db.models import Membership
from docchat.db.repositories import PlaceholderNotPersistableError
from docchat.db.sql_repositories import SqlDocumentRepository, SqlMessageLog, SqlPlanRepository
from docchat.models.chat import ChatMessage
from docchat.models.common import DocumentStatus, Role
from docchat.models.documents import Document

OWNER = RequestContext(owner_id="user_alice")
STRANGER = RequestContext(owner_id="user_mallory")
T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _message(document_id: uuid.UUID, text: str, at: datetime, role: Role = Role.human) -> ChatMessage:
    return ChatMessage(
        document_id=document_id, owner_id=OWNER.owner_id, role=role, text=text, created_at=at
    )


@pytest.mark.asyncio
async def test_document_create_get_list_and_status(
    session_factory: async_sessionmaker[AsyncSession],
    document_factory: Callable[..., Document],
) -> None:
    repo = SqlDocumentRepository(session_factory)
    older = document_factory(status=DocumentStatus.saving, created_at=T0)
    newer = document_factory(status=DocumentStatus.ready, created_at=T0 + timedelta(hours=1))
    await repo.create(older)
    await repo.create(newer)

    fetched = await repo.get(older.id, OWNER)
    listed = await repo.list_for_owner(OWNER)
    updated = await repo.set_status(older.id, OWNER, DocumentStatus.generating)

    assert fetched == older
    assert fetched is not None and fetched.created_at.tzinfo is not None
    assert [d.id for d in listed] == [newer.id, older.id]
    assert updated is not None
    assert updated.status == DocumentStatus.generating
    assert (await repo.get(older.id, OWNER)).status == DocumentStatus.generating  # type: ignore[union-attr]


@pytest.mark.asyncio
async def test_document_access_is_owner_scoped(
    session_factory: async_sessionmaker[AsyncSession],
    document_factory: Callable[..., Document],
) -> None:
    repo = SqlDocumentRepository(session_factory)
    document = document_factory()
    await repo.create(document)

    assert await repo.get(document.id, STRANGER) is None
    assert await repo.list_for_owner(STRANGER) == []
    assert await repo.set_status(document.id, STRANGER, DocumentStatus.failed) is None
    assert await repo.delete(document.id, STRANGER) is False
    assert await repo.delete(document.id, OWNER) is True
    assert await repo.delete(document.id, OWNER) is False


@pytest.mark.asyncio
async def test_message_round_trip_preserves_created_at(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    log = SqlMessageLog(session_factory)
    document_id = uuid.uuid4()
    await log.append(_message(document_id, "first", T0))

    stored = await log.append(_message(document_id, "second", T0 + timedelta(seconds=3)))
    messages = await log.read_ordered(document_id, OWNER)

    assert stored.persisted
    assert messages[-1].id == stored.id
    assert messages[-1].created_at == T0 + timedelta(seconds=3)
    assert [m.text for m in messages] == ["first", "second"]


@pytest.mark.asyncio
async def test_equal_timestamps_follow_insertion_order(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    log = SqlMessageLog(session_factory)
    document_id = uuid.uuid4()
    await log.append(_message(document_id, "late", T0 + timedelta(seconds=1)))
    for text in ["a", "b", "c"]:
        await log.append(_message(document_id, text, T0))

    messages = await log.read_ordered(document_id, OWNER)

    assert [m.text for m in messages] == ["a", "b", "c", "late"]
    assert [m.seq for m in messages[:3]] == sorted(m.seq for m in messages[:3])  # type: ignore[type-var]


@pytest.mark.asyncio
async def test_placeholder_is_never_persisted(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    log = SqlMessageLog(session_factory)
    document_id = uuid.uuid4()

    with pytest.raises(PlaceholderNotPersistableError):
        await log.append(_message(document_id, "Thinking...", T0, Role.placeholder))

    assert await log.read_ordered(document_id, OWNER) == []


@pytest.mark.asyncio
async def test_count_and_bulk_delete(session_factory: async_sessionmaker[AsyncSession]) -> None:
    log = SqlMessageLog(session_factory)
    document_id = uuid.uuid4()
    await log.append(_message(document_id, "q1", T0))
    await log.append(_message(document_id, "a1", T0, Role.ai))
    await log.append(_message(document_id, "q2", T0))

    assert await log.count_by_role(document_id, OWNER, Role.human) == 2
    assert await log.count_by_role(document_id, STRANGER, Role.human) == 0
    assert await log.delete_for_document(document_id, OWNER) == 3
    assert await log.read_ordered(document_id, OWNER) == []


@pytest.mark.asyncio
async def test_subscribe_polls_for_changes(session_factory: async_sessionmaker[AsyncSession]) -> None:
    log = SqlMessageLog(session_factory, poll_interval_ms=10)
    document_id = uuid.uuid4()
    await log.append(_message(document_id, "before", T0))

    stream = log.subscribe(document_id, OWNER)
    first = await anext(stream)
    await log.append(_message(document_id, "after", T0 + timedelta(seconds=1)))
    second = await asyncio.wait_for(anext(stream), timeout=2)
    await stream.aclose()

    assert [m.text for m in first] == ["before"]
    assert [m.text for m in second] == ["before", "after"]


@pytest.mark.asyncio
async def test_append_publishes_to_notifier(session_factory: async_sessionmaker[AsyncSession]) -> None:
    notifier = AsyncMock()
    log = SqlMessageLog(session_factory, notifier=notifier)
    document_id = uuid.uuid4()

    await log.append(_message(document_id, "hello", T0))

    notifier.publish.assert_awaited_once_with(document_id)


@pytest.mark.asyncio
async def test_plan_reads_membership(session_factory: async_sessionmaker[AsyncSession]) -> None:
    async with session_factory() as session:
        session.add(Membership(owner_id="user_pro", has_active_membership=True))
        await session.commit()

    repo = SqlPlanRepository(session_factory)

    assert (await repo.get_plan("user_pro")).has_active_membership is True
    assert (await repo.get_plan("user_nobody")).has_active_membership is False


@pytest.mark.postgres
@pytest.mark.asyncio
async def test_log_order_on_postgres(
    postgres_engine: AsyncEngine, document_factory: Callable[..., Document]
) -> None:
    session_factory = create_session_factory(postgres_engine)
    document = document_factory()
    await SqlDocumentRepository(session_factory).create(document)
    log = SqlMessageLog(session_factory)
    document_id = document.id

    # Equal timestamps fall back to insertion order
    await log.append(_message(document_id, "first", T0))
    await log.append(_message(document_id, "second", T0, role=Role.ai))
    await log.append(_message(document_id, "earlier", T0 - timedelta(seconds=1)))

    messages = await log.read_ordered(document_id, OWNER)

    assert [m.text for m in messages] == ["earlier", "first", "second"]
    assert await log.count_by_role(document_id, OWNER, Role.human) == 2
