"""Integration tests for redis-backed chat log notifications (fakeredis)."""

import asyncio
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import fakeredis.aioredis
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from docchat.db.context import RequestContext
from docchat.db.notify import RedisChatNotifier, chat_channel
from docchat.db.sql_repositories import SqlMessageLog
from docchat.models.chat import ChatMessage
from docchat.models.common import Role

OWNER = RequestContext(owner_id="user_alice")
T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def redis_client() -> AsyncGenerator[fakeredis.aioredis.FakeRedis, None]:
    client = fakeredis.aioredis.FakeRedis()
    yield client
    await client.aclose()


def _message(document_id: uuid.UUID, text: str, at: datetime, role: Role = Role.human) -> ChatMessage:
    return ChatMessage(
        document_id=document_id, owner_id=OWNER.owner_id, role=role, text=text, created_at=at
    )


@pytest.mark.asyncio
async def test_subscription_receives_publish(redis_client: fakeredis.aioredis.FakeRedis) -> None:
    notifier = RedisChatNotifier(redis_client)
    document_id = uuid.uuid4()

    subscription = await notifier.subscribe(document_id)
    signals = aiter(subscription)
    await notifier.publish(document_id)

    assert await asyncio.wait_for(anext(signals), timeout=2) is None
    await subscription.aclose()


@pytest.mark.asyncio
async def test_subscription_ignores_other_documents(
    redis_client: fakeredis.aioredis.FakeRedis,
) -> None:
    notifier = RedisChatNotifier(redis_client)
    document_id = uuid.uuid4()

    subscription = await notifier.subscribe(document_id)
    signals = aiter(subscription)
    await notifier.publish(uuid.uuid4())

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(anext(signals), timeout=0.2)
    await subscription.aclose()


@pytest.mark.asyncio
async def test_aclose_unsubscribes(redis_client: fakeredis.aioredis.FakeRedis) -> None:
    notifier = RedisChatNotifier(redis_client)
    document_id = uuid.uuid4()

    subscription = await notifier.subscribe(document_id)
    await subscription.aclose()

    counts = await redis_client.pubsub_numsub(chat_channel(document_id))
    assert [count for _, count in counts] == [0]


@pytest.mark.asyncio
async def test_answer_appended_after_first_snapshot_is_delivered(
    session_factory: async_sessionmaker[AsyncSession],
    redis_client: fakeredis.aioredis.FakeRedis,
) -> None:
    log = SqlMessageLog(session_factory, notifier=RedisChatNotifier(redis_client))
    document_id = uuid.uuid4()
    await log.append(_message(document_id, "q1", T0))

    stream = log.subscribe(document_id, OWNER)
    first = await anext(stream)
    await log.append(_message(document_id, "a1", T0 + timedelta(seconds=1), role=Role.ai))
    second = await asyncio.wait_for(anext(stream), timeout=2)
    await stream.aclose()

    assert [m.text for m in first] == ["q1"]
    assert [m.text for m in second] == ["q1", "a1"]


@pytest.mark.asyncio
async def test_each_append_yields_a_snapshot_in_order(
    session_factory: async_sessionmaker[AsyncSession],
    redis_client: fakeredis.aioredis.FakeRedis,
) -> None:
    log = SqlMessageLog(session_factory, notifier=RedisChatNotifier(redis_client))
    document_id = uuid.uuid4()

    stream = log.subscribe(document_id, OWNER)
    assert await anext(stream) == []

    await log.append(_message(document_id, "q1", T0))
    after_question = await asyncio.wait_for(anext(stream), timeout=2)
    await log.append(_message(document_id, "a1", T0, role=Role.ai))
    after_answer = await asyncio.wait_for(anext(stream), timeout=2)
    await stream.aclose()

    assert [m.text for m in after_question] == ["q1"]
    assert [(m.role, m.text) for m in after_answer] == [(Role.human, "q1"), (Role.ai, "a1")]
