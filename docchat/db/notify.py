"""Change notifications for chat log subscribers."""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol
from uuid import UUID

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


def chat_channel(document_id: UUID) -> str:
    """Pub/sub channel name for a document's chat log."""
    return f"chat:{document_id}"


class ChatSubscription(Protocol):
    """An open stream of change signals; close it with ``aclose``."""

    def __aiter__(self) -> AsyncIterator[None]: ...

    async def aclose(self) -> None: ...


class ChatNotifier(Protocol):
    """Fan-out of "log changed" signals across processes."""

    async def publish(self, document_id: UUID) -> None:
        """Signal that the document's log changed."""
        ...

    async def subscribe(self, document_id: UUID) -> ChatSubscription:
        """Open a subscription.

        Signals published after this returns are delivered to it.
        """
        ...


class PollingSubscription:
    """Wakes subscribers on a fixed interval instead of on signals."""

    def __init__(self, interval: float) -> None:
        self._interval = interval

    async def __aiter__(self) -> AsyncIterator[None]:
        while True:
            await asyncio.sleep(self._interval)
            yield None

    async def aclose(self) -> None:
        return None


class RedisChatSubscription:
    """Confirmed redis pub/sub subscription on one chat channel."""

    def __init__(self, pubsub: Any, channel: str) -> None:
        self._pubsub = pubsub
        self._channel = channel

    async def __aiter__(self) -> AsyncIterator[None]:
        async for message in self._pubsub.listen():
            if message.get("type") == "message":
                yield None

    async def aclose(self) -> None:
        try:
            await self._pubsub.unsubscribe(self._channel)
        finally:
            await self._pubsub.aclose()


class RedisChatNotifier:
    """Redis pub/sub based notifier."""

    def __init__(self, redis_client: aioredis.Redis, *, confirm_timeout: float = 5.0) -> None:
        """Initialize notifier.

        Args:
            redis_client: Shared async redis client
            confirm_timeout: Seconds to wait for redis to acknowledge a subscribe
        """
        self._redis = redis_client
        self._confirm_timeout = confirm_timeout

    async def publish(self, document_id: UUID) -> None:
        """Publish a change signal."""
        await self._redis.publish(chat_channel(document_id), "changed")

    async def subscribe(self, document_id: UUID) -> RedisChatSubscription:
        """Subscribe and wait until redis has acknowledged the subscription.

        Redis drops publishes on channels nobody listens to, so callers must
        subscribe before reading the state the signals refer to.

        Raises:
            asyncio.TimeoutError: If redis does not acknowledge in time
        """
        channel = chat_channel(document_id)
        pubsub = self._redis.pubsub()
        try:
            await pubsub.subscribe(channel)
            await asyncio.wait_for(_confirmed(pubsub), timeout=self._confirm_timeout)
        except BaseException:
            await pubsub.aclose()
            raise

        logger.debug(f"Subscribed to {channel}")
        return RedisChatSubscription(pubsub, channel)


async def _confirmed(pubsub: Any) -> None:
    while True:
        message = await pubsub.get_message(timeout=None)
        if message is not None and message.get("type") == "subscribe":
            return
