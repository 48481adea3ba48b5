# src/shop/broadcast.py
"""
Order-event broadcast between running instances of the app.

RedisBroadcast fans events out through a redis pub/sub channel, so every
instance on the machine (or sharing the redis) hears them. LocalBroadcast
does the same inside one process. Both deliver a plain dict to async
handlers; a handler that raises is logged and does not stop the others.
"""
from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from utils import settings
from utils.logger import get_logger

logger = get_logger(__name__)

ORDER_CREATED = "order_created"

Handler = Callable[[Dict[str, Any]], Awaitable[None]]


def redis_retry():
    return retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type(RedisError),
    )


class Subscription(Protocol):
    async def close(self) -> None: ...


class Broadcast(Protocol):
    async def publish(self, event: Dict[str, Any]) -> None: ...

    async def subscribe(self, handler: Handler) -> Subscription: ...

    async def close(self) -> None: ...


async def _deliver(handler: Handler, event: Dict[str, Any]) -> None:
    try:
        await handler(event)
    except Exception as e:
        logger.error(f"Broadcast handler failed on {event.get('type')}: {e}")


class _LocalSubscription:
    def __init__(self, owner: LocalBroadcast, handler: Handler):
        self._owner = owner
        self._handler = handler

    async def close(self) -> None:
        if self._handler in self._owner._handlers:
            self._owner._handlers.remove(self._handler)


class LocalBroadcast:
    """In-process channel: every subscriber of this object gets every event."""

    def __init__(self) -> None:
        self._handlers: List[Handler] = []

    async def publish(self, event: Dict[str, Any]) -> None:
        # round-trip through json so receivers never share the sender's objects
        payload = json.loads(json.dumps(event))
        for handler in list(self._handlers):
            await _deliver(handler, payload)

    async def subscribe(self, handler: Handler) -> _LocalSubscription:
        self._handlers.append(handler)
        return _LocalSubscription(self, handler)

    async def close(self) -> None:
        self._handlers.clear()


class _RedisSubscription:
    def __init__(self, pubsub, task: asyncio.Task):
        self._pubsub = pubsub
        self._task = task

    async def close(self) -> None:
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        try:
            await self._pubsub.unsubscribe()
            await self._pubsub.aclose()
        except RedisError as e:
            logger.warning(f"Could not close redis subscription cleanly: {e}")


class RedisBroadcast:
    def __init__(self, client: aioredis.Redis, channel: str = settings.BROADCAST_CHANNEL):
        self.client = client
        self.channel = channel
        self._subscriptions: List[_RedisSubscription] = []

    @redis_retry()
    async def publish(self, event: Dict[str, Any]) -> None:
        await self.client.publish(self.channel, json.dumps(event))

    async def subscribe(self, handler: Handler) -> _RedisSubscription:
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(self.channel)
        task = asyncio.create_task(self._listen(pubsub, handler))
        sub = _RedisSubscription(pubsub, task)
        self._subscriptions.append(sub)
        return sub

    async def _listen(self, pubsub, handler: Handler) -> None:
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                try:
                    event = json.loads(message["data"])
                except (TypeError, ValueError) as e:
                    logger.warning(f"Ignoring malformed broadcast message: {e}")
                    continue
                if isinstance(event, dict):
                    await _deliver(handler, event)
        except RedisError as e:
            # lost the connection; instances fall back to manual refresh
            logger.error(f"Broadcast listener stopped: {e}")

    async def close(self) -> None:
        for sub in self._subscriptions:
            await sub.close()
        self._subscriptions.clear()
        await self.client.aclose()


async def create_broadcast(url: str | None = None) -> Optional[RedisBroadcast]:
    """
    Connect to the configured redis, or return None when there is no url or
    no server. None is a normal outcome: order sync between instances is then
    skipped and users refresh by hand.
    """
    url = settings.BROADCAST_URL if url is None else url
    if not url:
        logger.info("No broadcast url configured, cross-instance sync disabled")
        return None

    client = aioredis.Redis.from_url(url, decode_responses=True)
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"Broadcast server at {url} unavailable, sync disabled: {e}")
        await client.aclose()
        return None

    logger.info(f"Broadcasting order events on '{settings.BROADCAST_CHANNEL}'")
    return RedisBroadcast(client)
