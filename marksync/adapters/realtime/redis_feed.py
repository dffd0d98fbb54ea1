"""Change feed carried over Redis Pub/Sub.

Channel pattern: ``{prefix}:changes:{topic}``
Messages: JSON change payloads, e.g.
``{"eventType": "DELETE", "table": "bookmarks", "new": {}, "old": {"id": "..."}}``

The store side (a database trigger relay, or :meth:`RedisChangeFeed.publish`)
writes every row change to the channel; there is no per-owner filtering on
the channel itself.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from redis.exceptions import RedisError

from marksync.domain.events.change_events import ChangeEvent
from marksync.domain.exceptions import SubscriptionError
from marksync.infrastructure.redis import redis_key
from marksync.sync.protocols import ChannelStatus

if TYPE_CHECKING:
    import redis.asyncio as aioredis

    from marksync.sync.protocols import ChangeHandler, EventFilter, StatusHandler

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class RedisSubscription:
    """Live pubsub connection plus the task reading from it."""

    topic: str
    channel: str
    pubsub: Any = field(repr=False)
    on_status: StatusHandler = field(repr=False)
    task: asyncio.Task[None] | None = field(default=None, repr=False)
    _active: bool = True

    @property
    def active(self) -> bool:
        return self._active


class RedisChangeFeed:
    """Subscribe to, and publish, row changes through Redis channels."""

    def __init__(self, client: aioredis.Redis, *, prefix: str = "marksync") -> None:
        self._client = client
        self._prefix = prefix

    def channel_name(self, topic: str) -> str:
        return redis_key(self._prefix, "changes", topic)

    async def publish(self, topic: str, event: ChangeEvent) -> int:
        """Publish a change; returns the number of receiving connections."""
        channel = self.channel_name(topic)
        try:
            receivers = await self._client.publish(channel, json.dumps(event.to_wire()))
        except RedisError as exc:
            logger.warning(
                "change_publish_failed",
                extra={"topic": topic, "event_kind": event.kind.value, "error": str(exc)},
            )
            raise SubscriptionError(f"Failed to publish change: {exc}") from exc
        logger.debug(
            "change_published",
            extra={"topic": topic, "event_kind": event.kind.value, "receivers": receivers},
        )
        return int(receivers)

    async def subscribe(
        self,
        topic: str,
        event_filter: EventFilter,
        handler: ChangeHandler,
        on_status: StatusHandler,
    ) -> RedisSubscription:
        channel = self.channel_name(topic)
        pubsub = self._client.pubsub()
        try:
            await pubsub.subscribe(channel)
        except RedisError as exc:
            await pubsub.aclose()
            raise SubscriptionError(
                f"Failed to subscribe to {channel}: {exc}", details={"topic": topic}
            ) from exc

        subscription = RedisSubscription(
            topic=topic, channel=channel, pubsub=pubsub, on_status=on_status
        )
        subscription.task = asyncio.create_task(
            self._listen(subscription, event_filter, handler),
            name=f"change-feed:{channel}",
        )
        logger.info("change_feed_subscribed", extra={"topic": topic, "channel": channel})
        return subscription

    async def unsubscribe(self, handle: RedisSubscription) -> None:
        if not handle.active:
            return
        handle._active = False
        task, handle.task = handle.task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        try:
            await handle.pubsub.unsubscribe(handle.channel)
            await handle.pubsub.aclose()
        except RedisError as exc:
            raise SubscriptionError(
                f"Failed to unsubscribe from {handle.channel}: {exc}",
                details={"topic": handle.topic},
            ) from exc
        finally:
            await handle.on_status(ChannelStatus.CLOSED)
        logger.info("change_feed_unsubscribed", extra={"topic": handle.topic})

    @staticmethod
    def parse_message(data: str | bytes) -> ChangeEvent | None:
        """Decode one channel message; malformed payloads yield None."""
        try:
            return ChangeEvent.model_validate(json.loads(data))
        except ValueError as exc:
            logger.warning("change_message_malformed", extra={"error": str(exc)[:200]})
            return None

    async def _listen(
        self,
        subscription: RedisSubscription,
        event_filter: EventFilter,
        handler: ChangeHandler,
    ) -> None:
        try:
            async for message in subscription.pubsub.listen():
                message_type = message.get("type")
                if message_type == "subscribe":
                    await subscription.on_status(ChannelStatus.SUBSCRIBED)
                    continue
                if message_type != "message":
                    continue
                event = self.parse_message(message["data"])
                if event is None or not event_filter.matches(event):
                    continue
                try:
                    await handler(event)
                except Exception:
                    logger.exception(
                        "change_handler_failed",
                        extra={"topic": subscription.topic, "event_kind": event.kind.value},
                    )
        except RedisError as exc:
            logger.warning(
                "change_feed_listener_failed",
                extra={"topic": subscription.topic, "error": str(exc)},
            )
            await subscription.on_status(ChannelStatus.CHANNEL_ERROR)
