"""Tests for the Redis Pub/Sub change feed using an in-memory pubsub double."""

import asyncio
import json

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from marksync.adapters.realtime import RedisChangeFeed
from marksync.domain.events.change_events import ChangeEvent, ChangeKind
from marksync.domain.exceptions import SubscriptionError
from marksync.sync.protocols import ChannelStatus, EventFilter

ROW = {
    "id": "b1",
    "user_id": "alice",
    "title": "Docs",
    "url": "https://example.com/docs",
    "created_at": "2025-06-15T12:00:00+00:00",
}


class FakePubSub:
    def __init__(self, fail_subscribe: bool = False) -> None:
        self.queue: asyncio.Queue = asyncio.Queue()
        self.fail_subscribe = fail_subscribe
        self.channels: list[str] = []
        self.unsubscribed: list[str] = []
        self.closed = False

    async def subscribe(self, channel: str) -> None:
        if self.fail_subscribe:
            raise RedisConnectionError("connection refused")
        self.channels.append(channel)
        await self.queue.put({"type": "subscribe", "channel": channel, "data": 1})

    async def unsubscribe(self, channel: str) -> None:
        self.unsubscribed.append(channel)

    async def aclose(self) -> None:
        self.closed = True

    def push(self, data) -> None:
        self.queue.put_nowait({"type": "message", "channel": self.channels[0], "data": data})

    def break_connection(self) -> None:
        self.queue.put_nowait(RedisConnectionError("connection lost"))

    async def listen(self):
        while True:
            message = await self.queue.get()
            if isinstance(message, Exception):
                raise message
            yield message


class FakeRedis:
    def __init__(self, fail_subscribe: bool = False) -> None:
        self.fail_subscribe = fail_subscribe
        self.pubsubs: list[FakePubSub] = []
        self.published: list[tuple[str, str]] = []

    def pubsub(self) -> FakePubSub:
        pubsub = FakePubSub(self.fail_subscribe)
        self.pubsubs.append(pubsub)
        return pubsub

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return len(self.pubsubs)


class Recorder:
    def __init__(self) -> None:
        self.events: list[ChangeEvent] = []
        self.statuses: list[ChannelStatus] = []

    async def on_event(self, event: ChangeEvent) -> None:
        self.events.append(event)

    async def on_status(self, status: ChannelStatus) -> None:
        self.statuses.append(status)


class TestRedisChangeFeed:
    @pytest.mark.asyncio
    async def test_subscribe_reports_subscribed(self, settle):
        client = FakeRedis()
        feed = RedisChangeFeed(client, prefix="app")
        recorder = Recorder()

        handle = await feed.subscribe(
            "bookmarks-realtime", EventFilter(), recorder.on_event, recorder.on_status
        )
        await settle()

        assert handle.active
        assert handle.channel == "app:changes:bookmarks-realtime"
        assert client.pubsubs[0].channels == ["app:changes:bookmarks-realtime"]
        assert recorder.statuses == [ChannelStatus.SUBSCRIBED]
        await feed.unsubscribe(handle)

    @pytest.mark.asyncio
    async def test_messages_parsed_and_filtered(self, settle):
        client = FakeRedis()
        feed = RedisChangeFeed(client)
        recorder = Recorder()
        handle = await feed.subscribe(
            "t", EventFilter(table="bookmarks"), recorder.on_event, recorder.on_status
        )
        pubsub = client.pubsubs[0]

        pubsub.push(json.dumps({"eventType": "INSERT", "table": "bookmarks", "new": ROW}))
        pubsub.push("{not json")
        pubsub.push(json.dumps({"eventType": "INSERT", "table": "other", "new": ROW}))
        pubsub.push(json.dumps({"eventType": "DELETE", "old": {"id": "b1"}}))
        await settle(20)

        assert [event.kind for event in recorder.events] == [ChangeKind.INSERT, ChangeKind.DELETE]
        assert recorder.events[1].old_id == "b1"
        await feed.unsubscribe(handle)

    @pytest.mark.asyncio
    async def test_handler_failure_keeps_listening(self, settle):
        client = FakeRedis()
        feed = RedisChangeFeed(client)
        delivered: list[ChangeEvent] = []

        async def flaky(event: ChangeEvent) -> None:
            delivered.append(event)
            if len(delivered) == 1:
                raise RuntimeError("boom")

        recorder = Recorder()
        handle = await feed.subscribe("t", EventFilter(), flaky, recorder.on_status)
        pubsub = client.pubsubs[0]
        pubsub.push(json.dumps({"eventType": "DELETE", "old": {"id": "a"}}))
        pubsub.push(json.dumps({"eventType": "DELETE", "old": {"id": "b"}}))
        await settle(20)

        assert [event.old_id for event in delivered] == ["a", "b"]
        await feed.unsubscribe(handle)

    @pytest.mark.asyncio
    async def test_connection_loss_reports_channel_error(self, settle):
        client = FakeRedis()
        feed = RedisChangeFeed(client)
        recorder = Recorder()
        handle = await feed.subscribe("t", EventFilter(), recorder.on_event, recorder.on_status)

        client.pubsubs[0].break_connection()
        await settle(20)

        assert recorder.statuses == [ChannelStatus.SUBSCRIBED, ChannelStatus.CHANNEL_ERROR]
        await feed.unsubscribe(handle)

    @pytest.mark.asyncio
    async def test_unsubscribe_tears_down_once(self, settle):
        client = FakeRedis()
        feed = RedisChangeFeed(client)
        recorder = Recorder()
        handle = await feed.subscribe("t", EventFilter(), recorder.on_event, recorder.on_status)
        await settle()

        await feed.unsubscribe(handle)
        await feed.unsubscribe(handle)

        pubsub = client.pubsubs[0]
        assert handle.active is False
        assert handle.task is None
        assert pubsub.closed is True
        assert pubsub.unsubscribed == ["marksync:changes:t"]
        assert recorder.statuses == [ChannelStatus.SUBSCRIBED, ChannelStatus.CLOSED]

    @pytest.mark.asyncio
    async def test_subscribe_failure_raises(self):
        client = FakeRedis(fail_subscribe=True)
        feed = RedisChangeFeed(client)
        recorder = Recorder()

        with pytest.raises(SubscriptionError):
            await feed.subscribe("t", EventFilter(), recorder.on_event, recorder.on_status)

        assert client.pubsubs[0].closed is True

    @pytest.mark.asyncio
    async def test_publish_uses_wire_format(self):
        client = FakeRedis()
        feed = RedisChangeFeed(client)

        await feed.publish("t", ChangeEvent(kind=ChangeKind.DELETE, old={"id": "b1"}))

        channel, message = client.published[0]
        assert channel == "marksync:changes:t"
        payload = json.loads(message)
        assert payload["eventType"] == "DELETE"
        assert payload["old"] == {"id": "b1"}

    def test_parse_message_accepts_bytes(self):
        event = RedisChangeFeed.parse_message(
            json.dumps({"eventType": "insert", "new": ROW}).encode()
        )
        assert event is not None
        assert event.new.title == "Docs"

    def test_parse_message_rejects_incomplete_insert(self):
        assert RedisChangeFeed.parse_message(json.dumps({"eventType": "INSERT"})) is None
