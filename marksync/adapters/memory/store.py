"""In-process remote store shared by any number of engines.

Behaves like a row-level change feed without a row filter: every change is
broadcast to every subscriber whatever its owner, and delete payloads carry
only the primary key unless configured otherwise. Deliveries are scheduled
as tasks so they race local completions the way network pushes do.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from marksync.domain.events.change_events import ChangeEvent, ChangeKind
from marksync.domain.exceptions import RemoteOperationError, SubscriptionError
from marksync.domain.models.bookmark import Bookmark
from marksync.sync.protocols import ChannelStatus

if TYPE_CHECKING:
    from collections.abc import Callable

    from marksync.sync.protocols import ChangeHandler, EventFilter, StatusHandler

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class MemorySubscription:
    """Handle returned by :meth:`InMemoryBookmarkStore.subscribe`."""

    subscription_id: int
    topic: str
    event_filter: EventFilter
    handler: ChangeHandler = field(repr=False)
    on_status: StatusHandler = field(repr=False)
    _active: bool = True

    @property
    def active(self) -> bool:
        return self._active


class InMemoryBookmarkStore:
    """Shared bookmark table with a broadcast change feed."""

    def __init__(
        self,
        *,
        table: str = "bookmarks",
        delete_payload_includes_owner: bool = False,
        id_factory: Callable[[], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.table = table
        self.delete_payload_includes_owner = delete_payload_includes_owner
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._clock = clock or (lambda: datetime.now(UTC))
        self._last_created: datetime | None = None
        self._rows: dict[str, Bookmark] = {}
        self._subscriptions: dict[int, MemorySubscription] = {}
        self._next_subscription = 0
        self._pending: set[asyncio.Task[None]] = set()
        self._failures: dict[str, deque[str]] = defaultdict(deque)
        self._holds: dict[str, asyncio.Event] = {}
        self.calls: list[tuple[str, ...]] = []

    # -- test and demo controls -------------------------------------------------

    def fail_next(self, operation: str, message: str = "remote store unavailable") -> None:
        """Make the next call of ``operation`` fail with ``message``."""
        self._failures[operation].append(message)

    def hold(self, operation: str) -> asyncio.Event:
        """Block calls of ``operation`` until the returned event is set."""
        gate = asyncio.Event()
        self._holds[operation] = gate
        return gate

    def release(self, operation: str) -> None:
        gate = self._holds.pop(operation, None)
        if gate is not None:
            gate.set()

    def seed(self, record: Bookmark) -> None:
        """Insert a row without broadcasting a change."""
        self._rows[record.id] = record

    def rows(self, owner: str | None = None) -> list[Bookmark]:
        rows = [row for row in self._rows.values() if owner is None or row.owner == owner]
        return sorted(rows, key=lambda row: row.created_at, reverse=True)

    def call_count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)

    @property
    def subscription_count(self) -> int:
        return len(self._subscriptions)

    async def drain(self) -> None:
        """Wait until every scheduled change delivery has run."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def emit(self, event: ChangeEvent) -> None:
        """Broadcast an arbitrary change event, as another writer would."""
        self._broadcast(event)

    async def fail_channel(self, status: ChannelStatus = ChannelStatus.CHANNEL_ERROR) -> None:
        """Report a channel failure to every live subscription."""
        for subscription in list(self._subscriptions.values()):
            await subscription.on_status(status)

    # -- BookmarkStore -----------------------------------------------------------

    async def _enter(self, operation: str, *args: str) -> None:
        self.calls.append((operation, *args))
        gate = self._holds.get(operation)
        if gate is not None:
            await gate.wait()
        else:
            await asyncio.sleep(0)
        if self._failures[operation]:
            message = self._failures[operation].popleft()
            if operation in ("subscribe", "unsubscribe"):
                raise SubscriptionError(message, details={"operation": operation})
            raise RemoteOperationError(message, operation=operation)

    def _next_created_at(self) -> datetime:
        created = self._clock()
        if self._last_created is not None and created <= self._last_created:
            created = self._last_created + timedelta(microseconds=1)
        self._last_created = created
        return created

    async def fetch_all(self, owner: str) -> list[Bookmark]:
        await self._enter("fetch_all", owner)
        return self.rows(owner)

    async def insert(self, owner: str, title: str, location: str) -> Bookmark:
        await self._enter("insert", owner, title, location)
        record = Bookmark(
            id=self._id_factory(),
            owner=owner,
            title=title,
            location=location,
            created_at=self._next_created_at(),
        )
        self._rows[record.id] = record
        self._broadcast(ChangeEvent(kind=ChangeKind.INSERT, table=self.table, new=record))
        return record

    async def delete(self, bookmark_id: str, owner: str) -> None:
        await self._enter("delete", bookmark_id, owner)
        row = self._rows.get(bookmark_id)
        if row is None or row.owner != owner:
            # Filtered delete matching no rows is not an error
            return
        del self._rows[bookmark_id]
        old: dict[str, Any] = {"id": bookmark_id}
        if self.delete_payload_includes_owner:
            old["user_id"] = owner
        self._broadcast(ChangeEvent(kind=ChangeKind.DELETE, table=self.table, old=old))

    async def update(
        self, bookmark_id: str, *, title: str | None = None, location: str | None = None
    ) -> Bookmark:
        """Replace a row's editable fields, as another client would."""
        await self._enter("update", bookmark_id)
        current = self._rows.get(bookmark_id)
        if current is None:
            raise RemoteOperationError(f"Bookmark {bookmark_id} not found", operation="update")
        replacement = current.model_copy(
            update={
                "title": title if title is not None else current.title,
                "location": location if location is not None else current.location,
            }
        )
        self._rows[bookmark_id] = replacement
        self._broadcast(
            ChangeEvent(
                kind=ChangeKind.UPDATE,
                table=self.table,
                new=replacement,
                old={"id": bookmark_id},
            )
        )
        return replacement

    # -- ChangeFeed --------------------------------------------------------------

    async def subscribe(
        self,
        topic: str,
        event_filter: EventFilter,
        handler: ChangeHandler,
        on_status: StatusHandler,
    ) -> MemorySubscription:
        await self._enter("subscribe", topic)
        self._next_subscription += 1
        subscription = MemorySubscription(
            subscription_id=self._next_subscription,
            topic=topic,
            event_filter=event_filter,
            handler=handler,
            on_status=on_status,
        )
        self._subscriptions[subscription.subscription_id] = subscription
        await on_status(ChannelStatus.SUBSCRIBED)
        return subscription

    async def unsubscribe(self, handle: MemorySubscription) -> None:
        subscription = self._subscriptions.pop(handle.subscription_id, None)
        if subscription is None:
            return
        self.calls.append(("unsubscribe", handle.topic))
        subscription._active = False
        await subscription.on_status(ChannelStatus.CLOSED)

    def _broadcast(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscriptions.values()):
            if not subscription.event_filter.matches(event):
                continue
            task = asyncio.create_task(self._deliver(subscription, event))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, subscription: MemorySubscription, event: ChangeEvent) -> None:
        if not subscription.active:
            return
        try:
            await subscription.handler(event)
        except Exception:
            logger.exception(
                "change_delivery_failed",
                extra={"topic": subscription.topic, "event_kind": event.kind.value},
            )
