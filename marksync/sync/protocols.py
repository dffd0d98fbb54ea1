"""Protocol definitions (ports) for the remote store.

Keeping these as Protocols isolates the engine from the concrete HTTP,
Redis and in-memory implementations, and lets tests pass in fakes.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from marksync.domain.events.change_events import ChangeEvent, ChangeKind

if TYPE_CHECKING:
    from marksync.domain.models.bookmark import Bookmark


class ChannelStatus(str, Enum):
    """Status reports emitted by a change channel."""

    SUBSCRIBED = "SUBSCRIBED"
    CHANNEL_ERROR = "CHANNEL_ERROR"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"


ChangeHandler = Callable[[ChangeEvent], Awaitable[None]]
StatusHandler = Callable[[ChannelStatus], Awaitable[None]]


@dataclass(frozen=True)
class EventFilter:
    """Server-side event selection: a table and the operation kinds wanted."""

    table: str = "bookmarks"
    kinds: frozenset[ChangeKind] = field(default_factory=lambda: frozenset(ChangeKind))

    def matches(self, event: ChangeEvent) -> bool:
        return event.table == self.table and event.kind in self.kinds


class SubscriptionHandle(Protocol):
    topic: str

    @property
    def active(self) -> bool: ...


class BookmarkStore(Protocol):
    async def fetch_all(self, owner: str) -> list[Bookmark]: ...

    async def insert(self, owner: str, title: str, location: str) -> Bookmark: ...

    async def delete(self, bookmark_id: str, owner: str) -> None: ...


class ChangeFeed(Protocol):
    async def subscribe(
        self,
        topic: str,
        event_filter: EventFilter,
        handler: ChangeHandler,
        on_status: StatusHandler,
    ) -> SubscriptionHandle: ...

    async def unsubscribe(self, handle: SubscriptionHandle) -> None: ...


class RemoteGateway(BookmarkStore, ChangeFeed, Protocol):
    """Everything the sync engine consumes from the remote store."""
