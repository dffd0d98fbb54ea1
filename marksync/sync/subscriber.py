"""Lifecycle of the change subscription bound to the active identity."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from marksync.domain.exceptions import InvalidStateTransitionError, SubscriptionError
from marksync.sync.protocols import ChannelStatus
from marksync.sync.state import SubscriptionStatus, can_transition

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from marksync.domain.events.change_events import ChangeEvent
    from marksync.sync.protocols import ChangeFeed, EventFilter, SubscriptionHandle

    StatusListener = Callable[[SubscriptionStatus, SubscriptionStatus], Awaitable[None]]

logger = logging.getLogger(__name__)

_CHANNEL_TO_STATUS = {
    ChannelStatus.SUBSCRIBED: SubscriptionStatus.ENABLED,
    ChannelStatus.CHANNEL_ERROR: SubscriptionStatus.ERROR,
    ChannelStatus.TIMED_OUT: SubscriptionStatus.ERROR,
    ChannelStatus.CLOSED: SubscriptionStatus.DISABLED,
}


class ChangeSubscriber:
    """Owns at most one live subscription and its connection status.

    Every activation gets a new generation number. Callbacks carry the
    generation they were created for, so events and status reports from a
    torn-down subscription are dropped, and a subscription that finishes
    connecting after the identity moved on is released straight away.
    """

    def __init__(
        self,
        feed: ChangeFeed,
        *,
        topic: str,
        event_filter: EventFilter,
        on_event: Callable[[ChangeEvent], Awaitable[None]],
        on_status_change: StatusListener | None = None,
    ) -> None:
        self._feed = feed
        self._topic = topic
        self._event_filter = event_filter
        self._on_event = on_event
        self._on_status_change = on_status_change
        self._status = SubscriptionStatus.DISABLED
        self._handle: SubscriptionHandle | None = None
        self._identity: str | None = None
        self._generation = 0

    @property
    def status(self) -> SubscriptionStatus:
        return self._status

    @property
    def identity(self) -> str | None:
        return self._identity

    @property
    def handle(self) -> SubscriptionHandle | None:
        return self._handle

    async def activate(self, identity: str) -> None:
        """Subscribe on behalf of ``identity``, tearing down any previous handle first."""
        await self.release()
        self._generation += 1
        generation = self._generation
        self._identity = identity
        await self._transition(SubscriptionStatus.CONNECTING)

        try:
            handle = await self._feed.subscribe(
                self._topic,
                self._event_filter,
                self._event_handler(generation),
                self._status_handler(generation),
            )
        except SubscriptionError as exc:
            logger.warning(
                "subscription_request_failed",
                extra={"identity": identity, "topic": self._topic, "error": exc.message},
            )
            if generation == self._generation and self._status is not SubscriptionStatus.ERROR:
                await self._transition(SubscriptionStatus.ERROR)
            return

        if generation != self._generation:
            logger.info(
                "subscription_superseded_releasing",
                extra={"identity": identity, "topic": self._topic},
            )
            await self._unsubscribe(handle)
            return

        self._handle = handle
        logger.info("subscription_acquired", extra={"identity": identity, "topic": self._topic})

    async def release(self) -> None:
        """Tear down the current subscription; safe to call repeatedly."""
        self._generation += 1
        handle, self._handle = self._handle, None
        identity, self._identity = self._identity, None
        if handle is not None:
            await self._unsubscribe(handle)
            logger.info("subscription_released", extra={"identity": identity, "topic": self._topic})
        if self._status is not SubscriptionStatus.DISABLED:
            await self._transition(SubscriptionStatus.DISABLED)

    async def _unsubscribe(self, handle: SubscriptionHandle) -> None:
        try:
            await self._feed.unsubscribe(handle)
        except SubscriptionError as exc:
            logger.warning(
                "subscription_release_failed",
                extra={"topic": self._topic, "error": exc.message},
            )

    def _event_handler(self, generation: int) -> Callable[[ChangeEvent], Awaitable[None]]:
        async def _deliver(event: ChangeEvent) -> None:
            if generation != self._generation:
                logger.debug("stale_change_event_dropped", extra={"event_kind": event.kind.value})
                return
            await self._on_event(event)

        return _deliver

    def _status_handler(self, generation: int) -> Callable[[ChannelStatus], Awaitable[None]]:
        async def _report(channel_status: ChannelStatus) -> None:
            if generation != self._generation:
                return
            target = _CHANNEL_TO_STATUS[channel_status]
            if target is self._status:
                return
            if not can_transition(self._status, target):
                logger.warning(
                    "subscription_status_report_ignored",
                    extra={
                        "subscription_status": self._status.value,
                        "reported": channel_status.value,
                    },
                )
                return
            await self._transition(target)

        return _report

    async def _transition(self, target: SubscriptionStatus) -> None:
        previous = self._status
        if not can_transition(previous, target):
            msg = f"Cannot move subscription from {previous.value} to {target.value}"
            raise InvalidStateTransitionError(
                msg, details={"from": previous.value, "to": target.value}
            )
        self._status = target
        logger.info(
            "subscription_status_changed",
            extra={
                "identity": self._identity,
                "subscription_status": target.value,
                "previous": previous.value,
            },
        )
        if self._on_status_change is not None:
            await self._on_status_change(previous, target)
