"""Bookmark sync engine: the facade presentation code talks to."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Self

from marksync.config.sync import SyncConfig
from marksync.core.logging_utils import generate_correlation_id
from marksync.core.url_utils import is_valid_location, normalize_location
from marksync.domain.events.sync_events import EngineStateChanged, SubscriptionStatusChanged
from marksync.domain.exceptions import RemoteOperationError, ValidationError
from marksync.infrastructure.messaging.event_bus import EventBus
from marksync.sync.collection import LocalCollection
from marksync.sync.gate import MutationGate
from marksync.sync.protocols import EventFilter
from marksync.sync.reconciler import Reconciler
from marksync.sync.state import EngineState, SubscriptionStatus
from marksync.sync.subscriber import ChangeSubscriber

if TYPE_CHECKING:
    from marksync.domain.events.change_events import ChangeEvent
    from marksync.sync.protocols import RemoteGateway

logger = logging.getLogger(__name__)

REQUIRED_FIELDS_MESSAGE = "Title and URL are required."
INVALID_LOCATION_MESSAGE = "URL is not valid."


@dataclass
class _Session:
    """Everything owned on behalf of one identity; discarded on identity change."""

    identity: str
    collection: LocalCollection
    gate: MutationGate
    reconciler: Reconciler
    refreshes: int = 0
    error: str | None = field(default=None)

    @classmethod
    def open(cls, identity: str, gateway: RemoteGateway) -> _Session:
        collection = LocalCollection()
        return cls(
            identity=identity,
            collection=collection,
            gate=MutationGate(),
            reconciler=Reconciler(collection, gateway, identity),
        )


class BookmarkSyncEngine:
    """Keeps one user's bookmarks in step with the remote store.

    Entry points never raise for validation or remote failures; those end up
    in ``state.error``. Every observable change is announced on the event bus
    as ``EngineStateChanged``.

    Example:
        ```python
        bus = EventBus()
        bus.subscribe(EngineStateChanged, render)
        async with BookmarkSyncEngine(gateway, event_bus=bus) as engine:
            await engine.set_identity(user_id)
            await engine.add("Docs", "example.com/docs")
        ```

    """

    def __init__(
        self,
        gateway: RemoteGateway,
        *,
        config: SyncConfig | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self._gateway = gateway
        self._config = config or SyncConfig()
        self._bus = event_bus or EventBus()
        self._session: _Session | None = None
        self._identity_lock = asyncio.Lock()
        self._subscriber = ChangeSubscriber(
            gateway,
            topic=self._config.topic,
            event_filter=EventFilter(table=self._config.table),
            on_event=self._handle_change,
            on_status_change=self._handle_status_change,
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def identity(self) -> str | None:
        return self._session.identity if self._session else None

    @property
    def subscription_status(self) -> SubscriptionStatus:
        return self._subscriber.status

    @property
    def state(self) -> EngineState:
        session = self._session
        if session is None:
            return EngineState(subscription_status=self._subscriber.status)
        return EngineState(
            identity=session.identity,
            bookmarks=session.collection.snapshot(),
            loading=session.refreshes > 0,
            adding=session.gate.adding,
            deleting_ids=session.gate.deleting_ids,
            error=session.error,
            subscription_status=self._subscriber.status,
        )

    async def set_identity(self, identity: str | None) -> None:
        """Bind the engine to ``identity`` (or unbind it with None).

        The previous subscription is always torn down before a new one is
        requested, and the previous identity's bookmarks are discarded.
        """
        identity = identity or None
        # Calls are applied one at a time, in call order
        async with self._identity_lock:
            if identity == self.identity and not self._subscription_leftover(identity):
                return

            await self._subscriber.release()
            previous = self.identity
            self._session = None
            logger.info(
                "engine_identity_changed", extra={"identity": identity, "previous": previous}
            )

            if identity is None:
                await self._notify("identity_cleared")
                return

            session = _Session.open(identity, self._gateway)
            self._session = session
            await self._notify("identity_changed", session)
            await self._subscriber.activate(identity)

        if self._session is session:
            await self.refresh()

    def _subscription_leftover(self, identity: str | None) -> bool:
        """True when no identity is bound but the subscriber still holds a channel."""
        if identity is not None:
            return False
        return (
            self._subscriber.handle is not None
            or self._subscriber.status is not SubscriptionStatus.DISABLED
        )

    async def close(self) -> None:
        await self.set_identity(None)

    async def refresh(self) -> None:
        """Replace the local bookmarks with the remote store's current rows."""
        session = self._session
        if session is None:
            return

        correlation_id = generate_correlation_id()
        session.refreshes += 1
        session.error = None
        await self._notify("refresh_started", session)
        try:
            await session.reconciler.resync()
        except RemoteOperationError as exc:
            session.error = exc.message
            logger.warning(
                "bookmark_refresh_failed",
                extra={
                    "identity": session.identity,
                    "correlation_id": correlation_id,
                    "error": exc.message,
                },
            )
        finally:
            session.refreshes -= 1
        await self._notify("refresh_finished", session)

    def _validate_new_bookmark(self, title: str, location: str) -> tuple[str, str]:
        clean_title = (title or "").strip()
        clean_location = normalize_location(location, self._config.default_scheme)
        if not clean_title or not clean_location:
            raise ValidationError(REQUIRED_FIELDS_MESSAGE)
        if not is_valid_location(clean_location):
            raise ValidationError(INVALID_LOCATION_MESSAGE, details={"location": clean_location})
        return clean_title, clean_location

    async def add(self, title: str, location: str) -> None:
        """Create a bookmark remotely.

        The local list is not touched on success: the resulting change event
        (or the next refresh) brings the new row in, unless
        ``SYNC_APPLY_INSERT_RESULT`` is enabled.
        """
        session = self._session
        if session is None:
            return
        if not session.gate.begin_add():
            return

        correlation_id = generate_correlation_id()
        try:
            session.error = None
            try:
                clean_title, clean_location = self._validate_new_bookmark(title, location)
            except ValidationError as exc:
                session.error = exc.message
                logger.info(
                    "bookmark_add_rejected",
                    extra={"identity": session.identity, "reason": exc.message},
                )
                return

            await self._notify("add_started", session)
            try:
                created = await self._gateway.insert(session.identity, clean_title, clean_location)
            except RemoteOperationError as exc:
                session.error = exc.message
                logger.warning(
                    "bookmark_add_failed",
                    extra={
                        "identity": session.identity,
                        "correlation_id": correlation_id,
                        "error": exc.message,
                    },
                )
                return

            logger.info(
                "bookmark_added",
                extra={
                    "identity": session.identity,
                    "bookmark_id": created.id,
                    "correlation_id": correlation_id,
                },
            )
            if self._config.apply_insert_result:
                session.reconciler.apply_insert_result(created)
        finally:
            session.gate.end_add()
            await self._notify("add_finished", session)

    async def remove(self, bookmark_id: str) -> None:
        """Delete a bookmark, dropping it locally before the remote call returns.

        A failed delete is rolled back by re-reading the remote store rather
        than by restoring the cached copy.
        """
        session = self._session
        if session is None:
            return
        if not session.gate.begin_delete(bookmark_id):
            return

        correlation_id = generate_correlation_id()
        try:
            session.error = None
            session.reconciler.apply_local_delete(bookmark_id)
            await self._notify("remove_started", session)
            try:
                await self._gateway.delete(bookmark_id, session.identity)
            except RemoteOperationError as exc:
                session.error = exc.message
                logger.warning(
                    "bookmark_delete_failed_resyncing",
                    extra={
                        "identity": session.identity,
                        "bookmark_id": bookmark_id,
                        "correlation_id": correlation_id,
                        "error": exc.message,
                    },
                )
                await self._resync_quietly(session, correlation_id)
                return

            logger.info(
                "bookmark_removed",
                extra={
                    "identity": session.identity,
                    "bookmark_id": bookmark_id,
                    "correlation_id": correlation_id,
                },
            )
        finally:
            session.gate.end_delete(bookmark_id)
            await self._notify("remove_finished", session)

    async def _resync_quietly(self, session: _Session, correlation_id: str) -> None:
        """Re-sync after a failure, keeping the original error visible."""
        try:
            await session.reconciler.resync()
        except RemoteOperationError as exc:
            logger.warning(
                "bookmark_resync_failed",
                extra={
                    "identity": session.identity,
                    "correlation_id": correlation_id,
                    "error": exc.message,
                },
            )

    async def _handle_change(self, event: ChangeEvent) -> None:
        session = self._session
        if session is None:
            return
        try:
            changed = await session.reconciler.apply_event(event)
        except RemoteOperationError as exc:
            session.error = exc.message
            changed = True
            logger.warning(
                "change_event_resync_failed",
                extra={"identity": session.identity, "error": exc.message},
            )
        if changed:
            await self._notify(f"change_{event.kind.value}", session)

    async def _handle_status_change(
        self, previous: SubscriptionStatus, current: SubscriptionStatus
    ) -> None:
        await self._bus.publish(
            SubscriptionStatusChanged(
                occurred_at=datetime.now(UTC),
                aggregate_id=self._subscriber.identity or self.identity,
                previous=previous,
                current=current,
            )
        )
        await self._notify("subscription_status")

    async def _notify(self, reason: str, session: _Session | None = None) -> None:
        if session is not None and session is not self._session:
            return
        await self._bus.publish(
            EngineStateChanged(
                occurred_at=datetime.now(UTC),
                aggregate_id=self.identity,
                reason=reason,
                state=self.state,
            )
        )
