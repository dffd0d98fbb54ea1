"""Merge remote change events and local mutation results into the collection."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from marksync.domain.events.change_events import ChangeKind

if TYPE_CHECKING:
    from marksync.domain.events.change_events import ChangeEvent
    from marksync.domain.models.bookmark import Bookmark
    from marksync.sync.collection import LocalCollection
    from marksync.sync.protocols import BookmarkStore

logger = logging.getLogger(__name__)


class Reconciler:
    """Applies changes for one identity; every path is idempotent.

    Full re-syncs are numbered in issue order. When responses come back out
    of order, one older than the last applied re-sync is discarded so the
    latest request always wins.
    """

    def __init__(self, collection: LocalCollection, store: BookmarkStore, owner: str) -> None:
        self._collection = collection
        self._store = store
        self._owner = owner
        self._issued = 0
        self._applied = 0

    @property
    def collection(self) -> LocalCollection:
        return self._collection

    def _owned(self, record: Bookmark) -> bool:
        if record.owner == self._owner:
            return True
        logger.debug(
            "foreign_record_discarded",
            extra={"bookmark_id": record.id, "identity": self._owner},
        )
        return False

    async def apply_event(self, event: ChangeEvent) -> bool:
        """Apply one change event; returns True if the collection changed.

        Raises:
            RemoteOperationError: If a delete without an id forces a re-sync
                and that re-sync fails.
        """
        if event.kind is ChangeKind.DELETE:
            bookmark_id = event.old_id
            if bookmark_id is None:
                logger.info("delete_event_without_id_resyncing", extra={"identity": self._owner})
                return await self.resync()
            return self._collection.remove_by_id(bookmark_id)

        record = event.new
        if record is None or not self._owned(record):
            return False
        if event.kind is ChangeKind.INSERT:
            return self._collection.insert_if_absent(record)
        return self._collection.update_if_present(record)

    def apply_insert_result(self, record: Bookmark) -> bool:
        """Apply a server-confirmed row returned by an insert."""
        if not self._owned(record):
            return False
        return self._collection.insert_if_absent(record)

    def apply_local_delete(self, bookmark_id: str) -> bool:
        """Optimistically drop a record before the remote delete completes."""
        return self._collection.remove_by_id(bookmark_id)

    async def resync(self) -> bool:
        """Replace the collection with the remote store's current rows.

        Raises:
            RemoteOperationError: If the remote read fails.
        """
        self._issued += 1
        sequence = self._issued
        records = await self._store.fetch_all(self._owner)

        if sequence < self._applied:
            logger.info(
                "stale_resync_discarded",
                extra={"identity": self._owner, "sequence": sequence, "applied": self._applied},
            )
            return False
        self._applied = sequence

        owned = [record for record in records if self._owned(record)]
        if len(owned) != len(records):
            logger.warning(
                "resync_foreign_records_dropped",
                extra={"identity": self._owner, "dropped": len(records) - len(owned)},
            )
        changed = self._collection.replace_all(owned)
        logger.debug(
            "resync_applied",
            extra={"identity": self._owner, "sequence": sequence, "count": len(owned)},
        )
        return changed
