"""In-memory ordered bookmark set for the active identity."""

from __future__ import annotations

import bisect
import itertools
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from marksync.domain.models.bookmark import Bookmark

logger = logging.getLogger(__name__)


class LocalCollection:
    """Bookmarks kept sorted by ``created_at`` descending.

    Ties on ``created_at`` keep arrival order (earlier arrival first). Every
    mutator returns True only when membership or content actually changed,
    so callers can skip redundant notifications.
    """

    def __init__(self) -> None:
        self._records: dict[str, Bookmark] = {}
        self._arrival: dict[str, int] = {}
        self._order: list[tuple[float, int, str]] = []
        self._counter = itertools.count()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, bookmark_id: object) -> bool:
        return bookmark_id in self._records

    def _sort_key(self, record: Bookmark, arrival: int) -> tuple[float, int, str]:
        return (-record.created_at.timestamp(), arrival, record.id)

    def _place(self, record: Bookmark, arrival: int) -> None:
        self._records[record.id] = record
        self._arrival[record.id] = arrival
        bisect.insort(self._order, self._sort_key(record, arrival))

    def _unplace(self, bookmark_id: str) -> Bookmark:
        record = self._records.pop(bookmark_id)
        arrival = self._arrival.pop(bookmark_id)
        key = self._sort_key(record, arrival)
        index = bisect.bisect_left(self._order, key)
        del self._order[index]
        return record

    def get(self, bookmark_id: str) -> Bookmark | None:
        return self._records.get(bookmark_id)

    def ids(self) -> frozenset[str]:
        return frozenset(self._records)

    def snapshot(self) -> tuple[Bookmark, ...]:
        """Return records in display order."""
        return tuple(self._records[key[2]] for key in self._order)

    def replace_all(self, records: Iterable[Bookmark]) -> bool:
        """Replace the whole collection; duplicate ids keep the first occurrence."""
        previous = self.snapshot()
        self.clear()
        for record in records:
            if record.id in self._records:
                logger.debug("collection_duplicate_id_skipped", extra={"bookmark_id": record.id})
                continue
            self._place(record, next(self._counter))
        return self.snapshot() != previous

    def insert_if_absent(self, record: Bookmark) -> bool:
        if record.id in self._records:
            return False
        self._place(record, next(self._counter))
        return True

    def update_if_present(self, record: Bookmark) -> bool:
        current = self._records.get(record.id)
        if current is None or current == record:
            return False
        arrival = self._arrival[record.id]
        self._unplace(record.id)
        self._place(record, arrival)
        return True

    def remove_by_id(self, bookmark_id: str) -> bool:
        if bookmark_id not in self._records:
            return False
        self._unplace(bookmark_id)
        return True

    def clear(self) -> None:
        self._records.clear()
        self._arrival.clear()
        self._order.clear()
