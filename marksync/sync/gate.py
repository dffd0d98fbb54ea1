"""Admission control for add/delete operations."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class MutationGate:
    """Tracks in-flight mutations to drop duplicate submissions.

    One add may be in flight at a time; deletes are admitted once per id.
    Rejected calls are not queued.
    """

    def __init__(self) -> None:
        self._adding = False
        self._deleting: set[str] = set()

    @property
    def adding(self) -> bool:
        return self._adding

    @property
    def deleting_ids(self) -> frozenset[str]:
        return frozenset(self._deleting)

    @property
    def busy(self) -> bool:
        return self._adding or bool(self._deleting)

    def begin_add(self) -> bool:
        if self._adding:
            logger.debug("bookmark_add_rejected_in_flight")
            return False
        self._adding = True
        return True

    def end_add(self) -> None:
        self._adding = False

    def begin_delete(self, bookmark_id: str) -> bool:
        if bookmark_id in self._deleting:
            logger.debug("bookmark_delete_rejected_in_flight", extra={"bookmark_id": bookmark_id})
            return False
        self._deleting.add(bookmark_id)
        return True

    def end_delete(self, bookmark_id: str) -> None:
        self._deleting.discard(bookmark_id)
